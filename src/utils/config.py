"""Configuration management for the Mood Chef recipe service.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults

The module-level ``config`` instance is NOT validated at import time.
Entry points (app.py, query.py) call ``config.validate()`` on start-up, and the
generation/recognition flows receive a Config object explicitly so tests can
build their own.
"""

import os

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        self.GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
        # Recipe generation model (text, structured output)
        self.GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        # Ingredient recognition model: must be vision-capable
        self.IMAGE_DETECTION_MODEL: str = os.getenv("IMAGE_DETECTION_MODEL", "gemini-2.5-flash")
        # Server Port
        self.PORT: int = int(os.getenv("PORT", "7777"))
        # LLM Model Parameters
        # Temperature: recipes benefit from some creativity, 0.7 keeps titles varied
        self.TEMPERATURE: float = float(os.getenv("TEMPERATURE", "0.7"))
        # Max Output Tokens: a single recipe with steps and nutrition fits in 2048
        self.MAX_OUTPUT_TOKENS: int = int(os.getenv("MAX_OUTPUT_TOKENS", "2048"))
        # Maximum image size (in MB) accepted for ingredient recognition. Default: 5 MB
        self.MAX_IMAGE_SIZE_MB: int = int(os.getenv("MAX_IMAGE_SIZE_MB", "5"))
        # Image Compression: Enable/disable image compression before recognition
        self.COMPRESS_IMG: bool = _env_bool("COMPRESS_IMG", "true")
        # Image Compression Threshold: Only compress images at or above this size (in KB)
        self.COMPRESS_IMG_THRESHOLD_KB: int = int(os.getenv("COMPRESS_IMG_THRESHOLD_KB", "300"))
        # SQLite file holding saved and community recipes
        self.DATABASE_FILE: str = os.getenv("DATABASE_FILE", "tmp/recipes.db")
        # Number of community recipes returned by the explore feed. Default: 24
        self.EXPLORE_PAGE_SIZE: int = int(os.getenv("EXPLORE_PAGE_SIZE", "24"))

    def validate(self) -> None:
        """Validate required configuration.

        Raises:
            ValueError: If required API keys are missing or invalid values provided.
        """
        if not self.GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY environment variable is required")
        if not (0.0 <= self.TEMPERATURE <= 2.0):
            raise ValueError(
                f"TEMPERATURE must be between 0.0 and 2.0, got: {self.TEMPERATURE}"
            )
        if self.MAX_OUTPUT_TOKENS < 512:
            raise ValueError(
                f"MAX_OUTPUT_TOKENS must be at least 512, got: {self.MAX_OUTPUT_TOKENS}"
            )
        if self.MAX_IMAGE_SIZE_MB < 1:
            raise ValueError(
                f"MAX_IMAGE_SIZE_MB must be at least 1, got: {self.MAX_IMAGE_SIZE_MB}"
            )
        if self.EXPLORE_PAGE_SIZE < 1:
            raise ValueError(
                f"EXPLORE_PAGE_SIZE must be at least 1, got: {self.EXPLORE_PAGE_SIZE}"
            )


# Create module-level config instance (validated by entry points)
config = Config()
