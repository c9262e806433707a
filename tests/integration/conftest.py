"""Pytest configuration and fixtures for integration tests.

Ensures environment variables are loaded and skips the whole directory when
GEMINI_API_KEY is not configured. These tests call the live Gemini API.
"""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv


def pytest_configure(config):
    """Load .env from the project root before test collection."""
    env_path = Path(__file__).parent.parent.parent / ".env"
    load_dotenv(env_path)

    print("\n" + "=" * 70)
    print("Note: integration tests require a valid GEMINI_API_KEY")
    print(f"Environment loaded from: {env_path}")
    print("=" * 70 + "\n")


@pytest.fixture(scope="session", autouse=True)
def check_api_keys():
    """Skip integration tests if GEMINI_API_KEY is not configured in .env."""
    if not os.getenv("GEMINI_API_KEY"):
        pytest.skip(
            "Integration tests skipped. Missing API key: GEMINI_API_KEY. Please set it in your .env file.",
            allow_module_level=True,
        )


@pytest.fixture
def live_config(tmp_path):
    """Validated config from the environment, with a throwaway database."""
    from src.utils.config import Config

    config = Config()
    config.DATABASE_FILE = str(tmp_path / "recipes.db")
    config.validate()
    return config
