"""Shared fixtures for unit tests: config, fake model backends and sample images.

No test in tests/unit talks to Gemini; the flows receive fake backends instead.
"""

import base64
from io import BytesIO

import pytest
from PIL import Image

from src.utils.config import Config


class FakeRecipeBackend:
    """Stands in for AgnoRecipeBackend. Returns `output` or raises `error`."""

    def __init__(self, output=None, error: Exception = None):
        self.output = output
        self.error = error
        self.calls = []

    async def generate(self, prompt, schema):
        self.calls.append((prompt, schema))
        if self.error is not None:
            raise self.error
        return self.output


class FakeVisionBackend:
    """Stands in for GeminiVisionBackend. Returns `output` or raises `error`."""

    def __init__(self, output=None, error: Exception = None):
        self.output = output
        self.error = error
        self.calls = []

    async def generate(self, prompt, image_bytes, mime_type, schema):
        self.calls.append((prompt, image_bytes, mime_type, schema))
        if self.error is not None:
            raise self.error
        return self.output


SAMPLE_RECIPE = {
    "title": "Tomato Onion Stir-fry",
    "instructions": "1. Chop the onion.\n2. Fry it.\n3. Add tomato and simmer.",
    "cookTime": "20 minutes",
    "nutritionalInformation": "Approx. 180 kcal per serving",
}


@pytest.fixture
def app_config(monkeypatch, tmp_path) -> Config:
    """Config with a dummy API key and a throwaway database file."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("DATABASE_FILE", str(tmp_path / "recipes.db"))
    monkeypatch.setenv("COMPRESS_IMG", "true")
    monkeypatch.setenv("COMPRESS_IMG_THRESHOLD_KB", "300")
    monkeypatch.setenv("MAX_IMAGE_SIZE_MB", "5")
    return Config()


@pytest.fixture
def sample_recipe() -> dict:
    return dict(SAMPLE_RECIPE)


@pytest.fixture
def png_bytes() -> bytes:
    """A small real PNG image."""
    buffer = BytesIO()
    Image.new("RGB", (32, 32), (200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_data_uri(png_bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def fake_recipe_backend():
    """Factory: fake_recipe_backend(output=..., error=...)."""
    return FakeRecipeBackend


@pytest.fixture
def fake_vision_backend():
    """Factory: fake_vision_backend(output=..., error=...)."""
    return FakeVisionBackend
