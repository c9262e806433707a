"""Unit tests for the ingredient recognition flow.

Tests cover:
- Image format and size validation
- Pillow compression
- Lenient JSON parsing of vision model responses
- Ingredient name normalization
- Graceful degradation to an empty list
- The Gemini backend call (client mocked)
"""

import base64
from io import BytesIO
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from PIL import Image

from src.flows.recognize_ingredients import (
    GeminiVisionBackend,
    compress_image,
    detect_mime_type,
    normalize_ingredients,
    parse_recognition_response,
    recognize_ingredients,
    validate_image_format,
    validate_image_size,
)
from src.models.models import IngredientRecognitionRequest, RecognizedIngredients
from src.prompts.prompts import RECOGNITION_PROMPT


def to_data_uri(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64," + base64.b64encode(data).decode("ascii")


def image_bytes(size=(32, 32), mode="RGB", fmt="PNG") -> bytes:
    buffer = BytesIO()
    color = (10, 200, 10, 128) if mode == "RGBA" else (10, 200, 10)
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


class TestValidateImageFormat:
    def test_valid_jpeg(self):
        """JPEG images should be valid."""
        # JPEG magic bytes: FF D8 FF
        assert validate_image_format(b"\xff\xd8\xff\xe0\x00\x10JFIF") is True

    def test_valid_png(self, png_bytes):
        """PNG images should be valid."""
        assert validate_image_format(png_bytes) is True
        assert detect_mime_type(png_bytes) == "image/png"

    def test_valid_webp(self):
        """WEBP images should be detected."""
        assert detect_mime_type(image_bytes(fmt="WEBP")) == "image/webp"

    def test_valid_gif(self):
        """GIF images should be valid."""
        assert validate_image_format(b"GIF89a\x01\x00\x01\x00\x80\x00\x00") is True
        assert detect_mime_type(image_bytes(fmt="GIF")) == "image/gif"

    def test_bmp_rejected(self):
        """BMP images should be rejected."""
        assert validate_image_format(image_bytes(fmt="BMP")) is False

    def test_empty_bytes(self):
        """Empty bytes should be rejected."""
        assert validate_image_format(b"") is False


class TestValidateImageSize:
    def test_valid_size(self, app_config):
        """Images within size limit should be valid."""
        assert validate_image_size(b"x" * (1024 * 1024), app_config) is True

    def test_exactly_at_limit(self, app_config):
        """Images exactly at size limit should be valid."""
        assert validate_image_size(b"x" * (5 * 1024 * 1024), app_config) is True

    def test_over_limit(self, app_config):
        """Images over the size limit should be rejected."""
        assert validate_image_size(b"x" * (5 * 1024 * 1024 + 1), app_config) is False


class TestCompressImage:
    def test_below_threshold_is_unchanged(self, app_config, png_bytes):
        """Images below the threshold should be sent unchanged."""
        assert compress_image(png_bytes, "image/png", app_config) == (png_bytes, "image/png")

    def test_at_threshold_is_compressed_to_jpeg(self, app_config):
        """Images at the threshold should be re-encoded as JPEG."""
        app_config.COMPRESS_IMG_THRESHOLD_KB = 0
        data, mime = compress_image(image_bytes(mode="RGBA"), "image/png", app_config)
        assert mime == "image/jpeg"
        assert detect_mime_type(data) == "image/jpeg"

    def test_wide_image_is_resized(self, app_config):
        """Images wider than 1024px should be downscaled."""
        app_config.COMPRESS_IMG_THRESHOLD_KB = 0
        data, _ = compress_image(image_bytes(size=(2048, 100)), "image/png", app_config)
        assert Image.open(BytesIO(data)).width == 1024

    def test_undecodable_bytes_fall_back_to_original(self, app_config):
        """Undecodable bytes should be returned unchanged."""
        app_config.COMPRESS_IMG_THRESHOLD_KB = 0
        junk = b"\x89PNG\r\n\x1a\nnot really a png"
        assert compress_image(junk, "image/png", app_config) == (junk, "image/png")


class TestParseRecognitionResponse:
    def test_valid_json(self):
        """Valid JSON should parse correctly."""
        result = parse_recognition_response('{"recognizedIngredients": ["tomato", "basil"]}')
        assert result.recognized_ingredients == ["tomato", "basil"]

    def test_json_with_surrounding_text(self):
        """JSON with surrounding text should be extracted."""
        response = 'Here you go:\n```json\n{"recognizedIngredients": ["tomato"]}\n```\nDone!'
        assert parse_recognition_response(response).recognized_ingredients == ["tomato"]

    def test_bare_array(self):
        """A bare JSON array should be accepted."""
        assert parse_recognition_response('["egg", "milk"]').recognized_ingredients == ["egg", "milk"]

    def test_empty_array_is_valid(self):
        """An empty ingredient list is a valid response."""
        assert parse_recognition_response('{"recognizedIngredients": []}').recognized_ingredients == []

    @pytest.mark.parametrize(
        "response",
        ["", "   ", None, "This is not JSON at all", '{"recognizedIngredients": ["tomato"', '{"items": ["x"]}'],
    )
    def test_unusable_response_returns_none(self, response):
        """Empty, invalid or wrongly shaped responses should return None."""
        assert parse_recognition_response(response) is None


class TestNormalizeIngredients:
    def test_strips_and_deduplicates_case_insensitively(self):
        """Duplicates differing only in case or spacing should collapse."""
        assert normalize_ingredients(["Tomato", " tomato ", "red  onion", "Red Onion"]) == ["Tomato", "red onion"]

    def test_drops_blanks_and_non_strings(self):
        """Blank and non-string entries should be dropped."""
        assert normalize_ingredients(["", "  ", None, 3, "basil"]) == ["basil"]

    def test_preserves_order(self):
        """Order should be preserved."""
        assert normalize_ingredients(["c", "a", "b"]) == ["c", "a", "b"]


class TestRecognizeIngredientsFlow:
    @pytest.mark.asyncio
    async def test_returns_normalized_ingredients(self, app_config, png_data_uri, fake_vision_backend):
        """Model output should be normalized before returning."""
        backend = fake_vision_backend(
            output=RecognizedIngredients(recognized_ingredients=["Tomato", " tomato", "onion"])
        )

        result = await recognize_ingredients(
            IngredientRecognitionRequest(image_data_uri=png_data_uri), backend, app_config
        )

        assert result.recognized_ingredients == ["Tomato", "onion"]
        prompt, _, mime, schema = backend.calls[0]
        assert prompt == RECOGNITION_PROMPT
        assert mime == "image/png"
        assert schema is RecognizedIngredients

    @pytest.mark.asyncio
    async def test_accepts_dict_output(self, app_config, png_data_uri, fake_vision_backend):
        """A plain dict from the model should be accepted."""
        backend = fake_vision_backend(output={"recognizedIngredients": ["rice"]})
        result = await recognize_ingredients(
            IngredientRecognitionRequest(image_data_uri=png_data_uri), backend, app_config
        )
        assert result.recognized_ingredients == ["rice"]

    @pytest.mark.asyncio
    async def test_no_output_gives_empty_list(self, app_config, png_data_uri, fake_vision_backend):
        """No model output should give an empty list."""
        backend = fake_vision_backend(output=None)
        result = await recognize_ingredients(
            IngredientRecognitionRequest(image_data_uri=png_data_uri), backend, app_config
        )
        assert result.recognized_ingredients == []

    @pytest.mark.asyncio
    async def test_backend_error_gives_empty_list(self, app_config, png_data_uri, fake_vision_backend):
        """A model error should give an empty list after one attempt."""
        backend = fake_vision_backend(error=RuntimeError("503 UNAVAILABLE"))
        result = await recognize_ingredients(
            IngredientRecognitionRequest(image_data_uri=png_data_uri), backend, app_config
        )
        assert result.recognized_ingredients == []
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_unsupported_format_skips_model_call(self, app_config, fake_vision_backend):
        """Unsupported formats should return empty without a model call."""
        backend = fake_vision_backend(output={"recognizedIngredients": ["x"]})
        request = IngredientRecognitionRequest(image_data_uri=to_data_uri(image_bytes(fmt="BMP"), "image/bmp"))

        result = await recognize_ingredients(request, backend, app_config)

        assert result.recognized_ingredients == []
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_gif_is_sent_to_model(self, app_config, fake_vision_backend):
        """GIF photos should reach the model with their own MIME type."""
        backend = fake_vision_backend(output={"recognizedIngredients": ["lime"]})
        request = IngredientRecognitionRequest(image_data_uri=to_data_uri(image_bytes(fmt="GIF"), "image/gif"))

        result = await recognize_ingredients(request, backend, app_config)

        assert result.recognized_ingredients == ["lime"]
        _, _, mime, _ = backend.calls[0]
        assert mime == "image/gif"

    @pytest.mark.asyncio
    async def test_oversized_image_skips_model_call(self, app_config, png_data_uri, fake_vision_backend):
        """Oversized images should return empty without a model call."""
        app_config.MAX_IMAGE_SIZE_MB = 0
        backend = fake_vision_backend(output={"recognizedIngredients": ["x"]})

        result = await recognize_ingredients(
            IngredientRecognitionRequest(image_data_uri=png_data_uri), backend, app_config
        )

        assert result.recognized_ingredients == []
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_large_image_sent_compressed(self, app_config, png_data_uri, fake_vision_backend):
        """Images at the threshold should be sent as JPEG."""
        app_config.COMPRESS_IMG_THRESHOLD_KB = 0
        backend = fake_vision_backend(output={"recognizedIngredients": []})

        await recognize_ingredients(IngredientRecognitionRequest(image_data_uri=png_data_uri), backend, app_config)

        _, sent_bytes, mime, _ = backend.calls[0]
        assert mime == "image/jpeg"
        assert detect_mime_type(sent_bytes) == "image/jpeg"

    @pytest.mark.asyncio
    async def test_compression_disabled(self, app_config, png_bytes, png_data_uri, fake_vision_backend):
        """With compression disabled the original bytes should be sent."""
        app_config.COMPRESS_IMG = False
        app_config.COMPRESS_IMG_THRESHOLD_KB = 0
        backend = fake_vision_backend(output={"recognizedIngredients": []})

        await recognize_ingredients(IngredientRecognitionRequest(image_data_uri=png_data_uri), backend, app_config)

        _, sent_bytes, mime, _ = backend.calls[0]
        assert sent_bytes == png_bytes
        assert mime == "image/png"


class TestGeminiVisionBackend:
    @pytest.mark.asyncio
    @patch("src.flows.recognize_ingredients.asyncio.to_thread", new_callable=AsyncMock)
    async def test_uses_sdk_parsed_output(self, mock_to_thread, app_config, png_bytes):
        """The SDK's parsed object should be returned directly."""
        parsed = RecognizedIngredients(recognized_ingredients=["carrot"])
        mock_to_thread.return_value = SimpleNamespace(parsed=parsed, text="ignored")
        backend = GeminiVisionBackend(app_config)
        backend._client = MagicMock()

        result = await backend.generate("prompt", png_bytes, "image/png", RecognizedIngredients)

        assert result is parsed
        kwargs = mock_to_thread.call_args.kwargs
        assert kwargs["model"] == app_config.IMAGE_DETECTION_MODEL
        assert kwargs["contents"][0] == "prompt"
        assert kwargs["config"].response_mime_type == "application/json"

    @pytest.mark.asyncio
    @patch("src.flows.recognize_ingredients.asyncio.to_thread", new_callable=AsyncMock)
    async def test_falls_back_to_text_parsing(self, mock_to_thread, app_config, png_bytes):
        """Response text should be parsed when the SDK gives no parsed object."""
        mock_to_thread.return_value = SimpleNamespace(parsed=None, text='{"recognizedIngredients": ["leek"]}')
        backend = GeminiVisionBackend(app_config)
        backend._client = MagicMock()

        result = await backend.generate("prompt", png_bytes, "image/png", RecognizedIngredients)

        assert result.recognized_ingredients == ["leek"]

    @pytest.mark.asyncio
    @patch("src.flows.recognize_ingredients.asyncio.to_thread", new_callable=AsyncMock)
    async def test_api_errors_propagate(self, mock_to_thread, app_config, png_bytes):
        """API errors should propagate to the flow."""
        mock_to_thread.side_effect = RuntimeError("API key not valid")
        backend = GeminiVisionBackend(app_config)
        backend._client = MagicMock()

        with pytest.raises(RuntimeError, match="API key not valid"):
            await backend.generate("prompt", png_bytes, "image/png", RecognizedIngredients)
