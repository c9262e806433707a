"""Ingredient recognition from a photo using the Gemini vision API.

Best-effort flow: the caller always gets a list back. Any model-side problem
(API error, empty response, unparseable JSON) or an image that fails validation
is logged and degrades to an empty list. This differs from the recipe flow,
where missing output is an error.

Core Functions:
- validate_image_format(): Sniff magic bytes, accept JPEG/PNG/WEBP/HEIC/HEIF/GIF
- validate_image_size(): Check MAX_IMAGE_SIZE_MB limit
- compress_image(): Downscale/re-encode large images with Pillow
- parse_recognition_response(): Lenient JSON parsing
- normalize_ingredients(): Strip, drop blanks, de-duplicate (order preserved)
- GeminiVisionBackend.generate(): Single vision API call with JSON response schema
- recognize_ingredients(): The flow entry point
"""

import asyncio
import json
import re
from io import BytesIO
from typing import Optional, Protocol

import filetype
from google import genai
from google.genai import types
from PIL import Image
from pydantic import BaseModel

from src.agents.agent import coerce_output
from src.models.models import (
    IngredientRecognitionRequest,
    IngredientRecognitionResult,
    RecognizedIngredients,
    parse_data_uri,
)
from src.prompts.prompts import build_recognition_prompt
from src.utils.config import Config
from src.utils.logger import logger


# filetype extension -> MIME type sent to Gemini
SUPPORTED_IMAGE_TYPES = {
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "heic": "image/heic",
    "heif": "image/heif",
    "gif": "image/gif",
}


# ============================================================================
# Error Handling Helpers
# ============================================================================


def _log_error(operation_name: str, exception: Exception, log_level: str = "warning") -> None:
    msg = f"{operation_name}: {exception}"
    if log_level == "debug":
        logger.debug(msg)
    elif log_level == "error":
        logger.error(msg)
    else:
        logger.warning(msg)


async def safe_execute_async(
    coro,
    operation_name: str,
    log_level: str = "warning",
    default_return=None,
):
    """Await a coroutine, logging and returning default_return if it raises.

    Used for the optional steps of this flow that must degrade gracefully.

    Args:
        coro: Awaitable coroutine to execute.
        operation_name: Description for logging (e.g., "Gemini vision API call").
        log_level: Logging level ("debug", "warning", "error"). Default: "warning".
        default_return: Value to return on exception. Default: None.

    Returns:
        Result of coroutine, or default_return on exception.
    """
    try:
        return await coro
    except Exception as e:
        _log_error(operation_name, e, log_level)
        return default_return


def safe_execute_sync(
    func,
    operation_name: str,
    log_level: str = "warning",
    default_return=None,
):
    """Synchronous version of safe_execute_async."""
    try:
        return func()
    except Exception as e:
        _log_error(operation_name, e, log_level)
        return default_return


# ============================================================================
# Image validation and preparation
# ============================================================================


def detect_mime_type(image_bytes: bytes) -> Optional[str]:
    """Return the MIME type sniffed from magic bytes, or None if unsupported."""
    kind = filetype.guess(image_bytes)
    if kind is None:
        return None
    return SUPPORTED_IMAGE_TYPES.get(kind.extension)


def validate_image_format(image_bytes: bytes) -> bool:
    """Validate image format from magic bytes (JPEG, PNG, WEBP, HEIC/HEIF or GIF).

    Args:
        image_bytes: Raw image bytes.

    Returns:
        True if valid format, False otherwise.
    """
    if detect_mime_type(image_bytes) is None:
        kind = filetype.guess(image_bytes)
        logger.warning(f"Invalid image format: {kind.mime if kind else 'unknown'}. Supported: JPEG, PNG, WEBP, HEIC, HEIF, GIF.")
        return False
    return True


def validate_image_size(image_bytes: bytes, config: Config) -> bool:
    """Validate image size against MAX_IMAGE_SIZE_MB.

    Returns:
        True if size valid, False if exceeds limit.
    """
    size_mb = len(image_bytes) / (1024 * 1024)
    if size_mb > config.MAX_IMAGE_SIZE_MB:
        logger.warning(f"Image size {size_mb:.2f}MB exceeds limit of {config.MAX_IMAGE_SIZE_MB}MB")
        return False
    return True


def compress_image(
    image_bytes: bytes, mime_type: str, config: Config, max_width: int = 1024
) -> tuple[bytes, str]:
    """Compress image for API transmission using Pillow.

    Uses JPEG format with quality=85 + optimize + progressive. Resizes oversized
    images and converts color modes to RGB. Images smaller than
    COMPRESS_IMG_THRESHOLD_KB are sent as-is.

    Args:
        image_bytes: Raw image bytes to compress.
        mime_type: MIME type of image_bytes.
        config: Configuration holding the compression threshold.
        max_width: Maximum image width in pixels.

    Returns:
        (bytes, mime_type): compressed JPEG, or the original pair when compression
        is skipped or fails.
    """
    size_kb = len(image_bytes) / 1024
    if size_kb < config.COMPRESS_IMG_THRESHOLD_KB:
        logger.debug(
            f"Image size {size_kb:.1f}KB below compression threshold "
            f"({config.COMPRESS_IMG_THRESHOLD_KB}KB), skipping compression"
        )
        return image_bytes, mime_type

    def _compress():
        img = Image.open(BytesIO(image_bytes))

        # Convert RGBA/LA/P to RGB for JPEG output
        if img.mode in ("RGBA", "LA", "P"):
            img = img.convert("RGBA")
            rgb_img = Image.new("RGB", img.size, (255, 255, 255))
            rgb_img.paste(img, mask=img.split()[-1])
            img = rgb_img
        elif img.mode != "RGB":
            img = img.convert("RGB")

        if img.width > max_width:
            ratio = max_width / img.width
            img = img.resize((max_width, int(img.height * ratio)), Image.Resampling.LANCZOS)

        output = BytesIO()
        img.save(output, format="JPEG", quality=85, optimize=True, progressive=True)
        compressed_bytes = output.getvalue()

        logger.debug(
            f"Image compressed: {size_kb:.1f}KB → {len(compressed_bytes) / 1024:.1f}KB"
        )
        return compressed_bytes, "image/jpeg"

    return safe_execute_sync(
        _compress, "Image compression", log_level="warning", default_return=(image_bytes, mime_type)
    )


# ============================================================================
# Response parsing
# ============================================================================


def parse_recognition_response(response_text: Optional[str]) -> Optional[RecognizedIngredients]:
    """Parse the vision model's text into RecognizedIngredients.

    Tries, in order: direct JSON parse, a regex-extracted JSON object, a
    regex-extracted JSON array (a bare list of strings is accepted too).

    Returns:
        RecognizedIngredients, or None if no valid JSON of the right shape was found.
    """
    if not response_text or not response_text.strip():
        return None

    def _parse_json_direct():
        return json.loads(response_text)

    def _parse_json_object():
        match = re.search(r"\{.*\}", response_text, re.DOTALL)
        return json.loads(match.group()) if match else None

    def _parse_json_array():
        match = re.search(r"\[.*\]", response_text, re.DOTALL)
        return json.loads(match.group()) if match else None

    parsed = None
    for parser, name in (
        (_parse_json_direct, "Direct JSON parse"),
        (_parse_json_object, "Regex JSON object extraction"),
        (_parse_json_array, "Regex JSON array extraction"),
    ):
        parsed = safe_execute_sync(parser, name, log_level="debug", default_return=None)
        if parsed is not None:
            break

    if isinstance(parsed, list):
        parsed = {"recognizedIngredients": parsed}

    if not isinstance(parsed, dict):
        logger.warning("Failed to parse JSON from vision model response")
        return None

    return coerce_output(parsed, RecognizedIngredients)


def normalize_ingredients(ingredients: list) -> list[str]:
    """Strip names, drop blanks and non-strings, de-duplicate case-insensitively.

    The first spelling of each ingredient wins and order is preserved.
    """
    seen = set()
    normalized = []
    for item in ingredients:
        if not isinstance(item, str):
            continue
        name = " ".join(item.split())
        if not name or name.lower() in seen:
            continue
        seen.add(name.lower())
        normalized.append(name)
    return normalized


# ============================================================================
# Vision model backend
# ============================================================================


class VisionModelBackend(Protocol):
    """Vision invocation boundary: (prompt, image, schema) -> schema instance | None, or raises."""

    async def generate(
        self, prompt: str, image_bytes: bytes, mime_type: str, schema: type[BaseModel]
    ) -> Optional[BaseModel]: ...


class GeminiVisionBackend:
    """Calls a vision-capable Gemini model with an inline image part."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self._client: Optional[genai.Client] = None

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.config.GEMINI_API_KEY)
        return self._client

    async def generate(
        self, prompt: str, image_bytes: bytes, mime_type: str, schema: type[BaseModel]
    ) -> Optional[BaseModel]:
        """Single vision API call (no retries here).

        Returns:
            Schema instance parsed by the SDK or by lenient text parsing, or None.
        """
        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.config.IMAGE_DETECTION_MODEL,
            contents=[
                prompt,
                types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
            ],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=schema,
            ),
        )

        parsed = getattr(response, "parsed", None)
        if isinstance(parsed, schema):
            return parsed

        return parse_recognition_response(response.text)


# ============================================================================
# Flow entry point
# ============================================================================


def _empty_result() -> IngredientRecognitionResult:
    return IngredientRecognitionResult(recognized_ingredients=[])


async def recognize_ingredients(
    request: IngredientRecognitionRequest,
    backend: VisionModelBackend,
    config: Config,
) -> IngredientRecognitionResult:
    """Recognize food ingredients in a photo.

    **Processing Steps:**
    1. Decode the data URI (already validated by the request model)
    2. Validate format (magic bytes) and size
    3. Optionally compress for API transmission (COMPRESS_IMG)
    4. One vision model call with the recognition prompt and JSON schema
    5. Normalize the ingredient names

    Args:
        request: Validated recognition request.
        backend: Vision model backend (Gemini in production, fakes in tests).
        config: Explicit configuration.

    Returns:
        IngredientRecognitionResult; empty when nothing was recognized or anything failed.
    """
    _, image_bytes = parse_data_uri(request.image_data_uri)

    if not validate_image_format(image_bytes) or not validate_image_size(image_bytes, config):
        return _empty_result()

    mime_type = detect_mime_type(image_bytes)
    if config.COMPRESS_IMG:
        image_bytes, mime_type = compress_image(image_bytes, mime_type, config)

    output = await safe_execute_async(
        backend.generate(build_recognition_prompt(), image_bytes, mime_type, RecognizedIngredients),
        "Gemini vision API call",
        log_level="error",
        default_return=None,
    )

    result = coerce_output(output, RecognizedIngredients)
    if result is None:
        logger.error("Ingredient recognition flow did not receive output from the model.")
        return _empty_result()

    ingredients = normalize_ingredients(result.recognized_ingredients)
    logger.info(f"Ingredients recognized from image: {ingredients}", extra={"flow": "recognize_ingredients"})
    return IngredientRecognitionResult(recognized_ingredients=ingredients)
