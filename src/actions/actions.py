"""Caller boundary for the form/API layer.

These functions never raise for expected failures. They return either a result
model or an ActionError carrying a user-facing message, so the HTTP layer and
the CLI only have to branch on the type.
"""

from typing import Optional

from pydantic import ValidationError

from src.flows.generate_recipe import RecipeGenerationError, RecipeModelBackend, generate_recipe
from src.flows.recognize_ingredients import VisionModelBackend, recognize_ingredients
from src.models.models import (
    ActionError,
    IngredientRecognitionRequest,
    IngredientRecognitionResult,
    RecipeRequest,
    RecipeResult,
)
from src.utils.config import Config, config as default_config
from src.utils.logger import logger


NO_INGREDIENTS_MESSAGE = "Please provide at least one ingredient."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred while generating the recipe. Please try again."


def _first_validation_message(error: ValidationError, with_field: bool = True) -> str:
    first = error.errors()[0]
    message = first.get("msg", "Invalid input").removeprefix("Value error, ")
    field = ".".join(str(part) for part in first.get("loc", ()))
    return f"{field}: {message}" if field and with_field else message


async def handle_generate_recipe(
    ingredients: Optional[list[str]],
    mood: Optional[str] = None,
    dietary_preference: Optional[str] = None,
    *,
    backend: RecipeModelBackend,
) -> RecipeResult | ActionError:
    """Validate form input and run the recipe flow.

    Blank ingredient entries are dropped; if nothing is left the backend is
    never called.

    Args:
        ingredients: Ingredient strings as typed (or recognized) by the user.
        mood: Optional mood.
        dietary_preference: Optional dietary preference (Veg, Non-Veg, Vegan, Any or long-form alias).
        backend: Generation model backend.

    Returns:
        RecipeResult on success, ActionError with a user-facing message otherwise.
    """
    cleaned = [item.strip() for item in (ingredients or []) if isinstance(item, str) and item.strip()]
    if not cleaned:
        return ActionError(error=NO_INGREDIENTS_MESSAGE)

    try:
        request = RecipeRequest(ingredients=cleaned, mood=mood, dietary_preference=dietary_preference)
    except ValidationError as e:
        return ActionError(error=_first_validation_message(e))

    try:
        return await generate_recipe(request, backend)
    except RecipeGenerationError as e:
        logger.error(f"Error generating recipe: {e}")
        return ActionError(error=str(e) or UNEXPECTED_ERROR_MESSAGE)


async def handle_recognize_ingredients(
    image_data_uri: Optional[str],
    *,
    backend: VisionModelBackend,
    config: Config = default_config,
) -> IngredientRecognitionResult | ActionError:
    """Validate the image payload and run the recognition flow.

    Only malformed input (not a base64 image data URI) produces an ActionError;
    model-side failures come back as an empty ingredient list.
    """
    if not image_data_uri:
        return ActionError(error="Please provide an image.")

    try:
        request = IngredientRecognitionRequest(image_data_uri=image_data_uri)
    except ValidationError as e:
        return ActionError(error=_first_validation_message(e, with_field=False))

    return await recognize_ingredients(request, backend, config)
