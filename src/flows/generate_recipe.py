"""Recipe generation flow: request -> prompt -> model -> validated details -> final recipe.

Pipeline:
1. build_recipe_prompt() renders the prompt (mood and dietary clauses)
2. invoke_generation() makes ONE call to the model backend with RecipeDetails as schema
3. finalize_recipe() attaches the fixed placeholder image URL

Failure semantics (no retries, fail fast):
- Backend raises (network, quota, model error) -> RecipeGenerationError with the original message
- Backend returns nothing or output that does not match the schema -> EmptyRecipeOutputError
"""

from typing import Optional, Protocol

from pydantic import BaseModel

from src.agents.agent import coerce_output
from src.models.models import RecipeDetails, RecipeRequest, RecipeResult
from src.prompts.prompts import build_recipe_prompt
from src.utils.logger import logger


PLACEHOLDER_IMAGE_URL = "https://picsum.photos/200/300"

EMPTY_OUTPUT_MESSAGE = "Failed to generate recipe details from LLM."


class RecipeGenerationError(Exception):
    """The generation model call failed."""


class EmptyRecipeOutputError(RecipeGenerationError):
    """The model call succeeded but produced no usable structured output."""

    def __init__(self, message: str = EMPTY_OUTPUT_MESSAGE) -> None:
        super().__init__(message)


class RecipeModelBackend(Protocol):
    """Model invocation boundary: (prompt, schema) -> schema instance | None, or raises."""

    async def generate(self, prompt: str, schema: type[BaseModel]) -> Optional[BaseModel]: ...


async def invoke_generation(prompt: str, backend: RecipeModelBackend) -> RecipeDetails:
    """Call the model backend once and validate its output.

    Args:
        prompt: Rendered recipe prompt.
        backend: Model backend (Agno/Gemini in production, fakes in tests).

    Returns:
        Validated RecipeDetails.

    Raises:
        RecipeGenerationError: Backend call failed (message passed through).
        EmptyRecipeOutputError: No output, or output not matching RecipeDetails.
    """
    try:
        output = await backend.generate(prompt, RecipeDetails)
    except Exception as e:
        logger.error(f"Recipe generation call failed: {e}")
        raise RecipeGenerationError(str(e) or "Recipe generation failed.") from e

    details = coerce_output(output, RecipeDetails)
    if details is None:
        logger.error("Recipe generation returned no structured output")
        raise EmptyRecipeOutputError()

    return details


def finalize_recipe(details: RecipeDetails) -> RecipeResult:
    """Merge validated details with the placeholder image URL.

    Only the RecipeDetails fields are copied, so an image URL smuggled in by
    the model (or by a RecipeResult passed back in) never survives.
    """
    fields = details.model_dump(include=set(RecipeDetails.model_fields))
    return RecipeResult(**fields, image_url=PLACEHOLDER_IMAGE_URL)


async def generate_recipe(request: RecipeRequest, backend: RecipeModelBackend) -> RecipeResult:
    """Generate a complete recipe for a request.

    Args:
        request: Validated recipe request (ingredients already checked by the caller).
        backend: Model backend.

    Returns:
        RecipeResult with image_url set to PLACEHOLDER_IMAGE_URL.
    """
    prompt = build_recipe_prompt(request)
    logger.info(
        f"Generating recipe: {len(request.ingredients)} ingredient(s), "
        f"mood={request.mood!r}, diet={request.dietary_preference.value}",
        extra={"flow": "generate_recipe"},
    )

    details = await invoke_generation(prompt, backend)
    recipe = finalize_recipe(details)

    logger.info(f"Recipe generated: {recipe.title!r}", extra={"flow": "generate_recipe"})
    return recipe
