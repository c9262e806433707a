"""Data models and schemas for the Mood Chef recipe service.

Defines Pydantic models for request/response validation and domain objects.
All models use Pydantic v2. Field names are snake_case in Python and camelCase
on the wire (``cookTime``, ``imageDataUri``, ...); both spellings are accepted
on input.

``RecipeDetails`` is the schema handed to the generation model. It
has no image field: the image URL is attached afterwards by the finalizer, and
any ``imageUrl`` key the model adds anyway is dropped during validation.
"""

import base64
import binascii
import re
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DietaryPreference(str, Enum):
    """Closed set of dietary preferences accepted by the recipe flow."""

    VEGETARIAN = "Veg"
    NON_VEGETARIAN = "Non-Veg"
    VEGAN = "Vegan"
    ANY = "Any"

    @classmethod
    def parse(cls, value: Optional[str]) -> "DietaryPreference":
        """Resolve a wire value or long-form alias. None/blank means ANY."""
        if value is None:
            return cls.ANY
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("_", "-").replace(" ", "-")
        if not key:
            return cls.ANY
        try:
            return _DIETARY_ALIASES[key]
        except KeyError:
            allowed = ", ".join(p.value for p in cls)
            raise ValueError(f"dietaryPreference must be one of {allowed}, got: {value}") from None


_DIETARY_ALIASES = {
    "veg": DietaryPreference.VEGETARIAN,
    "vegetarian": DietaryPreference.VEGETARIAN,
    "non-veg": DietaryPreference.NON_VEGETARIAN,
    "non-vegetarian": DietaryPreference.NON_VEGETARIAN,
    "nonveg": DietaryPreference.NON_VEGETARIAN,
    "vegan": DietaryPreference.VEGAN,
    "any": DietaryPreference.ANY,
}

_DATA_URI_RE = re.compile(
    r"^data:(?P<mime>[A-Za-z0-9.+-]+/[A-Za-z0-9.+-]+)(?P<params>(;[^;,]+=[^;,]*)*);base64,(?P<data>.*)$",
    re.DOTALL,
)


def parse_data_uri(data_uri: str) -> tuple[str, bytes]:
    """Split a ``data:<mime>;base64,<payload>`` URI into (mime_type, bytes).

    Raises:
        ValueError: If the URI is not base64 encoded, has no explicit MIME type,
            is not an image, or the payload is not valid base64.
    """
    match = _DATA_URI_RE.match(data_uri.strip()) if isinstance(data_uri, str) else None
    if not match:
        raise ValueError(
            "Image must be a data URI with an explicit MIME type: 'data:<mimetype>;base64,<encoded_data>'"
        )

    mime_type = match.group("mime").lower()
    if not mime_type.startswith("image/"):
        raise ValueError(f"Unsupported MIME type for ingredient recognition: {mime_type}")

    payload = re.sub(r"\s+", "", match.group("data"))
    if not payload:
        raise ValueError("Image data URI has an empty payload")
    try:
        image_bytes = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Image data URI payload is not valid base64") from None

    return mime_type, image_bytes


class RecipeRequest(BaseModel):
    """Input of the recipe-generation flow.

    The "at least one non-empty ingredient" rule belongs to the caller
    (see src/actions/actions.py); the flow itself accepts the list as given.
    """

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    ingredients: Annotated[
        List[str], Field(description="Ingredients available to use in the recipe, in the user's order")
    ]
    mood: Annotated[
        Optional[str],
        Field(None, description="Current mood, e.g. Happy, Comforting, Energetic, Quick & Easy"),
    ]
    dietary_preference: Annotated[
        DietaryPreference,
        Field(
            DietaryPreference.ANY,
            alias="dietaryPreference",
            description="Dietary preference: Veg, Non-Veg, Vegan, or Any",
        ),
    ]

    @field_validator("dietary_preference", mode="before")
    @classmethod
    def parse_dietary_preference(cls, value):
        return DietaryPreference.parse(value)

    @field_validator("mood", mode="before")
    @classmethod
    def blank_mood_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class RecipeDetails(BaseModel):
    """Structured output requested from the generation model (no image field)."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    title: Annotated[str, Field(description="A creative and descriptive title for the recipe.")]
    instructions: Annotated[str, Field(description="Clear, step-by-step cooking instructions for the recipe.")]
    cook_time: Annotated[
        str, Field(alias="cookTime", description="The estimated cooking time for the recipe.")
    ]
    nutritional_information: Annotated[
        str,
        Field(alias="nutritionalInformation", description="Nutritional information for the recipe."),
    ]

    @field_validator("title", "instructions")
    @classmethod
    def require_text(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be empty")
        return value


class RecipeResult(RecipeDetails):
    """Final recipe returned to callers: model details plus the placeholder image."""

    image_url: Annotated[str, Field(alias="imageUrl", min_length=1, description="Placeholder image URL")]


class IngredientRecognitionRequest(BaseModel):
    """Input of the ingredient-recognition flow: one image as a data URI."""

    model_config = ConfigDict(populate_by_name=True)

    image_data_uri: Annotated[
        str,
        Field(
            alias="imageDataUri",
            description="Photo of food ingredients as 'data:<mimetype>;base64,<encoded_data>'",
        ),
    ]

    @field_validator("image_data_uri")
    @classmethod
    def validate_data_uri(cls, value: str) -> str:
        parse_data_uri(value)
        return value.strip()


class RecognizedIngredients(BaseModel):
    """Structured output requested from the vision model."""

    model_config = ConfigDict(populate_by_name=True)

    recognized_ingredients: Annotated[
        List[str],
        Field(
            alias="recognizedIngredients",
            description="Distinct food ingredients recognized in the image",
        ),
    ]


class IngredientRecognitionResult(RecognizedIngredients):
    """Output of the ingredient-recognition flow. An empty list is a valid result."""


class ActionError(BaseModel):
    """User-facing error returned by the caller boundary instead of a result."""

    error: str


class SavedRecipe(BaseModel):
    """A recipe stored in a user's collection or in the community feed."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    instructions: str
    cook_time: Annotated[str, Field(alias="cookTime")]
    nutritional_information: Annotated[str, Field(alias="nutritionalInformation")]
    image_url: Annotated[str, Field(alias="imageUrl")]
    saved_at: Annotated[str, Field(alias="savedAt", description="ISO-8601 UTC timestamp")]
    like_count: Annotated[int, Field(0, alias="likeCount", ge=0)]
    user_id: Annotated[Optional[str], Field(None, alias="userId")]
    author_display_name: Annotated[Optional[str], Field(None, alias="authorDisplayName")]


class SaveStatus(BaseModel):
    """Whether a recipe with a given title is in the user's collection."""

    model_config = ConfigDict(populate_by_name=True)

    saved: bool
    recipe_id: Annotated[Optional[str], Field(None, alias="recipeId")]


class LikeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    like_count: Annotated[int, Field(alias="likeCount")]
