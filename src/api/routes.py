"""HTTP routes for recipe generation, ingredient recognition and the recipe library.

All routes live under /api. User identity is read from the X-User-Id and
X-User-Name headers set by the authentication proxy in front of the service.
Backends and the repository come from app.state through dependencies, so tests
can swap in fakes.
"""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from src.actions.actions import handle_generate_recipe, handle_recognize_ingredients
from src.flows.generate_recipe import RecipeModelBackend
from src.flows.recognize_ingredients import VisionModelBackend
from src.models.models import (
    ActionError,
    IngredientRecognitionResult,
    LikeResponse,
    RecipeResult,
    SavedRecipe,
    SaveStatus,
)
from src.storage.recipes_repo import RecipeNotFoundError, RecipeRepository
from src.utils.config import Config


router = APIRouter(prefix="/api")


class GenerateRecipeBody(BaseModel):
    """Loose form payload; the actions layer does the real validation."""

    model_config = ConfigDict(populate_by_name=True)

    ingredients: List[str] = Field(default_factory=list)
    mood: Optional[str] = None
    dietary_preference: Optional[str] = Field(None, alias="dietaryPreference")


class RecognizeIngredientsBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_data_uri: str = Field(alias="imageDataUri")


# ============================================================================
# Dependencies
# ============================================================================


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_recipe_backend(request: Request) -> RecipeModelBackend:
    return request.app.state.recipe_backend


def get_vision_backend(request: Request) -> VisionModelBackend:
    return request.app.state.vision_backend


def get_repository(request: Request) -> RecipeRepository:
    return request.app.state.repository


def require_user(x_user_id: Annotated[Optional[str], Header()] = None) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not authenticated.")
    return x_user_id.strip()


def optional_user(x_user_id: Annotated[Optional[str], Header()] = None) -> Optional[str]:
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None


def _error_response(error: ActionError, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error.model_dump())


# ============================================================================
# Flows
# ============================================================================


@router.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


@router.post(
    "/recipes/generate",
    response_model=RecipeResult,
    responses={400: {"model": ActionError}},
    tags=["recipes"],
)
async def generate(
    body: GenerateRecipeBody,
    backend: Annotated[RecipeModelBackend, Depends(get_recipe_backend)],
):
    result = await handle_generate_recipe(
        body.ingredients, body.mood, body.dietary_preference, backend=backend
    )
    if isinstance(result, ActionError):
        return _error_response(result, status.HTTP_400_BAD_REQUEST)
    return result


@router.post(
    "/ingredients/recognize",
    response_model=IngredientRecognitionResult,
    responses={422: {"model": ActionError}},
    tags=["ingredients"],
)
async def recognize(
    body: RecognizeIngredientsBody,
    backend: Annotated[VisionModelBackend, Depends(get_vision_backend)],
    config: Annotated[Config, Depends(get_config)],
):
    result = await handle_recognize_ingredients(body.image_data_uri, backend=backend, config=config)
    if isinstance(result, ActionError):
        return _error_response(result, status.HTTP_422_UNPROCESSABLE_ENTITY)
    return result


# ============================================================================
# Saved recipes (signed-in user)
# ============================================================================


@router.get("/recipes/saved", response_model=List[SavedRecipe], tags=["library"])
def list_saved(
    user_id: Annotated[str, Depends(require_user)],
    repo: Annotated[RecipeRepository, Depends(get_repository)],
):
    return repo.list_saved(user_id)


@router.post(
    "/recipes/saved",
    response_model=SavedRecipe,
    status_code=status.HTTP_201_CREATED,
    tags=["library"],
)
def save(
    recipe: RecipeResult,
    user_id: Annotated[str, Depends(require_user)],
    repo: Annotated[RecipeRepository, Depends(get_repository)],
    x_user_name: Annotated[Optional[str], Header()] = None,
):
    return repo.save_recipe(user_id, recipe, author_name=x_user_name)


@router.get("/recipes/saved/status", response_model=SaveStatus, tags=["library"])
def save_status(
    title: Annotated[str, Query(min_length=1)],
    user_id: Annotated[str, Depends(require_user)],
    repo: Annotated[RecipeRepository, Depends(get_repository)],
):
    existing = repo.find_saved_by_title(user_id, title)
    return SaveStatus(saved=existing is not None, recipe_id=existing.id if existing else None)


@router.post("/recipes/saved/toggle", response_model=SaveStatus, tags=["library"])
def toggle_save(
    recipe: RecipeResult,
    user_id: Annotated[str, Depends(require_user)],
    repo: Annotated[RecipeRepository, Depends(get_repository)],
    x_user_name: Annotated[Optional[str], Header()] = None,
):
    saved, recipe_id = repo.toggle_save(user_id, recipe, author_name=x_user_name)
    return SaveStatus(saved=saved, recipe_id=recipe_id)


@router.delete(
    "/recipes/saved/{recipe_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["library"],
)
def delete_saved(
    recipe_id: str,
    user_id: Annotated[str, Depends(require_user)],
    repo: Annotated[RecipeRepository, Depends(get_repository)],
):
    try:
        repo.delete_saved(user_id, recipe_id)
    except RecipeNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


# ============================================================================
# Community feed
# ============================================================================


@router.get("/explore", response_model=List[SavedRecipe], tags=["explore"])
def explore(
    repo: Annotated[RecipeRepository, Depends(get_repository)],
    config: Annotated[Config, Depends(get_config)],
    limit: Annotated[Optional[int], Query(ge=1, le=100)] = None,
    search: Optional[str] = None,
):
    return repo.list_public(limit=limit or config.EXPLORE_PAGE_SIZE, search=search)


@router.post("/explore/{recipe_id}/like", response_model=LikeResponse, tags=["explore"])
def like(
    recipe_id: str,
    user_id: Annotated[str, Depends(require_user)],
    repo: Annotated[RecipeRepository, Depends(get_repository)],
):
    try:
        like_count = repo.like_recipe(recipe_id)
    except RecipeNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return LikeResponse(id=recipe_id, like_count=like_count)


@router.get("/recipes/{recipe_id}", response_model=SavedRecipe, tags=["recipes"])
def get_recipe(
    recipe_id: str,
    repo: Annotated[RecipeRepository, Depends(get_repository)],
    user_id: Annotated[Optional[str], Depends(optional_user)],
):
    try:
        return repo.get_recipe(recipe_id, user_id=user_id)
    except RecipeNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
