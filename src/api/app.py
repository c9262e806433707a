"""FastAPI application factory.

Wires configuration, model backends and the recipe repository into app.state.
Defaults are the production implementations; tests pass fakes instead.
"""

from typing import Optional

from fastapi import FastAPI

from src.agents.agent import AgnoRecipeBackend
from src.api.routes import router
from src.flows.generate_recipe import RecipeModelBackend
from src.flows.recognize_ingredients import GeminiVisionBackend, VisionModelBackend
from src.storage.recipes_repo import RecipeRepository
from src.utils.config import Config
from src.utils.logger import logger


def create_app(
    config: Config,
    recipe_backend: Optional[RecipeModelBackend] = None,
    vision_backend: Optional[VisionModelBackend] = None,
    repository: Optional[RecipeRepository] = None,
) -> FastAPI:
    """Build the API application.

    Args:
        config: Explicit configuration.
        recipe_backend: Generation backend (default: AgnoRecipeBackend).
        vision_backend: Vision backend (default: GeminiVisionBackend).
        repository: Recipe library (default: SQLite file at DATABASE_FILE).

    Returns:
        FastAPI app with routes under /api.
    """
    app = FastAPI(
        title="Mood Chef",
        description="Recipe generation from ingredients, mood and dietary preference",
    )

    if repository is None:
        repository = RecipeRepository(config.DATABASE_FILE)
    repository.init_db()

    app.state.config = config
    app.state.recipe_backend = recipe_backend or AgnoRecipeBackend(config)
    app.state.vision_backend = vision_backend or GeminiVisionBackend(config)
    app.state.repository = repository

    app.include_router(router)

    logger.info(
        f"API configured (model={config.GEMINI_MODEL}, vision_model={config.IMAGE_DETECTION_MODEL}, "
        f"db={config.DATABASE_FILE})"
    )
    return app
