"""AgentOS Application - Mood Chef recipe service.

Single entry point for the complete service:
- Validates configuration (fail-fast on missing GEMINI_API_KEY)
- Builds the FastAPI app (generation, recognition, recipe library under /api)
- Serves it through AgentOS, which also exposes the chef agent

Run with: python app.py
"""

from agno.os import AgentOS

from src.agents.agent import AgnoRecipeBackend, create_chef_agent
from src.api.app import create_app
from src.utils.config import config
from src.utils.logger import logger


try:
    config.validate()
except ValueError as e:
    logger.error(f"Invalid configuration: {e}")
    raise SystemExit(1) from e

recipe_backend = AgnoRecipeBackend(config)
base_app = create_app(config, recipe_backend=recipe_backend)

agent_os = AgentOS(
    description="Mood Chef: recipes from ingredients, mood and dietary preference",
    agents=[create_chef_agent(config)],
    base_app=base_app,
)
app = agent_os.get_app()


if __name__ == "__main__":
    logger.info(f"Starting Mood Chef on port {config.PORT}")
    logger.info(f"API docs available at: http://localhost:{config.PORT}/docs")
    agent_os.serve(app="app:app", port=config.PORT)
