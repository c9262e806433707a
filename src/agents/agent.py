"""Agent factory and model backend for recipe generation.

The recipe flow talks to the generation model through a small backend object
(``generate(prompt, schema)``) so the flow can be tested with a fake. The
production backend wraps an Agno Agent configured with a Gemini model and a
structured output schema.

Retries are disabled: recipe generation is a single attempt and
failures surface to the user, who can resubmit.
"""

from typing import Optional

from agno.agent import Agent
from agno.models.google import Gemini
from agno.run.base import RunStatus
from pydantic import BaseModel, ValidationError

from src.models.models import RecipeDetails
from src.prompts.prompts import CHEF_INSTRUCTIONS
from src.utils.config import Config
from src.utils.logger import logger


def create_chef_agent(config: Config, output_schema: type[BaseModel] = RecipeDetails) -> Agent:
    """Create the Agno Agent used for recipe generation.

    Args:
        config: Explicit configuration (API key, model id, sampling settings).
        output_schema: Pydantic model the response must conform to.

    Returns:
        Configured Agent instance. Stateless: no db, memory or history.
    """
    agent = Agent(
        # === Model Configuration ===
        model=Gemini(
            id=config.GEMINI_MODEL,
            api_key=config.GEMINI_API_KEY,
            temperature=config.TEMPERATURE,
            max_output_tokens=config.MAX_OUTPUT_TOKENS,
        ),
        # === Input/Output Schemas ===
        output_schema=output_schema,
        structured_outputs=True,  # Native Gemini structured output (schema-valid JSON at API level)
        # === Instructions ===
        instructions=CHEF_INSTRUCTIONS,
        # === Retry & Error Handling ===
        retries=0,  # Single attempt, fail fast
        # === Metadata ===
        name="Recipe Chef",
        description="Creates a complete recipe from ingredients, mood, and dietary preference",
    )
    logger.debug(f"Chef agent configured (model={config.GEMINI_MODEL}, schema={output_schema.__name__})")
    return agent


def coerce_output(content, schema: type[BaseModel]) -> Optional[BaseModel]:
    """Validate raw model content against a schema.

    Accepts a schema instance, another Pydantic model, a dict, or a JSON string.
    Keys outside the schema are dropped by validation.

    Returns:
        Schema instance, or None if content is missing or does not conform.
    """
    if content is None:
        return None
    if isinstance(content, schema):
        return content

    try:
        if isinstance(content, BaseModel):
            return schema.model_validate(content.model_dump(by_alias=True))
        if isinstance(content, dict):
            return schema.model_validate(content)
        if isinstance(content, (str, bytes)):
            if not content.strip():
                return None
            return schema.model_validate_json(content)
    except ValidationError as e:
        logger.warning(f"Model output does not match {schema.__name__}: {e.error_count()} validation error(s)")
        return None

    logger.warning(f"Unexpected model output type: {type(content).__name__}")
    return None


class AgnoRecipeBackend:
    """Generation backend that runs a Gemini-backed Agno Agent.

    One agent is built lazily per output schema and reused across requests;
    agents carry no per-request state here (no db, no history).
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self._agents: dict[type[BaseModel], Agent] = {}

    def _agent_for(self, schema: type[BaseModel]) -> Agent:
        if schema not in self._agents:
            self._agents[schema] = create_chef_agent(self.config, output_schema=schema)
        return self._agents[schema]

    async def generate(self, prompt: str, schema: type[BaseModel]) -> Optional[BaseModel]:
        """Run the prompt and return a schema instance, or None when there is no usable output.

        Raises:
            RuntimeError: If the agent run ends in an error state.
            Exception: Transport or model errors raised by the model provider.
        """
        run_output = await self._agent_for(schema).arun(input=prompt)
        if run_output is None:
            return None

        if getattr(run_output, "status", None) == RunStatus.error:
            raise RuntimeError(str(run_output.content or "Recipe generation run failed"))

        return coerce_output(run_output.content, schema)
