#!/usr/bin/env python3
"""Ad hoc recipe generator for the Mood Chef service.

Run the generation flow directly without starting the API server.

Usage:
    python query.py tomato onion
    python query.py --mood Comforting --diet Vegan tomato onion
    python query.py --image images/fridge.png --diet Veg
    python query.py --debug tomato "olive oil"  # Show full JSON response

Features:
- Direct flow execution through the actions layer
- Image support: recognized ingredients are merged with typed ones
- Markdown rendering of the recipe with rich
"""

import argparse
import asyncio
import base64
import sys
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown

from src.actions.actions import handle_generate_recipe, handle_recognize_ingredients
from src.agents.agent import AgnoRecipeBackend
from src.flows.recognize_ingredients import GeminiVisionBackend, normalize_ingredients
from src.models.models import ActionError, RecipeResult
from src.utils.config import config
from src.utils.logger import logger

console = Console()

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".heic": "image/heic",
}


def image_to_data_uri(image_path: Path) -> str:
    """Read an image file and encode it as a base64 data URI."""
    mime_type = MIME_TYPES.get(image_path.suffix.lower(), "image/jpeg")
    encoded = base64.b64encode(image_path.read_bytes()).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def render_recipe(recipe: RecipeResult) -> str:
    """Format a recipe as Markdown."""
    return (
        f"# {recipe.title}\n\n"
        f"**Cook time:** {recipe.cook_time}\n\n"
        f"## Instructions\n\n{recipe.instructions}\n\n"
        f"## Nutrition\n\n{recipe.nutritional_information}\n"
    )


async def run_query(
    ingredients: list[str],
    mood: str = None,
    diet: str = None,
    image_path: str = None,
    debug: bool = False,
) -> int:
    """Generate one recipe and print it. Returns a process exit code."""
    if image_path:
        image_file = Path(image_path)
        if not image_file.exists():
            console.print(f"[red]✗ Error: Image file not found: {image_path}[/red]")
            return 1

        logger.info(f"Recognizing ingredients in {image_file.name}...")
        recognized = await handle_recognize_ingredients(
            image_to_data_uri(image_file), backend=GeminiVisionBackend(config), config=config
        )
        if isinstance(recognized, ActionError):
            console.print(f"[red]✗ Error: {recognized.error}[/red]")
            return 1
        logger.info(f"✓ Recognized: {', '.join(recognized.recognized_ingredients) or '(nothing)'}")
        ingredients = normalize_ingredients(ingredients + recognized.recognized_ingredients)

    logger.info(f"Generating recipe for: {', '.join(ingredients) or '(no ingredients)'}")
    result = await handle_generate_recipe(ingredients, mood, diet, backend=AgnoRecipeBackend(config))

    console.print()
    if isinstance(result, ActionError):
        console.print(f"[red]✗ {result.error}[/red]")
        return 1

    if debug:
        console.print("[bold cyan]Debug Mode: Full Response[/bold cyan]")
        console.print_json(data=result.model_dump(by_alias=True))
        console.print()

    console.print(Markdown(render_recipe(result)))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a recipe from ingredients.")
    parser.add_argument("ingredients", nargs="*", help="Ingredients you have")
    parser.add_argument("--mood", help="Your mood, e.g. Comforting, Energetic, Quick & Easy")
    parser.add_argument("--diet", help="Dietary preference: Veg, Non-Veg, Vegan, Any")
    parser.add_argument("--image", help="Photo of ingredients to recognize")
    parser.add_argument("--debug", action="store_true", help="Print the full JSON response")
    args = parser.parse_args()

    try:
        config.validate()
    except ValueError as e:
        console.print(f"[red]✗ Configuration error: {e}[/red]")
        sys.exit(1)

    try:
        sys.exit(asyncio.run(run_query(args.ingredients, args.mood, args.diet, args.image, args.debug)))
    except KeyboardInterrupt:
        logger.info("\nQuery interrupted by user.")
        sys.exit(0)


if __name__ == "__main__":
    main()
