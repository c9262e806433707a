"""Prompts and instructions for the recipe-generation and ingredient-recognition flows.

Provides pure functions that render prompt text from validated requests.
Rendering is deterministic: the same request always yields byte-identical text
(no timestamps, no randomness), which keeps the prompts easy to test.

Dietary handling is an enum-keyed table (DIETARY_CLAUSES) so every preference maps
to exactly one clause.
"""

from src.models.models import DietaryPreference, RecipeRequest


CHEF_INSTRUCTIONS = [
    "You are a world-class chef, skilled at creating delicious recipes from a provided list of ingredients.",
    "Always answer with a single complete recipe that fits the requested mood (if any) and dietary preference.",
    "Never suggest an image, an image prompt, or an image URL.",
]

DIETARY_CLAUSES: dict[DietaryPreference, str] = {
    DietaryPreference.VEGETARIAN: (
        "The recipe MUST be strictly vegetarian. Do not include any meat, poultry, or fish. "
        "It can include dairy and eggs."
    ),
    DietaryPreference.NON_VEGETARIAN: "The recipe can include meat, poultry, or fish.",
    DietaryPreference.VEGAN: (
        "The recipe MUST be strictly vegan. Do not include any meat, poultry, fish, "
        "dairy products (milk, cheese, butter, yogurt), eggs, or honey."
    ),
    DietaryPreference.ANY: "There are no specific dietary restrictions.",
}

_RECIPE_PREAMBLE = """You are a world-class chef, skilled at creating delicious recipes from a provided list of ingredients.
The user is also providing their current mood and dietary preference.

I will provide you a list of ingredients, a mood, and a dietary preference. You will respond with a complete recipe, including:
- A creative and descriptive title for the recipe.
- Clear, step-by-step cooking instructions.
- An estimated cook time.
- Nutritional information."""

_RECIPE_CLOSING = """Do NOT suggest an image or image prompt.
Ensure the recipe aligns with the provided mood (if any) and dietary preference."""

RECOGNITION_PROMPT = """You are an expert at identifying food ingredients from images. Analyze the provided image and list all distinct food ingredients you recognize.
Return your response as a JSON object that strictly adheres to the following structure:
{ "recognizedIngredients": [string, ...] }
The value of "recognizedIngredients" should be an array of strings, where each string is an identified ingredient.
Example for a picture of a tomato and an onion: { "recognizedIngredients": ["tomato", "onion"] }
If no ingredients are identifiable or the image does not contain food items, return an empty array: { "recognizedIngredients": [] }
Do not include any explanations or conversational text outside of the JSON object."""


def get_dietary_clause(preference: DietaryPreference) -> str:
    """Return the single dietary clause for a preference.

    Args:
        preference: Dietary preference from the request.

    Returns:
        str: Clause text (exactly one per preference).
    """
    return DIETARY_CLAUSES[DietaryPreference.parse(preference)]


def get_mood_clause(mood: str | None) -> str | None:
    """Return the mood clause, or None when no mood was given."""
    if not mood or not mood.strip():
        return None
    return f"Mood: {mood.strip()}. Please generate a recipe that fits this mood."


def build_recipe_prompt(request: RecipeRequest) -> str:
    """Render the recipe-generation prompt for a request.

    Sections, in order: preamble, ingredient list, optional mood clause,
    dietary preference line with its clause, closing constraints.

    Args:
        request: Validated recipe request.

    Returns:
        str: Prompt text for the generation model.
    """
    preference = request.dietary_preference
    sections = [
        _RECIPE_PREAMBLE,
        f"Ingredients: {', '.join(request.ingredients)}",
    ]

    mood_clause = get_mood_clause(request.mood)
    if mood_clause:
        sections.append(mood_clause)

    sections.append(f"Dietary Preference: {preference.value}.\n{get_dietary_clause(preference)}")
    sections.append(_RECIPE_CLOSING)

    return "\n\n".join(sections)


def build_recognition_prompt() -> str:
    """Return the instruction sent with the image to the vision model."""
    return RECOGNITION_PROMPT
