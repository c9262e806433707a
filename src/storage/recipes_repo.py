"""Recipe library: saved recipes per user and the public community feed.

Stored in SQLite (DATABASE_FILE). Saving a recipe writes two rows in one
transaction: the user's private copy and a public "explore" copy with its own
id and like counter. Deleting a saved recipe removes only the private copy.

User identity comes from the authentication layer in front of the service; this
module only requires a non-empty user id where a signed-in user is needed.
"""

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from src.models.models import RecipeResult, SavedRecipe
from src.utils.logger import logger


DEFAULT_AUTHOR_NAME = "Community Chef"
DEFAULT_IMAGE_URL = "https://picsum.photos/600/400"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS saved_recipes (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    instructions TEXT NOT NULL,
    cook_time TEXT NOT NULL,
    nutritional_information TEXT NOT NULL,
    image_url TEXT NOT NULL,
    like_count INTEGER NOT NULL DEFAULT 0,
    saved_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_saved_user_time ON saved_recipes (user_id, saved_at DESC);

CREATE TABLE IF NOT EXISTS public_recipes (
    id TEXT PRIMARY KEY,
    author_id TEXT NOT NULL,
    author_display_name TEXT NOT NULL,
    title TEXT NOT NULL,
    instructions TEXT NOT NULL,
    cook_time TEXT NOT NULL,
    nutritional_information TEXT NOT NULL,
    image_url TEXT NOT NULL,
    like_count INTEGER NOT NULL DEFAULT 0,
    saved_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_public_time ON public_recipes (saved_at DESC);
"""


class RecipeNotFoundError(LookupError):
    """No recipe with the given id."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_user(user_id: Optional[str]) -> str:
    if not user_id or not user_id.strip():
        raise PermissionError("User not authenticated.")
    return user_id.strip()


def _recipe_fields(recipe: RecipeResult) -> dict[str, str]:
    """Stored recipe fields, with the defaults used for missing values."""
    return {
        "title": recipe.title or "Unnamed Recipe",
        "instructions": recipe.instructions or "No instructions provided.",
        "cook_time": recipe.cook_time or "N/A",
        "nutritional_information": recipe.nutritional_information or "No nutritional information available.",
        "image_url": recipe.image_url or DEFAULT_IMAGE_URL,
    }


def _saved_from_row(row: sqlite3.Row) -> SavedRecipe:
    return SavedRecipe(
        id=row["id"],
        title=row["title"],
        instructions=row["instructions"],
        cook_time=row["cook_time"],
        nutritional_information=row["nutritional_information"],
        image_url=row["image_url"],
        saved_at=row["saved_at"],
        like_count=row["like_count"],
        user_id=row["user_id"],
    )


def _public_from_row(row: sqlite3.Row) -> SavedRecipe:
    return SavedRecipe(
        id=row["id"],
        title=row["title"],
        instructions=row["instructions"],
        cook_time=row["cook_time"],
        nutritional_information=row["nutritional_information"],
        image_url=row["image_url"] or DEFAULT_IMAGE_URL,
        saved_at=row["saved_at"],
        like_count=row["like_count"],
        author_display_name=row["author_display_name"] or DEFAULT_AUTHOR_NAME,
    )


class RecipeRepository:
    """SQLite-backed store for saved and community recipes."""

    def __init__(self, db_file: str) -> None:
        self.db_file = db_file
        # An in-memory database lives only as long as its connection, so keep one open.
        self._memory_conn: Optional[sqlite3.Connection] = None
        if db_file == ":memory:":
            self._memory_conn = sqlite3.connect(db_file, check_same_thread=False)
            self._memory_conn.row_factory = sqlite3.Row

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        if self._memory_conn is not None:
            conn = self._memory_conn
        else:
            conn = sqlite3.connect(self.db_file)
            conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if conn is not self._memory_conn:
                conn.close()

    def init_db(self) -> None:
        """Create tables (idempotent). Creates the parent directory if needed."""
        if self.db_file != ":memory:":
            Path(self.db_file).parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(_SCHEMA)
        logger.info(f"Recipe database ready: {self.db_file}")

    def save_recipe(
        self, user_id: str, recipe: RecipeResult, author_name: Optional[str] = None
    ) -> SavedRecipe:
        """Save a recipe to the user's collection and publish it to the community feed.

        Returns:
            The user's saved copy.
        """
        user_id = _require_user(user_id)
        fields = _recipe_fields(recipe)
        saved_at = _now_iso()
        saved_id = uuid.uuid4().hex
        public_id = uuid.uuid4().hex

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO saved_recipes
                    (id, user_id, title, instructions, cook_time, nutritional_information, image_url, like_count, saved_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?)
                """,
                (saved_id, user_id, fields["title"], fields["instructions"], fields["cook_time"],
                 fields["nutritional_information"], fields["image_url"], saved_at),
            )
            conn.execute(
                """
                INSERT INTO public_recipes
                    (id, author_id, author_display_name, title, instructions, cook_time,
                     nutritional_information, image_url, like_count, saved_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
                """,
                (public_id, user_id, (author_name or "").strip() or DEFAULT_AUTHOR_NAME, fields["title"],
                 fields["instructions"], fields["cook_time"], fields["nutritional_information"],
                 fields["image_url"], saved_at),
            )

        logger.info(f"Recipe saved: {fields['title']!r}", extra={"user_id": user_id, "recipe_id": saved_id})
        return SavedRecipe(id=saved_id, user_id=user_id, saved_at=saved_at, like_count=0, **fields)

    def find_saved_by_title(self, user_id: str, title: str) -> Optional[SavedRecipe]:
        """Return the user's saved recipe with this exact title, if any."""
        user_id = _require_user(user_id)
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM saved_recipes WHERE user_id = ? AND title = ? ORDER BY saved_at DESC LIMIT 1",
                (user_id, title),
            ).fetchone()
        return _saved_from_row(row) if row else None

    def toggle_save(
        self, user_id: str, recipe: RecipeResult, author_name: Optional[str] = None
    ) -> tuple[bool, Optional[str]]:
        """Save the recipe, or unsave it if a copy with the same title is already saved.

        Returns:
            (saved, saved_recipe_id): saved is False and id None after an unsave.
        """
        existing = self.find_saved_by_title(user_id, recipe.title)
        if existing:
            self.delete_saved(user_id, existing.id)
            return False, None
        saved = self.save_recipe(user_id, recipe, author_name=author_name)
        return True, saved.id

    def list_saved(self, user_id: str) -> list[SavedRecipe]:
        """User's saved recipes, newest first."""
        user_id = _require_user(user_id)
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM saved_recipes WHERE user_id = ? ORDER BY saved_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [_saved_from_row(r) for r in rows]

    def delete_saved(self, user_id: str, recipe_id: str) -> None:
        """Remove a recipe from the user's collection (the public copy stays).

        Raises:
            RecipeNotFoundError: If the user has no saved recipe with this id.
        """
        user_id = _require_user(user_id)
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM saved_recipes WHERE id = ? AND user_id = ?",
                (recipe_id, user_id),
            )
            deleted = cur.rowcount
        if not deleted:
            raise RecipeNotFoundError(f"Saved recipe {recipe_id} not found")
        logger.info("Saved recipe deleted", extra={"user_id": user_id, "recipe_id": recipe_id})

    def list_public(self, limit: int = 24, search: Optional[str] = None) -> list[SavedRecipe]:
        """Community feed, newest first.

        Args:
            limit: Maximum number of recipes fetched from the feed.
            search: Optional case-insensitive filter on title or author name,
                applied to the fetched page.
        """
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM public_recipes ORDER BY saved_at DESC, rowid DESC LIMIT ?",
                (int(limit),),
            ).fetchall()
        recipes = [_public_from_row(r) for r in rows]

        term = (search or "").strip().lower()
        if term:
            recipes = [
                r for r in recipes
                if term in r.title.lower() or term in (r.author_display_name or "").lower()
            ]
        return recipes

    def like_recipe(self, recipe_id: str) -> int:
        """Increment a community recipe's like counter.

        Returns:
            The new like count.

        Raises:
            RecipeNotFoundError: If no community recipe has this id.
        """
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE public_recipes SET like_count = like_count + 1 WHERE id = ?",
                (recipe_id,),
            )
            if not cur.rowcount:
                raise RecipeNotFoundError(f"Recipe {recipe_id} not found")
            row = conn.execute(
                "SELECT like_count FROM public_recipes WHERE id = ?", (recipe_id,)
            ).fetchone()
        return int(row["like_count"])

    def get_recipe(self, recipe_id: str, user_id: Optional[str] = None) -> SavedRecipe:
        """Look a recipe up in the community feed, then in the user's collection.

        Raises:
            RecipeNotFoundError: If neither place has it.
        """
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM public_recipes WHERE id = ?", (recipe_id,)).fetchone()
            if row:
                return _public_from_row(row)
            if user_id:
                row = conn.execute(
                    "SELECT * FROM saved_recipes WHERE id = ? AND user_id = ?",
                    (recipe_id, user_id),
                ).fetchone()
                if row:
                    return _saved_from_row(row)
        raise RecipeNotFoundError(f'Recipe with ID "{recipe_id}" not found.')
