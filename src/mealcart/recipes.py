"""Recipe lookup: the resolver contract and a markdown-note recipe library."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

import frontmatter

from mealcart.models import Recipe, RecipeIngredient

logger = logging.getLogger(__name__)

UNICODE_FRACTIONS = {
    "¼": 0.25,
    "½": 0.5,
    "¾": 0.75,
    "⅓": 1 / 3,
    "⅔": 2 / 3,
    "⅛": 0.125,
}


class RecipeResolver(Protocol):
    """Anything that can turn a recipe id into a Recipe.

    resolve() returns None both when the recipe does not exist and when the
    lookup failed; callers treat the two the same way.
    """

    def resolve(self, recipe_id: str) -> Recipe | None: ...


def parse_amount(raw: str | int | float | None) -> float:
    """Parse varied ingredient amount formats into a number.

    Handles: 2, "2", "0.5", "1/2", "1 1/2", "½", "1½", "2-3" (lower bound),
    "" -> 0.0. Anything unparseable also yields 0.0.
    """
    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        return float(raw)

    s = str(raw).strip()
    if not s:
        return 0.0

    for glyph, value in UNICODE_FRACTIONS.items():
        if glyph in s:
            whole = s.replace(glyph, "").strip()
            return (float(whole) if re.fullmatch(r"\d+", whole) else 0.0) + value

    # "2-3", "2 to 3"
    m = re.match(r"^(.+?)\s*(?:-|\bto\b)\s*[\d./\s]+$", s)
    if m and not s.startswith("-"):
        s = m.group(1)

    # "1 1/2"
    m = re.match(r"^(\d+)\s+(\d+)/(\d+)$", s)
    if m:
        return int(m.group(1)) + int(m.group(2)) / int(m.group(3))

    # "1/2"
    m = re.match(r"^(\d+)/(\d+)$", s)
    if m and int(m.group(2)) != 0:
        return int(m.group(1)) / int(m.group(2))

    # "2", "0.5", "2 large"
    m = re.match(r"^(\d+(?:\.\d+)?)", s)
    if m:
        return float(m.group(1))

    return 0.0


def _to_float(val: object) -> float | None:
    if val is None or val == "":
        return None
    try:
        return float(val)  # type: ignore[arg-type]
    except (ValueError, TypeError):
        return None


def _to_int(val: object) -> int | None:
    f = _to_float(val)
    if f is None or f <= 0:
        return None
    return int(f)


def _to_str(val: object) -> str | None:
    if val is None or val == "":
        return None
    return str(val).strip()


def _parse_ingredients(raw: object) -> list[RecipeIngredient]:
    if not isinstance(raw, list):
        return []
    ingredients = []
    for entry in raw:
        if not isinstance(entry, dict) or not entry.get("item"):
            continue
        amount = entry.get("amount", entry.get("quantity"))
        ingredients.append(
            RecipeIngredient(
                item=str(entry["item"]).strip(),
                quantity=parse_amount(amount),
                unit=_to_str(entry.get("unit")) or "",
            )
        )
    return ingredients


def parse_recipe_file(file_path: Path, source: str = "library") -> Recipe | None:
    """Parse a single recipe markdown note into a Recipe, or None if it isn't one."""
    try:
        post = frontmatter.load(file_path)
    except Exception as e:
        logger.debug("SKIP (unreadable): %s: %s", file_path.name, e)
        return None

    meta = post.metadata
    if meta.get("type") != "recipe":
        return None

    tags = meta.get("tags", []) or []
    if isinstance(tags, str):
        tags = [t.strip() for t in tags.split(",")]

    return Recipe(
        id=_to_str(meta.get("id")) or file_path.stem,
        name=_to_str(meta.get("name")) or file_path.stem,
        category=_to_str(meta.get("category")),
        servings=_to_int(meta.get("servings")),
        calories=_to_float(meta.get("calories")),
        protein_g=_to_float(meta.get("protein_g")),
        carbs_g=_to_float(meta.get("carbs_g")),
        fat_g=_to_float(meta.get("fat_g")),
        tags=[str(t) for t in tags],
        ingredients=_parse_ingredients(meta.get("ingredients")),
        source=source,
    )


def discover_recipe_files(recipes_path: Path) -> list[Path]:
    """Find all .md files in a recipe directory."""
    if not recipes_path.is_dir():
        return []
    return sorted(recipes_path.glob("*.md"))


class RecipeLibrary:
    """Recipes read from a directory of notes plus a directory of the user's own.

    The two sources are concatenated (library first) before any lookup,
    filtering or search, so a user-authored recipe cannot shadow a library
    recipe with the same id.
    """

    def __init__(self, recipes_path: Path, custom_path: Path | None = None) -> None:
        self.recipes_path = Path(recipes_path)
        self.custom_path = Path(custom_path) if custom_path else None

    def _load_source(self, path: Path | None, source: str) -> list[Recipe]:
        if path is None:
            return []
        recipes = []
        try:
            files = discover_recipe_files(path)
        except OSError as e:
            logger.warning("Cannot read recipe directory %s: %s", path, e)
            return []
        for f in files:
            r = parse_recipe_file(f, source=source)
            if r:
                recipes.append(r)
        return recipes

    def list_all(self) -> list[Recipe]:
        return self._load_source(self.recipes_path, "library") + self._load_source(
            self.custom_path, "custom"
        )

    def list_by_category(self, category: str) -> list[Recipe]:
        wanted = category.lower()
        return [r for r in self.list_all() if (r.category or "").lower() == wanted]

    def search(self, query: str, category: str | None = None) -> list[Recipe]:
        """Case-insensitive substring search over name, category and tags."""
        recipes = self.list_by_category(category) if category else self.list_all()
        q = query.lower().strip()
        if not q:
            return recipes
        return [
            r
            for r in recipes
            if q in r.name.lower()
            or q in (r.category or "").lower()
            or any(q in t.lower() for t in r.tags)
        ]

    def resolve(self, recipe_id: str) -> Recipe | None:
        for recipe in self.list_all():
            if recipe.id == recipe_id:
                return recipe
        logger.debug("Recipe not found: %s", recipe_id)
        return None
