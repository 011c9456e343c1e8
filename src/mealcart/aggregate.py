"""Ingredient aggregation across a set of recipes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from mealcart.models import Recipe

logger = logging.getLogger(__name__)

# Spellings of the same unit. Only used to decide whether two lines merge;
# nothing here converts between units.
UNIT_ALIASES = {
    "tablespoon": "tbsp",
    "tablespoons": "tbsp",
    "tbsp": "tbsp",
    "tbs": "tbsp",
    "teaspoon": "tsp",
    "teaspoons": "tsp",
    "tsp": "tsp",
    "cup": "cup",
    "cups": "cup",
    "ounce": "oz",
    "ounces": "oz",
    "oz": "oz",
    "pound": "lb",
    "pounds": "lb",
    "lb": "lb",
    "lbs": "lb",
    "can": "can",
    "cans": "can",
    "clove": "clove",
    "cloves": "clove",
    "slice": "slice",
    "slices": "slice",
    "piece": "piece",
    "pieces": "piece",
}


@dataclass
class AggregatedIngredient:
    item: str
    quantity: float
    unit: str


def unit_key(unit: str | None) -> str:
    """Comparison key for a unit: singular/plural and abbreviations fold together."""
    if not unit:
        return ""
    u = unit.lower().strip().rstrip(".")
    return UNIT_ALIASES.get(u, u)


def aggregate_ingredients(recipes: Iterable[Recipe]) -> list[AggregatedIngredient]:
    """Sum ingredient quantities across recipes.

    Lines merge when their item names match case-insensitively and their units
    are spellings of the same unit ("cup" and "cups"); the same item in two
    different units stays as two lines. Each recipe id contributes once,
    however many times it is passed in. The first-seen spellings of item and
    unit are kept, and output follows first-seen order.
    """
    agg: dict[tuple[str, str], AggregatedIngredient] = {}
    seen_ids: set[str] = set()

    for recipe in recipes:
        if recipe.id in seen_ids:
            logger.debug("Ignoring repeated recipe %s", recipe.id)
            continue
        seen_ids.add(recipe.id)

        for ing in recipe.ingredients:
            key = (ing.item.lower().strip(), unit_key(ing.unit))

            if key not in agg:
                agg[key] = AggregatedIngredient(
                    item=ing.item.strip(), quantity=0.0, unit=ing.unit.strip()
                )
            agg[key].quantity += ing.quantity

    return list(agg.values())
