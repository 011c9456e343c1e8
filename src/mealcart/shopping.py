"""Shopping list generation from a week's meal plan, plus checklist editing."""

from __future__ import annotations

import json
import logging
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import date
from fractions import Fraction
from typing import Callable

from mealcart.aggregate import aggregate_ingredients
from mealcart.categories import DEFAULT_CATEGORY, classify
from mealcart.models import Recipe, ShoppingItem, ShoppingListData
from mealcart.recipes import RecipeResolver
from mealcart.storage import (
    UNCHANGED,
    KeyValueStore,
    LoadResult,
    SaveStatus,
    update_with_retry,
)
from mealcart.week_plan import WeekPlanStore, week_start_of

logger = logging.getLogger(__name__)

SHOPPING_LIST_NAMESPACE = "mealcart-shopping-list"

# Fractions printed on measuring cups and spoons; parse_amount reads each back
MEASURABLE_FRACTIONS = tuple(
    Fraction(n, d) for n, d in ((1, 8), (1, 4), (1, 3), (1, 2), (2, 3), (3, 4))
)
QTY_TOLERANCE = 0.05


def new_item_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def sort_items(items: list[ShoppingItem]) -> list[ShoppingItem]:
    """Order items by category, then name, ignoring case."""
    return sorted(items, key=lambda i: (i.category.lower(), i.name.lower()))


class ShoppingListStore:
    """One persisted shopping list per person.

    The list is a snapshot: it is built from the meal plan only when
    generate() is called, and generate() replaces the stored list outright,
    checked marks included.
    """

    def __init__(
        self,
        store: KeyValueStore,
        plans: WeekPlanStore,
        resolver: RecipeResolver,
        max_workers: int = 2,
    ) -> None:
        self.store = store
        self.plans = plans
        self.resolver = resolver
        self.max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None

    @property
    def clock(self):
        return self.plans.clock

    def _key(self, person_id: str) -> str:
        return f"{SHOPPING_LIST_NAMESPACE}-{person_id}"

    def _decode(self, person_id: str, result: LoadResult) -> ShoppingListData | None:
        if not result.ok or result.value is None:
            return None
        try:
            return ShoppingListData.from_dict(result.value)  # type: ignore[arg-type]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Malformed shopping list for %s, treating as absent: %s", person_id, e)
            return None

    def _update(
        self,
        person_id: str,
        mutate: Callable[[ShoppingListData | None], object],
    ) -> bool:
        """mutate returns the list to store, None to delete it, or UNCHANGED."""

        def apply(result: LoadResult) -> object:
            new = mutate(self._decode(person_id, result))
            if new is UNCHANGED or new is None:
                return new
            return new.to_dict()  # type: ignore[attr-defined]

        return update_with_retry(self.store, self._key(person_id), apply)

    def get_list(self, person_id: str) -> ShoppingListData | None:
        return self._decode(person_id, self.store.load(self._key(person_id)))

    # Generation

    def _resolve_all(self, recipe_ids: list[str]) -> list[Recipe]:
        recipes = []
        for recipe_id in recipe_ids:
            try:
                recipe = self.resolver.resolve(recipe_id)
            except Exception as e:
                logger.warning("Recipe lookup failed for %s: %s", recipe_id, e)
                recipe = None
            if recipe is None:
                logger.warning("Recipe unavailable, skipping: %s", recipe_id)
                continue
            recipes.append(recipe)
        return recipes

    def generate(
        self, person_id: str, week_start: date | None = None
    ) -> ShoppingListData:
        """Rebuild the person's shopping list from the week's planned recipes."""
        week = (
            week_start_of(week_start)
            if week_start is not None
            else self.plans.current_week_start()
        )
        recipe_ids = self.plans.distinct_recipe_ids(person_id, week)
        recipes = self._resolve_all(recipe_ids)

        items = [
            ShoppingItem(
                id=new_item_id("item"),
                name=line.item,
                quantity=line.quantity,
                unit=line.unit,
                checked=False,
                category=classify(line.item),
            )
            for line in aggregate_ingredients(recipes)
        ]

        data = ShoppingListData(
            week_start=week,
            person_id=person_id,
            generated_at=self.clock(),
            items=sort_items(items),
        )

        status = self.store.save(self._key(person_id), data.to_dict())
        if status != SaveStatus.OK:
            logger.warning("Shopping list for %s not persisted (%s)", person_id, status.value)

        logger.info(
            "Generated %d items from %d/%d recipes for %s, week of %s",
            len(items),
            len(recipes),
            len(recipe_ids),
            person_id,
            week,
        )
        return data

    def generate_in_background(
        self, person_id: str, week_start: date | None = None
    ) -> Future:
        """Start generate() on a worker thread and return its future.

        Dropping the future does not stop the work: the list is still built
        and persisted.
        """
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="mealcart-shop"
            )
        future = self._executor.submit(self.generate, person_id, week_start)
        future.add_done_callback(_log_failure)
        return future

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    # Checklist edits

    def toggle(self, person_id: str, item_id: str) -> bool:
        def mutate(lst: ShoppingListData | None) -> object:
            if lst is None:
                return UNCHANGED
            for item in lst.items:
                if item.id == item_id:
                    item.checked = not item.checked
                    return lst
            return UNCHANGED

        return self._update(person_id, mutate)

    def add_custom_item(
        self,
        person_id: str,
        name: str,
        quantity: float = 1.0,
        unit: str = "",
        category: str | None = None,
        checked: bool = False,
    ) -> ShoppingItem:
        """Append an item of the caller's own; an explicit category is kept as given."""
        item = ShoppingItem(
            id=new_item_id("custom"),
            name=name,
            quantity=quantity,
            unit=unit,
            checked=checked,
            category=category if category is not None else classify(name),
        )

        def mutate(lst: ShoppingListData | None) -> object:
            if lst is None:
                lst = ShoppingListData(
                    week_start=self.plans.current_week_start(),
                    person_id=person_id,
                    generated_at=self.clock(),
                )
            lst.items.append(item)
            return lst

        self._update(person_id, mutate)
        return item

    def remove_item(self, person_id: str, item_id: str) -> bool:
        def mutate(lst: ShoppingListData | None) -> object:
            if lst is None:
                return UNCHANGED
            remaining = [i for i in lst.items if i.id != item_id]
            if len(remaining) == len(lst.items):
                return UNCHANGED
            lst.items = remaining
            return lst

        return self._update(person_id, mutate)

    def clear_checked(self, person_id: str) -> bool:
        def mutate(lst: ShoppingListData | None) -> object:
            if lst is None or not any(i.checked for i in lst.items):
                return UNCHANGED
            lst.items = lst.unchecked()
            return lst

        return self._update(person_id, mutate)

    def clear_all(self, person_id: str) -> bool:
        return self._update(
            person_id, lambda lst: UNCHANGED if lst is None else None
        )

    def unchecked_count(self, person_id: str) -> int:
        lst = self.get_list(person_id)
        return len(lst.unchecked()) if lst else 0


def _log_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Background shopping list generation failed: %s", exc)


def grouped(data: ShoppingListData) -> dict[str, list[ShoppingItem]]:
    """Group items by category, keeping list order within and across groups."""
    groups: dict[str, list[ShoppingItem]] = {}
    for item in data.items:
        groups.setdefault(item.category or DEFAULT_CATEGORY, []).append(item)
    return groups


def format_qty(qty: float) -> str:
    """Render a summed quantity the way a shopper reads it: "1 1/2", not 1.5.

    Amounts close to a whole number or to a measuring-cup fraction snap to
    it; anything else keeps one decimal place. Zero renders as nothing.
    """
    if qty <= 0:
        return ""

    whole = int(qty)
    frac = qty - whole

    if frac < QTY_TOLERANCE:
        return str(whole) if whole else f"{qty:.2g}"
    if 1 - frac < QTY_TOLERANCE:
        return str(whole + 1)

    closest = min(MEASURABLE_FRACTIONS, key=lambda f: abs(f - frac))
    if abs(closest - frac) < QTY_TOLERANCE:
        text = f"{closest.numerator}/{closest.denominator}"
        return f"{whole} {text}" if whole else text
    return f"{qty:.1f}"


def format_shopping_markdown(data: ShoppingListData) -> str:
    """Format a shopping list as a markdown checklist grouped by category."""
    lines = [f"# Shopping List (week of {data.week_start.isoformat()})", ""]

    if not data.items:
        lines.append("_Nothing to buy._")
        return "\n".join(lines)

    for category, items in grouped(data).items():
        lines.append(f"## {category}")
        lines.append("")
        for item in items:
            box = "[x]" if item.checked else "[ ]"
            qty_str = format_qty(item.quantity)
            unit_str = f" {item.unit}" if item.unit else ""
            if qty_str:
                lines.append(f"- {box} {qty_str}{unit_str} {item.name}  `{item.id}`")
            else:
                lines.append(f"- {box} {item.name}  `{item.id}`")
        lines.append("")

    return "\n".join(lines)


def format_shopping_json(data: ShoppingListData) -> str:
    """Format a shopping list as JSON."""
    return json.dumps(data.to_dict(), indent=2)
