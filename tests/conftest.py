import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone

import pytest
from mealcart.models import MealSlot, PlannedMeal, Recipe, RecipeIngredient
from mealcart.shopping import ShoppingListStore
from mealcart.storage import JsonFileStore, MemoryStore
from mealcart.week_plan import WeekPlanStore

# Wednesday; its week starts Monday 2024-05-13
FIXED_NOW = datetime(2024, 5, 15, 9, 30, tzinfo=timezone.utc)
MONDAY = date(2024, 5, 13)


class FakeResolver:
    """Resolver over a dict; ids in `broken` raise instead of resolving."""

    def __init__(self, recipes: list[Recipe], broken: set[str] | None = None):
        self.recipes = {r.id: r for r in recipes}
        self.broken = broken or set()
        self.calls: list[str] = []

    def resolve(self, recipe_id: str) -> Recipe | None:
        self.calls.append(recipe_id)
        if recipe_id in self.broken:
            raise OSError(f"lookup failed for {recipe_id}")
        return self.recipes.get(recipe_id)


class InterleavedWrites:
    """Store mixin: the next write after arm() first lets a writer on another
    thread read and try its own save, then carries on once that thread is
    waiting on the key's lock."""

    _other: threading.Thread | None = None
    _armed = False

    def arm(self, writer) -> None:
        self._other = threading.Thread(target=writer)
        self._other_waiting = threading.Event()
        self._armed = True

    def join(self) -> None:
        self._other.join(timeout=5)
        assert not self._other.is_alive()

    @contextmanager
    def _lock(self, key):
        if threading.current_thread() is self._other:
            self._other_waiting.set()
        with super()._lock(key):
            yield

    def _write_raw(self, key, raw):
        if self._armed:
            self._armed = False
            self._other.start()
            assert self._other_waiting.wait(timeout=5)
        super()._write_raw(key, raw)


class InterleavedMemoryStore(InterleavedWrites, MemoryStore):
    pass


class InterleavedFileStore(InterleavedWrites, JsonFileStore):
    pass


def meal(day: date, slot: str, recipe_id: str, name: str | None = None, **macros) -> PlannedMeal:
    return PlannedMeal(
        date=day,
        slot=MealSlot(slot),
        recipe_id=recipe_id,
        recipe_name=name or recipe_id.replace("-", " ").title(),
        **macros,
    )


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def plans(memory_store, clock) -> WeekPlanStore:
    return WeekPlanStore(memory_store, clock=clock)


@pytest.fixture
def sample_recipes() -> list[Recipe]:
    """Small set of fake recipes for unit tests."""
    return [
        Recipe(id="pancakes", name="Pancakes", category="Breakfast", servings=4,
               calories=350, protein_g=9,
               ingredients=[RecipeIngredient("flour", 2, "cups")]),
        Recipe(id="egg-bake", name="Egg Bake", category="Breakfast", servings=2,
               calories=300, protein_g=20,
               ingredients=[RecipeIngredient("Flour", 1, "cups"),
                            RecipeIngredient("eggs", 3, "whole")]),
        Recipe(id="chicken-rice", name="Chicken and Rice", category="Dinner", servings=4,
               calories=550, protein_g=40,
               ingredients=[RecipeIngredient("Chicken Breast", 1.5, "lb"),
                            RecipeIngredient("White Rice", 2, "cups"),
                            RecipeIngredient("olive oil", 2, "tbsp")]),
        Recipe(id="salad", name="Garden Salad", category="Lunch", servings=2,
               calories=180, protein_g=4,
               ingredients=[RecipeIngredient("lettuce", 1, "head"),
                            RecipeIngredient("olive oil", 1, "tbsp"),
                            RecipeIngredient("Olive Oil", 2, "tsp")]),
    ]


@pytest.fixture
def resolver(sample_recipes) -> FakeResolver:
    return FakeResolver(sample_recipes)


@pytest.fixture
def shopping(memory_store, plans, resolver) -> ShoppingListStore:
    store = ShoppingListStore(memory_store, plans, resolver)
    yield store
    store.shutdown()
