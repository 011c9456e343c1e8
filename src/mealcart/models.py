"""Shared data models for meal plans, recipes and shopping lists."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class MealSlot(Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"

    @classmethod
    def parse(cls, raw: MealSlot | str) -> MealSlot:
        """Accept a MealSlot or its (case-insensitive) string value."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            valid = ", ".join(s.value for s in cls)
            raise ValueError(f"Unknown meal slot '{raw}'. Valid: {valid}")


def _opt_float(val: object) -> float | None:
    if val is None or val == "":
        return None
    return float(val)  # type: ignore[arg-type]


@dataclass
class PlannedMeal:
    date: date
    slot: MealSlot
    recipe_id: str
    recipe_name: str
    # Snapshot of the recipe's macros at assignment time
    calories: float | None = None
    protein: float | None = None
    carbs: float | None = None
    fat: float | None = None

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "slot": self.slot.value,
            "recipe_id": self.recipe_id,
            "recipe_name": self.recipe_name,
            "calories": self.calories,
            "protein": self.protein,
            "carbs": self.carbs,
            "fat": self.fat,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PlannedMeal:
        return cls(
            date=date.fromisoformat(data["date"]),
            slot=MealSlot.parse(data["slot"]),
            recipe_id=str(data["recipe_id"]),
            recipe_name=str(data.get("recipe_name", "")),
            calories=_opt_float(data.get("calories")),
            protein=_opt_float(data.get("protein")),
            carbs=_opt_float(data.get("carbs")),
            fat=_opt_float(data.get("fat")),
        )


@dataclass
class WeeklyMealPlan:
    week_start: date  # always a Monday
    person_id: str
    updated_at: datetime
    meals: list[PlannedMeal] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "week_start": self.week_start.isoformat(),
            "person_id": self.person_id,
            "updated_at": self.updated_at.isoformat(),
            "meals": [m.to_dict() for m in self.meals],
        }

    @classmethod
    def from_dict(cls, data: dict) -> WeeklyMealPlan:
        return cls(
            week_start=date.fromisoformat(data["week_start"]),
            person_id=str(data["person_id"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            meals=[PlannedMeal.from_dict(m) for m in data.get("meals", [])],
        )


@dataclass
class RecipeIngredient:
    item: str
    quantity: float
    unit: str = ""


@dataclass
class Recipe:
    id: str
    name: str
    category: str | None = None
    servings: int | None = None
    # Nutrition per serving
    calories: float | None = None
    protein_g: float | None = None
    carbs_g: float | None = None
    fat_g: float | None = None
    tags: list[str] = field(default_factory=list)
    ingredients: list[RecipeIngredient] = field(default_factory=list)
    # "library" or "custom"
    source: str = "library"


@dataclass
class ShoppingItem:
    id: str
    name: str
    quantity: float
    unit: str
    checked: bool = False
    category: str = "Other"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
            "checked": self.checked,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ShoppingItem:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            quantity=float(data.get("quantity") or 0),
            unit=str(data.get("unit") or ""),
            checked=bool(data.get("checked", False)),
            category=str(data.get("category") or "Other"),
        )


@dataclass
class ShoppingListData:
    week_start: date
    person_id: str
    generated_at: datetime
    items: list[ShoppingItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "week_start": self.week_start.isoformat(),
            "person_id": self.person_id,
            "generated_at": self.generated_at.isoformat(),
            "items": [i.to_dict() for i in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict) -> ShoppingListData:
        return cls(
            week_start=date.fromisoformat(data["week_start"]),
            person_id=str(data["person_id"]),
            generated_at=datetime.fromisoformat(data["generated_at"]),
            items=[ShoppingItem.from_dict(i) for i in data.get("items", [])],
        )

    def unchecked(self) -> list[ShoppingItem]:
        return [i for i in self.items if not i.checked]
