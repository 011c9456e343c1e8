"""Per-person weekly meal plan storage."""

from __future__ import annotations

import dataclasses
import json
import logging
from datetime import date, datetime, timedelta
from typing import Callable

from mealcart.models import MealSlot, PlannedMeal, WeeklyMealPlan
from mealcart.storage import (
    UNCHANGED,
    KeyValueStore,
    LoadResult,
    update_with_retry,
)

logger = logging.getLogger(__name__)

MEAL_PLAN_NAMESPACE = "mealcart-meal-plan"

DAY_NAMES = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Current local time, timezone-aware."""
    return datetime.now().astimezone()


def _as_date(d: date) -> date:
    if isinstance(d, datetime):
        return d.date()
    if not isinstance(d, date):
        raise TypeError(f"Expected a date, got {type(d).__name__}")
    return d


def week_start_of(d: date) -> date:
    """Return the Monday of the week containing d."""
    d = _as_date(d)
    return d - timedelta(days=d.weekday())


def dates_of_week(week_start: date) -> list[date]:
    """Return Monday..Sunday of the week starting at week_start."""
    monday = week_start_of(week_start)
    return [monday + timedelta(days=i) for i in range(7)]


class WeekPlanStore:
    """Meal assignments for each person, one WeeklyMealPlan per ISO week.

    All of a person's weeks live in a single blob. Reads of a missing,
    unreadable or malformed blob behave as an empty collection; failed writes
    are logged and reported by a False return value, never raised.
    """

    def __init__(self, store: KeyValueStore, clock: Clock = system_clock) -> None:
        self.store = store
        self.clock = clock

    def current_week_start(self) -> date:
        return week_start_of(self.clock())

    def _key(self, person_id: str) -> str:
        return f"{MEAL_PLAN_NAMESPACE}-{person_id}"

    def _decode(self, person_id: str, result: LoadResult) -> list[WeeklyMealPlan]:
        if not result.ok:
            return []
        try:
            return [WeeklyMealPlan.from_dict(p) for p in result.value]  # type: ignore[union-attr]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Malformed meal plans for %s, treating as empty: %s", person_id, e)
            return []

    def _load_plans(self, person_id: str) -> list[WeeklyMealPlan]:
        return self._decode(person_id, self.store.load(self._key(person_id)))

    def _update(
        self,
        person_id: str,
        mutate: Callable[[list[WeeklyMealPlan]], bool],
    ) -> bool:
        """Apply mutate to freshly loaded plans and persist them if it returns True."""

        def apply(result: LoadResult) -> object:
            plans = self._decode(person_id, result)
            if not mutate(plans):
                return UNCHANGED
            return [p.to_dict() for p in plans]

        return update_with_retry(self.store, self._key(person_id), apply)

    # Reads

    def get_plan(self, person_id: str, week_start: date) -> WeeklyMealPlan | None:
        monday = week_start_of(week_start)
        for plan in self._load_plans(person_id):
            if plan.week_start == monday:
                return plan
        return None

    def get_meals(self, person_id: str, week_start: date) -> list[PlannedMeal]:
        plan = self.get_plan(person_id, week_start)
        return plan.meals if plan else []

    def get_meal(
        self, person_id: str, day: date, slot: MealSlot | str
    ) -> PlannedMeal | None:
        day = _as_date(day)
        slot = MealSlot.parse(slot)
        for meal in self.get_meals(person_id, week_start_of(day)):
            if meal.date == day and meal.slot == slot:
                return meal
        return None

    def distinct_recipe_ids(self, person_id: str, week_start: date) -> list[str]:
        """Recipe ids referenced anywhere in the week, each once, first-seen order."""
        seen: dict[str, None] = {}
        for meal in self.get_meals(person_id, week_start):
            seen.setdefault(meal.recipe_id, None)
        return list(seen)

    def weeks(self, person_id: str) -> list[date]:
        return sorted(p.week_start for p in self._load_plans(person_id))

    # Mutations

    def set_meal(self, person_id: str, meal: PlannedMeal) -> bool:
        """Put meal in its (date, slot), replacing whatever was there."""
        meal = dataclasses.replace(
            meal, date=_as_date(meal.date), slot=MealSlot.parse(meal.slot)
        )
        monday = week_start_of(meal.date)

        def mutate(plans: list[WeeklyMealPlan]) -> bool:
            plan = next((p for p in plans if p.week_start == monday), None)
            if plan is None:
                plan = WeeklyMealPlan(
                    week_start=monday, person_id=person_id, updated_at=self.clock()
                )
                plans.append(plan)
            plan.meals = [
                m for m in plan.meals if not (m.date == meal.date and m.slot == meal.slot)
            ]
            plan.meals.append(meal)
            plan.updated_at = self.clock()
            return True

        logger.debug(
            "%s: %s %s -> %s", person_id, meal.date, meal.slot.value, meal.recipe_id
        )
        return self._update(person_id, mutate)

    def remove_meal(self, person_id: str, day: date, slot: MealSlot | str) -> bool:
        day = _as_date(day)
        slot = MealSlot.parse(slot)
        monday = week_start_of(day)

        def mutate(plans: list[WeeklyMealPlan]) -> bool:
            plan = next((p for p in plans if p.week_start == monday), None)
            if plan is None:
                return False
            remaining = [m for m in plan.meals if not (m.date == day and m.slot == slot)]
            if len(remaining) == len(plan.meals):
                return False
            plan.meals = remaining
            plan.updated_at = self.clock()
            return True

        return self._update(person_id, mutate)

    def clear_week(self, person_id: str, week_start: date) -> bool:
        monday = week_start_of(week_start)

        def mutate(plans: list[WeeklyMealPlan]) -> bool:
            before = len(plans)
            plans[:] = [p for p in plans if p.week_start != monday]
            return len(plans) != before

        return self._update(person_id, mutate)

    def copy_week(
        self, person_id: str, source_week_start: date, target_week_start: date
    ) -> bool:
        """Replace the target week with the source week's meals, day for day.

        Meals keep their weekday (Monday to Monday and so on). Whatever the
        target week held before is discarded. Nothing happens when the source
        week has no meals.
        """
        source = week_start_of(source_week_start)
        target = week_start_of(target_week_start)

        def mutate(plans: list[WeeklyMealPlan]) -> bool:
            source_plan = next((p for p in plans if p.week_start == source), None)
            if source_plan is None or not source_plan.meals:
                return False
            copied = [
                dataclasses.replace(m, date=target + timedelta(days=m.date.weekday()))
                for m in source_plan.meals
            ]
            plans[:] = [p for p in plans if p.week_start != target]
            plans.append(
                WeeklyMealPlan(
                    week_start=target,
                    person_id=person_id,
                    updated_at=self.clock(),
                    meals=copied,
                )
            )
            return True

        return self._update(person_id, mutate)


SLOT_ORDER = {slot: i for i, slot in enumerate(MealSlot)}


def sorted_meals(meals: list[PlannedMeal]) -> list[PlannedMeal]:
    """Order meals by date, then breakfast/lunch/dinner/snack."""
    return sorted(meals, key=lambda m: (m.date, SLOT_ORDER[m.slot]))


def format_week_markdown(week_start: date, meals: list[PlannedMeal]) -> str:
    """Format a week's meals as markdown, one section per day."""
    monday = week_start_of(week_start)
    lines = [f"# Meal Plan: week of {monday.isoformat()}", ""]

    by_day: dict[date, list[PlannedMeal]] = {}
    for meal in sorted_meals(meals):
        by_day.setdefault(meal.date, []).append(meal)

    for day_name, d in zip(DAY_NAMES, dates_of_week(monday)):
        lines.append(f"## {day_name} {d.isoformat()}")
        lines.append("")
        day_meals = by_day.get(d, [])
        if not day_meals:
            lines.append("- (nothing planned)")
        for meal in day_meals:
            cal = f" ({meal.calories:.0f} cal)" if meal.calories is not None else ""
            lines.append(
                f"- **{meal.slot.value.capitalize()}:** {meal.recipe_name}{cal}"
                f"  `{meal.recipe_id}`"
            )
        lines.append("")

    return "\n".join(lines)


def format_week_json(week_start: date, meals: list[PlannedMeal]) -> str:
    """Format a week's meals as JSON."""
    data = {
        "week_start": week_start_of(week_start).isoformat(),
        "meals": [m.to_dict() for m in sorted_meals(meals)],
    }
    return json.dumps(data, indent=2)
