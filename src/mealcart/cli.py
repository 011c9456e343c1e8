"""CLI entry point for mealcart."""

from __future__ import annotations

import argparse
import sys
from datetime import date
from pathlib import Path


def parse_date_arg(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date '{raw}', expected YYYY-MM-DD")


def build_services(config: dict):
    """Wire the stores and recipe library from settings."""
    from mealcart.config import config_path_value
    from mealcart.recipes import RecipeLibrary
    from mealcart.shopping import ShoppingListStore
    from mealcart.storage import JsonFileStore
    from mealcart.week_plan import WeekPlanStore

    store = JsonFileStore(config_path_value(config["storage"]["data_dir"]))
    library = RecipeLibrary(
        config_path_value(config["recipes"]["library_dir"]),
        config_path_value(config["recipes"]["custom_dir"]),
    )
    plans = WeekPlanStore(store)
    shopping = ShoppingListStore(
        store, plans, library, max_workers=config["shopping"]["max_workers"]
    )
    return plans, shopping, library


def get_person(args: argparse.Namespace) -> str:
    person = args.config["household"]["default_person"]
    if not person:
        print("No person given. Use --person or set household.default_person.", file=sys.stderr)
        sys.exit(2)
    return person


def _week(args: argparse.Namespace, plans) -> date:
    return args.week if args.week is not None else plans.current_week_start()


def warn_if_unsaved(saved: bool, what: str) -> None:
    if not saved:
        print(f"Warning: {what} could not be saved", file=sys.stderr)


def cmd_plan_show(args: argparse.Namespace) -> None:
    from mealcart.week_plan import format_week_json, format_week_markdown

    plans, _, _ = build_services(args.config)
    person = get_person(args)
    week = _week(args, plans)
    meals = plans.get_meals(person, week)

    if args.format == "json":
        print(format_week_json(week, meals))
    else:
        print(format_week_markdown(week, meals))


def cmd_plan_set(args: argparse.Namespace) -> None:
    from mealcart.models import MealSlot, PlannedMeal

    plans, _, library = build_services(args.config)
    person = get_person(args)

    recipe = library.resolve(args.recipe)
    if recipe is None:
        print(f"Recipe not found: {args.recipe}", file=sys.stderr)
        sys.exit(1)

    meal = PlannedMeal(
        date=args.date,
        slot=MealSlot.parse(args.slot),
        recipe_id=recipe.id,
        recipe_name=recipe.name,
        calories=recipe.calories,
        protein=recipe.protein_g,
        carbs=recipe.carbs_g,
        fat=recipe.fat_g,
    )
    saved = plans.set_meal(person, meal)
    warn_if_unsaved(saved, "meal plan")
    if saved:
        print(f"{args.date.isoformat()} {meal.slot.value}: {recipe.name}")


def cmd_plan_remove(args: argparse.Namespace) -> None:
    plans, _, _ = build_services(args.config)
    warn_if_unsaved(plans.remove_meal(get_person(args), args.date, args.slot), "meal plan")


def cmd_plan_clear(args: argparse.Namespace) -> None:
    plans, _, _ = build_services(args.config)
    warn_if_unsaved(plans.clear_week(get_person(args), _week(args, plans)), "meal plan")


def cmd_plan_copy(args: argparse.Namespace) -> None:
    plans, _, _ = build_services(args.config)
    person = get_person(args)
    if not plans.get_meals(person, args.source):
        print(f"Nothing planned for the week of {args.source.isoformat()}", file=sys.stderr)
        return
    warn_if_unsaved(plans.copy_week(person, args.source, args.target), "meal plan")


def cmd_plan_weeks(args: argparse.Namespace) -> None:
    plans, _, _ = build_services(args.config)
    for week in plans.weeks(get_person(args)):
        print(week.isoformat())


def _print_list(data, output_format: str) -> None:
    from mealcart.shopping import format_shopping_json, format_shopping_markdown

    if output_format == "json":
        print(format_shopping_json(data))
    else:
        print(format_shopping_markdown(data))


def cmd_shop_generate(args: argparse.Namespace) -> None:
    _, shopping, _ = build_services(args.config)
    data = shopping.generate(get_person(args), args.week)
    _print_list(data, args.format)


def cmd_shop_show(args: argparse.Namespace) -> None:
    _, shopping, _ = build_services(args.config)
    data = shopping.get_list(get_person(args))
    if data is None:
        print("No shopping list yet. Run 'shop generate'.", file=sys.stderr)
        return
    _print_list(data, args.format)


def cmd_shop_toggle(args: argparse.Namespace) -> None:
    _, shopping, _ = build_services(args.config)
    warn_if_unsaved(shopping.toggle(get_person(args), args.item_id), "shopping list")


def cmd_shop_add(args: argparse.Namespace) -> None:
    _, shopping, _ = build_services(args.config)
    item = shopping.add_custom_item(
        get_person(args),
        name=args.name,
        quantity=args.quantity,
        unit=args.unit,
        category=args.category,
    )
    print(item.id)


def cmd_shop_remove(args: argparse.Namespace) -> None:
    _, shopping, _ = build_services(args.config)
    warn_if_unsaved(shopping.remove_item(get_person(args), args.item_id), "shopping list")


def cmd_shop_clear_checked(args: argparse.Namespace) -> None:
    _, shopping, _ = build_services(args.config)
    warn_if_unsaved(shopping.clear_checked(get_person(args)), "shopping list")


def cmd_shop_clear(args: argparse.Namespace) -> None:
    _, shopping, _ = build_services(args.config)
    warn_if_unsaved(shopping.clear_all(get_person(args)), "shopping list")


def cmd_shop_count(args: argparse.Namespace) -> None:
    _, shopping, _ = build_services(args.config)
    print(shopping.unchecked_count(get_person(args)))


def cmd_recipes_list(args: argparse.Namespace) -> None:
    _, _, library = build_services(args.config)
    if args.search:
        recipes = library.search(args.search, category=args.category)
    elif args.category:
        recipes = library.list_by_category(args.category)
    else:
        recipes = library.list_all()

    if not recipes:
        print("No recipes found", file=sys.stderr)
        return

    header = f"{'Id':<28} {'Category':<10} {'Cal':<6} {'Recipe'}"
    print(header)
    print("-" * len(header))
    for r in recipes:
        cal = f"{r.calories:.0f}" if r.calories else "?"
        print(f"{r.id:<28} {(r.category or '?'):<10} {cal:<6} {r.name}")


def _add_person(p: argparse.ArgumentParser) -> None:
    p.add_argument("--person", type=str, default=None, help="Household member id")


def _add_week(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--week",
        type=parse_date_arg,
        default=None,
        help="Any date in the week, YYYY-MM-DD (default: this week)",
    )


def _add_format(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--format", type=str, choices=["json", "markdown"], default="markdown"
    )


def _add_slot(p: argparse.ArgumentParser) -> None:
    p.add_argument("--date", type=parse_date_arg, required=True, help="YYYY-MM-DD")
    p.add_argument(
        "--slot",
        type=str.lower,
        choices=["breakfast", "lunch", "dinner", "snack"],
        required=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mealcart",
        description="Weekly meal plans and shopping lists for the household",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to config YAML")
    parser.add_argument("--data-dir", type=str, default=None, help="Where plans and lists are stored")
    parser.add_argument("--recipes-dir", type=str, default=None, help="Recipe notes directory")
    parser.add_argument(
        "--custom-recipes-dir", type=str, default=None, help="Your own recipe notes"
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Logging verbosity (default: info)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write logs to this file",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    # plan
    p_plan = sub.add_parser("plan", help="View and edit the weekly meal plan")
    plan_sub = p_plan.add_subparsers(dest="plan_command", required=True)

    p = plan_sub.add_parser("show", help="Show a week's meals")
    _add_person(p)
    _add_week(p)
    _add_format(p)
    p.set_defaults(func=cmd_plan_show)

    p = plan_sub.add_parser("set", help="Assign a recipe to a meal slot")
    _add_person(p)
    _add_slot(p)
    p.add_argument("--recipe", type=str, required=True, help="Recipe id")
    p.set_defaults(func=cmd_plan_set)

    p = plan_sub.add_parser("remove", help="Empty a meal slot")
    _add_person(p)
    _add_slot(p)
    p.set_defaults(func=cmd_plan_remove)

    p = plan_sub.add_parser("clear", help="Delete a week's plan")
    _add_person(p)
    _add_week(p)
    p.set_defaults(func=cmd_plan_clear)

    p = plan_sub.add_parser("copy", help="Replace one week's plan with another's")
    _add_person(p)
    p.add_argument("--source", type=parse_date_arg, required=True, help="Any date in the source week")
    p.add_argument("--target", type=parse_date_arg, required=True, help="Any date in the target week")
    p.set_defaults(func=cmd_plan_copy)

    p = plan_sub.add_parser("weeks", help="List weeks that have a plan")
    _add_person(p)
    p.set_defaults(func=cmd_plan_weeks)

    # shop
    p_shop = sub.add_parser("shop", help="Generate and edit the shopping list")
    shop_sub = p_shop.add_subparsers(dest="shop_command", required=True)

    p = shop_sub.add_parser("generate", help="Rebuild the list from the week's plan")
    _add_person(p)
    _add_week(p)
    _add_format(p)
    p.set_defaults(func=cmd_shop_generate)

    p = shop_sub.add_parser("show", help="Show the current list")
    _add_person(p)
    _add_format(p)
    p.set_defaults(func=cmd_shop_show)

    p = shop_sub.add_parser("toggle", help="Check or uncheck an item")
    _add_person(p)
    p.add_argument("item_id", type=str)
    p.set_defaults(func=cmd_shop_toggle)

    p = shop_sub.add_parser("add", help="Add an item of your own")
    _add_person(p)
    p.add_argument("name", type=str)
    p.add_argument("--quantity", type=float, default=1.0)
    p.add_argument("--unit", type=str, default="")
    p.add_argument("--category", type=str, default=None, help="Skip auto-categorizing")
    p.set_defaults(func=cmd_shop_add)

    p = shop_sub.add_parser("remove", help="Remove an item")
    _add_person(p)
    p.add_argument("item_id", type=str)
    p.set_defaults(func=cmd_shop_remove)

    p = shop_sub.add_parser("clear-checked", help="Remove checked items")
    _add_person(p)
    p.set_defaults(func=cmd_shop_clear_checked)

    p = shop_sub.add_parser("clear", help="Delete the whole list")
    _add_person(p)
    p.set_defaults(func=cmd_shop_clear)

    p = shop_sub.add_parser("count", help="Print the number of unchecked items")
    _add_person(p)
    p.set_defaults(func=cmd_shop_count)

    # recipes
    p_recipes = sub.add_parser("recipes", help="Browse available recipes")
    recipes_sub = p_recipes.add_subparsers(dest="recipes_command", required=True)

    p = recipes_sub.add_parser("list", help="List recipes")
    p.add_argument("--category", type=str, default=None)
    p.add_argument("--search", type=str, default=None)
    p.set_defaults(func=cmd_recipes_list)

    return parser


def main(argv: list[str] | None = None) -> None:
    from mealcart.config import apply_cli_overrides, config_path_value, load_config
    from mealcart.log import setup_logging

    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(Path(args.config).expanduser() if args.config else None)
    config = apply_cli_overrides(
        config,
        data_dir=args.data_dir,
        recipes_dir=args.recipes_dir,
        custom_recipes_dir=args.custom_recipes_dir,
        person=getattr(args, "person", None),
        log_level=args.log_level,
        log_file=args.log_file,
    )
    args.config = config

    try:
        setup_logging(
            level=config["logging"]["level"],
            log_file=config_path_value(config["logging"]["file"]),
        )
    except ValueError as e:
        print(e, file=sys.stderr)
        sys.exit(2)

    args.func(args)


if __name__ == "__main__":
    main()
