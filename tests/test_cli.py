"""Integration tests: config loading and the mealcart command line."""

import copy
import json

import pytest
from mealcart.cli import build_parser, main
from mealcart.config import DEFAULTS, apply_cli_overrides, deep_merge, load_config
from mealcart.storage import JsonFileStore


@pytest.fixture
def env(tmp_path):
    """Config file, data dir and a two-recipe library; returns base argv."""
    recipes = tmp_path / "recipes"
    recipes.mkdir()
    (recipes / "pancakes.md").write_text(
        "---\n"
        "type: recipe\n"
        "id: pancakes\n"
        "name: Pancakes\n"
        "category: Breakfast\n"
        "calories: 350\n"
        "protein_g: 9\n"
        "ingredients:\n"
        "  - {amount: 2, unit: cups, item: flour}\n"
        "  - {amount: 1, unit: cup, item: milk}\n"
        "---\n"
    )
    (recipes / "crepes.md").write_text(
        "---\n"
        "type: recipe\n"
        "id: crepes\n"
        "name: Crepes\n"
        "category: Breakfast\n"
        "ingredients:\n"
        "  - {amount: 1, unit: cups, item: Flour}\n"
        "  - {amount: 3, unit: whole, item: eggs}\n"
        "---\n"
    )
    config = tmp_path / "config.yaml"
    config.write_text(
        "household:\n"
        "  default_person: alice\n"
        f"storage:\n  data_dir: {tmp_path / 'data'}\n"
        f"recipes:\n  library_dir: {recipes}\n  custom_dir: {tmp_path / 'mine'}\n"
    )
    return ["--config", str(config)]


def run(capsys, argv):
    main(argv)
    return capsys.readouterr().out


class TestConfig:
    def test_defaults_when_missing(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")
        assert config == DEFAULTS
        config["storage"]["data_dir"] = "changed"
        assert DEFAULTS["storage"]["data_dir"] != "changed"

    def test_yaml_merged_over_defaults(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("shopping:\n  max_workers: 5\n")
        config = load_config(path)
        assert config["shopping"]["max_workers"] == 5
        assert config["logging"]["level"] == "info"

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)

    def test_deep_merge(self):
        merged = deep_merge({"a": {"b": 1, "c": 2}}, {"a": {"c": 3}, "d": 4})
        assert merged == {"a": {"b": 1, "c": 3}, "d": 4}

    def test_cli_overrides(self):
        config = apply_cli_overrides(
            copy.deepcopy(DEFAULTS), data_dir="/tmp/x", person=" bob ", log_level=None
        )
        assert config["storage"]["data_dir"] == "/tmp/x"
        assert config["household"]["default_person"] == "bob"
        assert config["logging"]["level"] == "info"


class TestParser:
    def test_plan_set(self):
        args = build_parser().parse_args(
            ["plan", "set", "--date", "2024-05-14", "--slot", "Dinner", "--recipe", "x"]
        )
        assert args.slot == "dinner"
        assert args.date.isoformat() == "2024-05-14"

    def test_bad_date_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["plan", "show", "--week", "14/05/2024"])

    def test_bad_slot_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(
                ["plan", "remove", "--date", "2024-05-14", "--slot", "brunch"]
            )

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["shop"])


class TestCommands:
    def test_plan_then_shop(self, env, capsys):
        run(capsys, env + ["plan", "set", "--date", "2024-05-13", "--slot", "breakfast",
                           "--recipe", "pancakes"])
        run(capsys, env + ["plan", "set", "--date", "2024-05-15", "--slot", "breakfast",
                           "--recipe", "crepes"])
        run(capsys, env + ["plan", "set", "--date", "2024-05-17", "--slot", "breakfast",
                           "--recipe", "pancakes"])

        shown = json.loads(run(capsys, env + ["plan", "show", "--week", "2024-05-16",
                                              "--format", "json"]))
        assert [m["recipe_id"] for m in shown["meals"]] == ["pancakes", "crepes", "pancakes"]
        assert shown["meals"][0]["calories"] == 350

        data = json.loads(run(capsys, env + ["shop", "generate", "--week", "2024-05-13",
                                             "--format", "json"]))
        items = {(i["name"], i["unit"]): i for i in data["items"]}
        assert items[("flour", "cups")]["quantity"] == 3
        assert items[("milk", "cup")]["category"] == "Dairy"
        assert items[("eggs", "whole")]["quantity"] == 3

        assert run(capsys, env + ["shop", "count"]).strip() == "3"
        run(capsys, env + ["shop", "toggle", items[("milk", "cup")]["id"]])
        assert run(capsys, env + ["shop", "count"]).strip() == "2"

        md = run(capsys, env + ["shop", "show"])
        assert "- [x] 1 cup milk" in md

        run(capsys, env + ["shop", "clear-checked"])
        assert run(capsys, env + ["shop", "count"]).strip() == "2"
        assert "milk" not in run(capsys, env + ["shop", "show"])

    def test_unknown_recipe_exits(self, env, capsys):
        with pytest.raises(SystemExit) as exc:
            main(env + ["plan", "set", "--date", "2024-05-13", "--slot", "lunch",
                        "--recipe", "nope"])
        assert exc.value.code == 1
        assert "Recipe not found" in capsys.readouterr().err

    def test_copy_and_weeks(self, env, capsys):
        run(capsys, env + ["plan", "set", "--date", "2024-05-15", "--slot", "dinner",
                           "--recipe", "crepes"])
        run(capsys, env + ["plan", "copy", "--source", "2024-05-13", "--target", "2024-06-03"])
        assert run(capsys, env + ["plan", "weeks"]).split() == ["2024-05-13", "2024-06-03"]

        shown = json.loads(run(capsys, env + ["plan", "show", "--week", "2024-06-03",
                                              "--format", "json"]))
        assert shown["meals"][0]["date"] == "2024-06-05"

        run(capsys, env + ["plan", "clear", "--week", "2024-06-03"])
        run(capsys, env + ["plan", "remove", "--date", "2024-05-15", "--slot", "dinner"])
        assert run(capsys, env + ["plan", "weeks"]).split() == ["2024-05-13"]

    def test_custom_items(self, env, capsys):
        item_id = run(capsys, env + ["shop", "add", "paper towels", "--category",
                                     "Household"]).strip()
        assert item_id.startswith("custom-")
        md = run(capsys, env + ["shop", "show"])
        assert "## Household" in md

        run(capsys, env + ["shop", "remove", item_id])
        assert run(capsys, env + ["shop", "count"]).strip() == "0"

        run(capsys, env + ["shop", "add", "bread"])
        run(capsys, env + ["shop", "clear"])
        main(env + ["shop", "show"])
        assert "No shopping list yet" in capsys.readouterr().err

    def test_person_override(self, env, capsys):
        run(capsys, env + ["plan", "set", "--person", "bob", "--date", "2024-05-13",
                           "--slot", "snack", "--recipe", "crepes"])
        assert run(capsys, env + ["plan", "weeks"]).split() == []
        assert run(capsys, env + ["plan", "weeks", "--person", "bob"]).split() == ["2024-05-13"]

    def test_recipes_list(self, env, capsys):
        out = run(capsys, env + ["recipes", "list", "--search", "crep"])
        assert "Crepes" in out
        assert "Pancakes" not in out
        out = run(capsys, env + ["recipes", "list", "--category", "breakfast"])
        assert "Crepes" in out and "Pancakes" in out

    def test_dropped_writes_warn(self, env, capsys, monkeypatch):
        run(capsys, env + ["plan", "set", "--date", "2024-05-13", "--slot", "dinner",
                           "--recipe", "crepes"])
        data = json.loads(run(capsys, env + ["shop", "generate", "--week", "2024-05-13",
                                             "--format", "json"]))
        item_id = data["items"][0]["id"]

        def disk_full(self, key, raw):
            raise OSError("No space left on device")

        monkeypatch.setattr(JsonFileStore, "_write_raw", disk_full)

        commands = [
            (["plan", "remove", "--date", "2024-05-13", "--slot", "dinner"], "meal plan"),
            (["plan", "copy", "--source", "2024-05-13", "--target", "2024-05-20"], "meal plan"),
            (["plan", "clear", "--week", "2024-05-13"], "meal plan"),
            (["shop", "toggle", item_id], "shopping list"),
            (["shop", "remove", item_id], "shopping list"),
            (["shop", "clear"], "shopping list"),
        ]
        for argv, what in commands:
            main(env + argv)
            assert f"Warning: {what} could not be saved" in capsys.readouterr().err

        monkeypatch.undo()
        assert len(json.loads(run(capsys, env + ["plan", "show", "--week", "2024-05-13",
                                                 "--format", "json"]))["meals"]) == 1

    def test_noop_edits_do_not_warn(self, env, capsys):
        main(env + ["shop", "toggle", "item-missing"])
        main(env + ["plan", "clear", "--week", "2024-05-13"])
        assert "could not be saved" not in capsys.readouterr().err
