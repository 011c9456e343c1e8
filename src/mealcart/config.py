"""Settings loading with defaults and CLI override merging."""

from __future__ import annotations

import copy
from pathlib import Path

import yaml

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "mealcart" / "config.yaml"

DEFAULTS = {
    "storage": {
        "data_dir": "~/.local/share/mealcart",
    },
    "recipes": {
        "library_dir": "~/.local/share/mealcart/recipes",
        "custom_dir": "~/.local/share/mealcart/my-recipes",
    },
    "household": {
        "default_person": None,
    },
    "shopping": {
        "max_workers": 2,
    },
    "logging": {
        "level": "info",
        "file": None,
    },
}


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Path | None = None) -> dict:
    """Load settings from a YAML file, falling back to defaults."""
    path = config_path or DEFAULT_CONFIG_PATH

    if path.exists():
        with open(path) as f:
            user_config = yaml.safe_load(f) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        return deep_merge(copy.deepcopy(DEFAULTS), user_config)

    return copy.deepcopy(DEFAULTS)


def apply_cli_overrides(config: dict, **overrides: object) -> dict:
    """Apply CLI argument overrides to config.

    Supports flat keys that map into nested config:
      data_dir -> storage.data_dir
      recipes_dir -> recipes.library_dir
      custom_recipes_dir -> recipes.custom_dir
      person -> household.default_person
      log_level -> logging.level
      log_file -> logging.file
    """
    if overrides.get("data_dir") is not None:
        config["storage"]["data_dir"] = str(overrides["data_dir"])
    if overrides.get("recipes_dir") is not None:
        config["recipes"]["library_dir"] = str(overrides["recipes_dir"])
    if overrides.get("custom_recipes_dir") is not None:
        config["recipes"]["custom_dir"] = str(overrides["custom_recipes_dir"])
    if overrides.get("person") is not None:
        config["household"]["default_person"] = str(overrides["person"]).strip()
    if overrides.get("log_level") is not None:
        config["logging"]["level"] = overrides["log_level"]
    if overrides.get("log_file") is not None:
        config["logging"]["file"] = str(overrides["log_file"])

    return config


def config_path_value(value: str | None) -> Path | None:
    """Expand a configured path string, or None if unset."""
    if not value:
        return None
    return Path(value).expanduser()
