"""Console and file logging for the mealcart command line."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "mealcart"
FILE_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

stderr_console = Console(stderr=True)


def resolve_level(name: str) -> int:
    """Map a level name from config or the command line to a logging level."""
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level '{name}'")
    return level


def setup_logging(level: str = "info", log_file: Path | None = None) -> logging.Logger:
    """Send mealcart log records to stderr through rich, and to log_file if given.

    The file always gets DEBUG records, so the logger opens up to DEBUG when a
    file is configured while the console keeps the requested level. Calling
    this again replaces the previous handlers.
    """
    console_level = resolve_level(level)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file is not None else console_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=stderr_console,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(console_level)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger
