"""Tests for logging setup."""

import logging

import pytest
from mealcart.log import LOGGER_NAME, resolve_level, setup_logging


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


class TestResolveLevel:
    @pytest.mark.parametrize(
        "name, expected",
        [("debug", logging.DEBUG), ("INFO", logging.INFO), (" warning ", logging.WARNING)],
    )
    def test_known(self, name, expected):
        assert resolve_level(name) == expected

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            resolve_level("chatty")


class TestSetupLogging:
    def test_console_only(self):
        logger = setup_logging("warning")
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1

    def test_file_gets_debug(self, tmp_path):
        log_file = tmp_path / "logs" / "mealcart.log"
        logger = setup_logging("error", log_file)
        assert logger.level == logging.DEBUG
        assert logger.handlers[0].level == logging.ERROR

        logging.getLogger("mealcart.storage").debug("Version conflict on k")
        for handler in logger.handlers:
            handler.flush()
        assert "Version conflict on k" in log_file.read_text()

    def test_repeat_calls_replace_handlers(self, tmp_path):
        setup_logging("info", tmp_path / "a.log")
        logger = setup_logging("info")
        assert len(logger.handlers) == 1
