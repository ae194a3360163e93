"""Tests for logging configuration."""

import logging

from food_lookup.api.app import create_app
from food_lookup.app_logging import LOGGER_NAME, configure_logging, resolve_level


def test_configure_logging_idempotent() -> None:
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()

    configure_logging()
    first_count = len(logger.handlers)

    configure_logging()
    second_count = len(logger.handlers)

    assert first_count == 1
    assert second_count == 1
    assert logger.level == logging.INFO
    assert logger.propagate is False


def test_configure_logging_uses_named_level() -> None:
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()

    configure_logging("debug")

    assert logger.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    configure_logging()


def test_resolve_level_defaults_unknown_names_to_info() -> None:
    assert resolve_level("Warning") == logging.WARNING
    assert resolve_level("loud") == logging.INFO
    assert resolve_level(logging.ERROR) == logging.ERROR


def test_app_applies_configured_level(container) -> None:
    container.settings.log_level = "WARNING"

    create_app(container)

    assert logging.getLogger(LOGGER_NAME).level == logging.WARNING
    configure_logging()
