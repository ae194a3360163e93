"""Logging configuration helpers."""

import logging

LOGGER_NAME = "food_lookup"
# Chatty at INFO: one line per Open Food Facts request.
QUIET_LOGGERS = ("httpx", "httpcore")


def resolve_level(level: str | int) -> int:
    """Map a level name such as "debug" onto its number; unknown names mean INFO."""
    if isinstance(level, int):
        return level
    return logging.getLevelNamesMapping().get(level.strip().upper(), logging.INFO)


def configure_logging(level: str | int = logging.INFO) -> None:
    """Attach one stream handler to the package logger and quiet HTTP clients."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolve_level(level))
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s: %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
