"""Logging configuration utilities."""

import logging
from typing import Dict, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# paho logs every packet at DEBUG, aiohttp.access logs every request
QUIET_LOGGERS = {
    "paho": "WARNING",
    "aiohttp.access": "WARNING",
    "asyncio": "WARNING",
}


def _level(name) -> int:
    if isinstance(name, int):
        return name
    return getattr(logging, str(name).upper(), logging.INFO)


def setup_logging(
    level: str = "INFO",
    logger_levels: Optional[Dict[str, str]] = None,
    format_string: str = DEFAULT_FORMAT,
) -> None:
    """Configure logging for the energy telemetry services.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        logger_levels: Per-logger overrides, e.g. {"maison.ingest": "DEBUG"}.
            Applied after the built-in quieting of third-party loggers, so
            they can also turn those back up.
        format_string: Format string for log messages.
    """
    logging.basicConfig(level=_level(level), format=format_string)

    levels = dict(QUIET_LOGGERS)
    levels.update(logger_levels or {})
    for logger_name, logger_level in levels.items():
        logging.getLogger(logger_name).setLevel(_level(logger_level))
