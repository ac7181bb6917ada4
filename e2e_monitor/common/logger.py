"""
Logging utilities.

Every module obtains its logger through get_logger so that the CLI can
attach handlers to the package root logger in one place.
"""

import logging
from typing import Union

ROOT_LOGGER_NAME = "e2e_monitor"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str) -> logging.Logger:
    """
    Get a standard Python logger.

    Args:
        name: Logger name.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)


def resolve_level(level: Union[int, str]) -> int:
    """
    Convert a level name such as "debug" to its numeric value.

    Args:
        level: Numeric level or level name.

    Returns:
        Numeric logging level.

    Raises:
        ValueError: If the name is not a known logging level.
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value
