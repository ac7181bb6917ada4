"""
File Logger - Persistent monitor log.

Each cycle of the monitor is written both to the console and to a log file
so failed runs can be inspected after the fact.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from e2e_monitor.common.logger import LOG_FORMAT, ROOT_LOGGER_NAME, resolve_level

TAIL_LINES = 20


def setup_file_logger(
    name: str = ROOT_LOGGER_NAME,
    log_file: Optional[str] = None,
    level: Union[int, str] = logging.INFO,
) -> logging.Logger:
    """
    Set up console and file logging for the monitor.

    Args:
        name: Logger name
        log_file: Path to log file (console only when None)
        level: Logging level

    Returns:
        Configured logger
    """
    level = resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(console_handler)

    return logger


def _tail(text: str, lines: int = TAIL_LINES) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


def log_command_result(logger: logging.Logger, result, label: Optional[str] = None) -> None:
    """
    Log the exit code and output tails of a finished command.

    Args:
        logger: Logger instance
        result: CommandResult of the finished command
        label: Short name for the command (defaults to the command line)
    """
    label = label or result.command_line
    level = logging.INFO if result.ok else logging.ERROR
    logger.log(level, f"{label} completed with exit code: {result.returncode}")
    if result.stdout.strip():
        logger.log(level, f"{label} stdout: {_tail(result.stdout)}")
    if result.stderr.strip():
        logger.log(level, f"{label} stderr: {_tail(result.stderr)}")
