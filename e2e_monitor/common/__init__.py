"""
Common utilities for the E2E monitor.
"""

import importlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from e2e_monitor.common.logger import get_logger, resolve_level
    from e2e_monitor.common.file_logger import setup_file_logger, log_command_result

_LAZY_IMPORTS = {
    "get_logger": ("e2e_monitor.common.logger", "get_logger"),
    "resolve_level": ("e2e_monitor.common.logger", "resolve_level"),
    "setup_file_logger": ("e2e_monitor.common.file_logger", "setup_file_logger"),
    "log_command_result": ("e2e_monitor.common.file_logger", "log_command_result"),
}


def __getattr__(name: str):
    if name in _LAZY_IMPORTS:
        module_name, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_name)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


def __dir__() -> list[str]:
    return sorted(list(globals().keys()) + list(_LAZY_IMPORTS.keys()))

__all__ = [
    "get_logger",
    "resolve_level",
    "setup_file_logger",
    "log_command_result",
]
