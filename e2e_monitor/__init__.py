"""
Plugin E2E Monitor - Build, test and report loop for plugin E2E suites

This package rebuilds a plugin from source on a fixed interval, runs the
end-to-end harness against it, classifies the cucumber report and reports
the outcome to Slack and an analytics endpoint.
"""

import importlib
from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from e2e_monitor.config_loader import MonitorConfig, load_config
    from e2e_monitor.monitor import Monitor, MonitorState, CycleResult, CycleError
    from e2e_monitor.reporter.analyzer import (
        ReportUnavailable,
        ScenarioOutcome,
        Summary,
        analyze_report,
        analyze_report_file,
        analyze_report_text,
    )
    from e2e_monitor.runner import CommandResult, CommandError, SubprocessCommandRunner

_LAZY_IMPORTS = {
    "MonitorConfig": ("e2e_monitor.config_loader", "MonitorConfig"),
    "load_config": ("e2e_monitor.config_loader", "load_config"),
    "Monitor": ("e2e_monitor.monitor", "Monitor"),
    "MonitorState": ("e2e_monitor.monitor", "MonitorState"),
    "CycleResult": ("e2e_monitor.monitor", "CycleResult"),
    "CycleError": ("e2e_monitor.monitor", "CycleError"),
    "ReportUnavailable": ("e2e_monitor.reporter.analyzer", "ReportUnavailable"),
    "ScenarioOutcome": ("e2e_monitor.reporter.analyzer", "ScenarioOutcome"),
    "Summary": ("e2e_monitor.reporter.analyzer", "Summary"),
    "analyze_report": ("e2e_monitor.reporter.analyzer", "analyze_report"),
    "analyze_report_file": ("e2e_monitor.reporter.analyzer", "analyze_report_file"),
    "analyze_report_text": ("e2e_monitor.reporter.analyzer", "analyze_report_text"),
    "CommandResult": ("e2e_monitor.runner", "CommandResult"),
    "CommandError": ("e2e_monitor.runner", "CommandError"),
    "SubprocessCommandRunner": ("e2e_monitor.runner", "SubprocessCommandRunner"),
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
    "MonitorConfig",
    "load_config",
    "Monitor",
    "MonitorState",
    "CycleResult",
    "CycleError",
    "ReportUnavailable",
    "ScenarioOutcome",
    "Summary",
    "analyze_report",
    "analyze_report_file",
    "analyze_report_text",
    "CommandResult",
    "CommandError",
    "SubprocessCommandRunner",
    "__version__",
]
