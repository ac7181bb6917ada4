"""
Reporter module - Cucumber report analysis for E2E runs.

This module classifies scenarios from a test report and renders the summary.
"""

from e2e_monitor.reporter.analyzer import (
    ReportUnavailable,
    ScenarioOutcome,
    Summary,
    analyze_report,
    analyze_report_file,
    analyze_report_text,
    try_analyze_report_file,
)

__all__ = [
    "ReportUnavailable",
    "ScenarioOutcome",
    "Summary",
    "analyze_report",
    "analyze_report_file",
    "analyze_report_text",
    "try_analyze_report_file",
]
