"""
Cucumber Report Analyzer - Scenario Classification for E2E Runs

This module walks a cucumber-style JSON report (features -> elements -> steps)
and derives a per-scenario outcome plus a two-bucket pass/fail summary that is
consumed by the chat notifier and the analytics sink.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from e2e_monitor.common.logger import get_logger

logger = get_logger(__name__)

STATUS_PASSED = "passed"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"

BACKGROUND_TYPE = "background"
UNNAMED_FEATURE = "Unnamed Feature"
UNNAMED_TEST = "Unnamed Test"


class ReportUnavailable(Exception):
    """Raised when the report cannot be read or is not a JSON feature array."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None


@dataclass
class ScenarioOutcome:
    """
    Derived outcome for one scored scenario.

    Attributes:
        feature_name: Display name of the owning feature.
        test_name: Scenario name, falling back to its id.
        status: Three-way label (passed, failed, skipped).
        total_steps: Number of steps seen, whatever their result.
        passed_steps: Steps with status "passed".
        failed_steps: Steps with status "failed".
        skipped_steps: Steps with status "skipped".
        error_message: Message of the first failed step that carried one.
        successful: Two-way bucket used for the tally.
    """
    feature_name: str
    test_name: str
    status: str = STATUS_SKIPPED
    total_steps: int = 0
    passed_steps: int = 0
    failed_steps: int = 0
    skipped_steps: int = 0
    error_message: Optional[str] = None
    successful: bool = False

    @property
    def display_name(self) -> str:
        return f"{self.feature_name} - {self.test_name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature_name": self.feature_name,
            "test_name": self.test_name,
            "status": self.status,
            "error_message": self.error_message,
        }


@dataclass
class Summary:
    """Aggregated result of one report."""
    successful_tests: int = 0
    failed_tests: int = 0
    failed_test_names: List[str] = field(default_factory=list)
    test_cases: List[ScenarioOutcome] = field(default_factory=list)

    @property
    def total_tests(self) -> int:
        return self.successful_tests + self.failed_tests

    @property
    def all_passed(self) -> bool:
        return self.total_tests > 0 and self.failed_tests == 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase keys expected by downstream sinks."""
        return {
            "totalTests": self.total_tests,
            "successfulTests": self.successful_tests,
            "failedTests": self.failed_tests,
            "failedTestNames": list(self.failed_test_names),
            "testCases": [case.to_dict() for case in self.test_cases],
        }


def _classify_scenario(feature_name: str, element: Dict[str, Any]) -> ScenarioOutcome:
    test_name = element.get("name") or element.get("id") or UNNAMED_TEST
    outcome = ScenarioOutcome(feature_name=feature_name, test_name=str(test_name))

    steps = element.get("steps")
    if not isinstance(steps, list):
        steps = []

    test_passed = True
    for step in steps:
        outcome.total_steps += 1
        result = step.get("result") if isinstance(step, dict) else None
        status = result.get("status") if isinstance(result, dict) else None

        if status == STATUS_PASSED:
            outcome.passed_steps += 1
        elif status == STATUS_FAILED:
            outcome.failed_steps += 1
            test_passed = False
            # First failure wins
            message = result.get("error_message")
            if outcome.error_message is None and message:
                outcome.error_message = message if isinstance(message, str) else str(message)
        elif status == STATUS_SKIPPED:
            outcome.skipped_steps += 1
            test_passed = False
        else:
            # Unknown or missing result: fails the scenario but is not tallied
            test_passed = False

    outcome.successful = test_passed and outcome.total_steps > 0
    if outcome.successful:
        outcome.status = STATUS_PASSED
    elif outcome.failed_steps > 0:
        outcome.status = STATUS_FAILED
    else:
        outcome.status = STATUS_SKIPPED
    return outcome


def analyze_report(features: Any) -> Summary:
    """
    Classify every scored scenario of an already-parsed report.

    Args:
        features: Parsed JSON document, expected to be a list of features.

    Returns:
        Summary with the two-bucket tally and the per-scenario detail list.

    Raises:
        ReportUnavailable: If the document is not a JSON array.
    """
    if not isinstance(features, list):
        raise ReportUnavailable(
            f"Report root must be a JSON array, got {type(features).__name__}"
        )

    summary = Summary()
    for feature in features:
        if not isinstance(feature, dict):
            continue
        elements = feature.get("elements")
        if not isinstance(elements, list):
            continue

        feature_name = str(feature.get("name") or UNNAMED_FEATURE)
        for element in elements:
            if not isinstance(element, dict):
                continue
            if element.get("type") == BACKGROUND_TYPE:
                continue

            outcome = _classify_scenario(feature_name, element)
            summary.test_cases.append(outcome)
            if outcome.successful:
                summary.successful_tests += 1
            else:
                summary.failed_tests += 1
                summary.failed_test_names.append(outcome.display_name)

    logger.info(
        f"Analyzed report: {summary.total_tests} tests, "
        f"{summary.successful_tests} passed, {summary.failed_tests} failed"
    )
    return summary


def analyze_report_text(text: str) -> Summary:
    """Parse raw report text and analyze it."""
    try:
        features = json.loads(text)
    except (ValueError, TypeError, RecursionError) as e:
        raise ReportUnavailable(f"Report is not valid JSON: {e}") from e
    return analyze_report(features)


def analyze_report_file(path: Union[str, Path]) -> Summary:
    """
    Read and analyze a report file.

    Args:
        path: Path to the cucumber JSON report.

    Returns:
        Summary for the report.

    Raises:
        ReportUnavailable: If the file is missing, unreadable or not valid JSON.
    """
    report_path = Path(path)
    logger.info(f"Analyzing test report: {report_path}")

    try:
        text = report_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Could not read report {report_path}: {e}")
        raise ReportUnavailable(f"Could not read report {report_path}: {e}", report_path) from e

    try:
        return analyze_report_text(text)
    except ReportUnavailable as e:
        logger.error(f"Could not parse report {report_path}: {e}")
        e.path = str(report_path)
        raise


def try_analyze_report_file(path: Union[str, Path]) -> Optional[Summary]:
    """Analyze a report file, returning None when it is unavailable."""
    try:
        return analyze_report_file(path)
    except ReportUnavailable as e:
        logger.warning(f"Report unavailable, skipping detailed results: {e}")
        return None
