#!/usr/bin/env python3
"""
Generate E2E Test Summary

Analyzes a cucumber JSON report and writes the summary as JSON and Markdown.

Usage:
    python -m e2e_monitor.reporter.generate path/to/cucumber-report.json [--output-dir output/]
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from e2e_monitor.common.logger import get_logger
from e2e_monitor.reporter.analyzer import ReportUnavailable, Summary, analyze_report_file

logger = get_logger(__name__)


def generate_json_report(summary: Summary, output_path: str = "summary.json") -> Path:
    """
    Write the summary in the downstream JSON shape.

    Args:
        summary: Analyzed summary.
        output_path: Path to output JSON file.

    Returns:
        Path to generated file.
    """
    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(summary.to_dict(), f, indent=2, ensure_ascii=False)

    logger.info(f"JSON summary generated: {output_file}")
    return output_file


def render_markdown(summary: Summary, title: Optional[str] = None) -> str:
    lines = [
        f"# {title or 'E2E Test Summary'}",
        "",
        f"- Total: {summary.total_tests}",
        f"- Passed: {summary.successful_tests}",
        f"- Failed: {summary.failed_tests}",
        "",
        "| Feature | Scenario | Status | Error |",
        "|---|---|---|---|",
    ]
    for case in summary.test_cases:
        error = (case.error_message or "").splitlines()[0] if case.error_message else ""
        error = error.replace("|", "\\|")
        lines.append(f"| {case.feature_name} | {case.test_name} | {case.status} | {error} |")
    if summary.failed_test_names:
        lines.extend(["", "## Failed", ""])
        lines.extend(f"- {name}" for name in summary.failed_test_names)
    return "\n".join(lines) + "\n"


def generate_markdown_report(
    summary: Summary,
    output_path: str = "summary.md",
    title: Optional[str] = None,
) -> Path:
    """
    Write a Markdown table of scenario outcomes.

    Args:
        summary: Analyzed summary.
        output_path: Path to output Markdown file.
        title: Optional heading.

    Returns:
        Path to generated file.
    """
    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(render_markdown(summary, title=title), encoding="utf-8")

    logger.info(f"Markdown summary generated: {output_file}")
    return output_file


def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Generate an E2E test summary from a cucumber JSON report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Write summary.json and summary.md next to the current directory
  python -m e2e_monitor.reporter.generate test-results/cucumber-report.json

  # Custom output directory
  python -m e2e_monitor.reporter.generate report.json --output-dir reports/
        """,
    )

    parser.add_argument("report", type=str, help="Path to cucumber JSON report")
    parser.add_argument(
        "--output-dir",
        type=str,
        default=".",
        help="Output directory for summaries",
    )
    parser.add_argument(
        "--json-only",
        action="store_true",
        help="Only generate JSON summary",
    )
    parser.add_argument(
        "--md-only",
        action="store_true",
        help="Only generate Markdown summary",
    )

    args = parser.parse_args(argv)

    try:
        summary = analyze_report_file(args.report)
    except ReportUnavailable as e:
        print(f"❌ Report unavailable: {e}", file=sys.stderr)
        return 1

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    if not args.md_only:
        json_path = generate_json_report(summary, str(output_dir / "summary.json"))
        print(f"✅ JSON summary saved to: {json_path}")

    if not args.json_only:
        md_path = generate_markdown_report(summary, str(output_dir / "summary.md"))
        print(f"✅ Markdown summary saved to: {md_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
