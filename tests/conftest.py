"""
Pytest configuration and shared fixtures.
"""

import json
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest

# Add project root to path
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from e2e_monitor.config_loader import MonitorConfig
from e2e_monitor.runner import CommandError, CommandResult


def make_step(status=None, error_message=None):
    if status is None:
        return {"name": "a step"}
    result = {"status": status}
    if error_message is not None:
        result["error_message"] = error_message
    return {"name": "a step", "result": result}


def make_scenario(name, statuses, element_type="scenario", **extra):
    element = {"type": element_type, "name": name, "steps": [make_step(s) for s in statuses]}
    element.update(extra)
    return element


class FakeCommandRunner:
    """
    CommandRunner double recording every call.

    Handlers are matched on the leading arguments of a command and may
    return a CommandResult or perform side effects (e.g. writing files).
    """

    def __init__(self):
        self.calls: List[Tuple[Tuple[str, ...], Optional[str]]] = []
        self.handlers: Dict[Tuple[str, ...], Callable[[Sequence[str], Optional[Path]], Optional[CommandResult]]] = {}

    def on(self, prefix, handler):
        self.handlers[tuple(prefix)] = handler

    def run(self, args, cwd=None, check=True):
        args = tuple(str(a) for a in args)
        self.calls.append((args, str(cwd) if cwd is not None else None))

        result = None
        for prefix in sorted(self.handlers, key=len, reverse=True):
            if args[:len(prefix)] == prefix:
                result = self.handlers[prefix](args, cwd)
                break
        if result is None:
            result = CommandResult(args=args, returncode=0)
        if check and not result.ok:
            raise CommandError(result)
        return result

    def commands(self):
        return [args for args, _ in self.calls]


@pytest.fixture
def fake_runner():
    return FakeCommandRunner()


@pytest.fixture
def sample_report():
    """Two features: one background, one passing and one failing scenario."""
    return [
        {
            "name": "Checkout",
            "elements": [
                make_scenario("Setup", ["passed"], element_type="background"),
                make_scenario("Logged in flow", ["passed", "passed"]),
                {
                    "type": "scenario",
                    "name": "Guest flow",
                    "steps": [make_step("passed"), make_step("failed", "Timeout waiting for cart")],
                },
            ],
        },
        {"name": "Settings", "elements": [make_scenario("Save options", ["passed"])]},
    ]


@pytest.fixture
def workspace(tmp_path):
    """Directory layout of a monitor host: work dir, e2e checkout, compile script, licence."""
    work_dir = tmp_path / "home"
    e2e_dir = work_dir / "wp-rocket-e2e"
    e2e_dir.mkdir(parents=True)

    script = work_dir / "compile-wp-rocket.sh"
    script.write_text("#!/bin/bash\n", encoding="utf-8")
    licence = work_dir / "licence-data.php.bak"
    licence.write_text("<?php // licence\n", encoding="utf-8")
    return work_dir


@pytest.fixture
def monitor_config(workspace):
    return MonitorConfig(
        work_dir=workspace,
        licence_source=workspace / "licence-data.php.bak",
        slack_webhook_url="https://hooks.example.com/T000/B000",
        analytics_url="https://analytics.example.com/runs",
        retention_days=7,
    )


def write_report(config: MonitorConfig, report) -> Path:
    path = config.report_file
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report), encoding="utf-8")
    return path
