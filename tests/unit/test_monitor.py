"""
Unit tests for the monitor cycle and loop.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from conftest import make_scenario, write_report
from e2e_monitor.monitor import CycleError, Monitor, MonitorState
from e2e_monitor.runner import CommandResult

STARTED = datetime(2026, 3, 14, 9, 30, 0, tzinfo=timezone.utc)


class StepClock:
    """Returns STARTED, then advances by a fixed step on every call."""

    def __init__(self, step_seconds=15):
        self.current = STARTED - timedelta(seconds=step_seconds)
        self.step = timedelta(seconds=step_seconds)

    def __call__(self):
        self.current += self.step
        return self.current


def _install_happy_path(runner, config, report=None, test_exit=0):
    """Make the fake runner behave like compile + a test run producing a report."""

    def clone(args, cwd):
        config.plugin_clone_dir.mkdir(parents=True, exist_ok=True)

    def compile_script(args, cwd):
        config.archive_path.write_bytes(b"PK\x03\x04")

    def run_tests(args, cwd):
        if report is not None:
            write_report(config, report)
        return CommandResult(args=args, returncode=test_exit, stdout="3 scenarios")

    runner.on(["git", "clone"], clone)
    runner.on(["bash"], compile_script)
    runner.on(config.test_command, run_tests)
    runner.on(
        ["git", "rev-parse", "HEAD"],
        lambda args, cwd: CommandResult(args=args, returncode=0, stdout="abc123\n"),
    )


def _monitor(config, runner, **kwargs):
    notifier = Mock()
    analytics = Mock()
    monitor = Monitor(
        config,
        runner=runner,
        notifier=notifier,
        analytics=analytics,
        clock=kwargs.pop("clock", StepClock()),
        **kwargs,
    )
    return monitor, notifier, analytics


def test_sync_plugin_repo_clones_when_missing(monitor_config, fake_runner):
    monitor, _, _ = _monitor(monitor_config, fake_runner)
    monitor.sync_plugin_repo()

    assert fake_runner.commands() == [(
        "git", "clone", "--branch", "develop",
        monitor_config.plugin_repo_url, str(monitor_config.plugin_clone_dir),
    )]


def test_sync_plugin_repo_resets_existing_clone(monitor_config, fake_runner):
    monitor_config.plugin_clone_dir.mkdir()
    monitor, _, _ = _monitor(monitor_config, fake_runner)
    monitor.sync_plugin_repo()

    assert fake_runner.calls == [
        (("git", "fetch", "origin"), str(monitor_config.plugin_clone_dir)),
        (("git", "reset", "--hard", "origin/develop"), str(monitor_config.plugin_clone_dir)),
    ]


def test_build_installs_licence_and_returns_archive(monitor_config, fake_runner):
    monitor_config.plugin_clone_dir.mkdir()
    _install_happy_path(fake_runner, monitor_config)
    monitor, _, _ = _monitor(monitor_config, fake_runner)

    archive = monitor.build_plugin_archive()

    assert archive == monitor_config.archive_path
    licence = monitor_config.plugin_clone_dir / "licence-data.php"
    assert licence.read_text() == "<?php // licence\n"
    assert ("bash", str(monitor_config.compile_script)) in fake_runner.commands()


def test_build_fails_without_licence(monitor_config, fake_runner):
    monitor_config.licence_source.unlink()
    monitor, _, _ = _monitor(monitor_config, fake_runner)

    with pytest.raises(CycleError, match="licence file not found"):
        monitor.build_plugin_archive()


def test_build_fails_without_compile_script(monitor_config, fake_runner):
    monitor_config.plugin_clone_dir.mkdir()
    monitor_config.compile_script.unlink()
    monitor, _, _ = _monitor(monitor_config, fake_runner)

    with pytest.raises(CycleError, match="Compile script not found"):
        monitor.build_plugin_archive()


def test_build_fails_when_archive_missing(monitor_config, fake_runner):
    monitor_config.plugin_clone_dir.mkdir()
    monitor, _, _ = _monitor(monitor_config, fake_runner)

    with pytest.raises(CycleError, match="No plugin archive"):
        monitor.build_plugin_archive()


def test_stage_archive_replaces_stale_copy(monitor_config, fake_runner):
    stage_dir = monitor_config.plugin_stage_dir
    stage_dir.mkdir(parents=True)
    (stage_dir / "wp-rocket.zip").write_bytes(b"old")
    monitor_config.archive_path.write_bytes(b"new")
    monitor, _, _ = _monitor(monitor_config, fake_runner)

    staged = monitor.stage_archive(monitor_config.archive_path)

    assert staged == stage_dir / "wp-rocket.zip"
    assert staged.read_bytes() == b"new"
    assert not monitor_config.archive_path.exists()


def test_run_tests_does_not_raise_on_failure(monitor_config, fake_runner):
    fake_runner.on(monitor_config.test_command, lambda args, cwd: CommandResult(args=args, returncode=1))
    monitor, _, _ = _monitor(monitor_config, fake_runner)

    result = monitor.run_tests()

    assert result.returncode == 1
    assert fake_runner.calls[-1][1] == str(monitor_config.e2e_dir)


def test_read_revision_failure_returns_none(monitor_config, fake_runner):
    fake_runner.on(["git", "rev-parse"], lambda args, cwd: CommandResult(args=args, returncode=128))
    monitor, _, _ = _monitor(monitor_config, fake_runner)

    assert monitor.read_revision() is None


def test_full_cycle_reports_summary(monitor_config, fake_runner, sample_report):
    _install_happy_path(fake_runner, monitor_config, report=sample_report)
    monitor, notifier, analytics = _monitor(monitor_config, fake_runner)

    result = monitor.run_cycle()

    assert result.success is True
    assert result.exit_code == 0
    assert result.revision == "abc123"
    assert result.summary.total_tests == 3
    assert result.duration_seconds == 15
    assert result.archive_dir == monitor_config.archive_root / "20260314-093000"
    assert (result.archive_dir / "cucumber-report.json").exists()
    assert (monitor_config.plugin_stage_dir / "wp-rocket.zip").exists()

    message = notifier.send.call_args[0][0]
    assert message.startswith("✅")
    assert "Passed: 2/3" in message

    summary, metadata = analytics.publish.call_args[0]
    assert summary is result.summary
    assert metadata.plugin == "wp-rocket"
    assert metadata.timestamp == STARTED.isoformat()
    assert metadata.revision == "abc123"
    assert metadata.duration_seconds == 15

    assert monitor.state.last_result is result
    assert monitor.state.cycles_completed == 1
    assert monitor.state.cycle_in_progress is False


def test_cycle_order(monitor_config, fake_runner, sample_report):
    _install_happy_path(fake_runner, monitor_config, report=sample_report)
    monitor, _, _ = _monitor(monitor_config, fake_runner)
    monitor.run_cycle()

    commands = [args[:2] for args in fake_runner.commands()]
    assert commands == [
        ("git", "clone"),
        ("bash", str(monitor_config.compile_script)),
        ("git", "fetch"),
        ("git", "reset"),
        ("npm", "run"),
        ("git", "rev-parse"),
    ]


def test_failed_suite_without_report_still_notifies(monitor_config, fake_runner):
    _install_happy_path(fake_runner, monitor_config, report=None, test_exit=1)
    monitor, notifier, analytics = _monitor(monitor_config, fake_runner)

    result = monitor.run_cycle()

    assert result.success is False
    assert result.exit_code == 1
    assert result.summary is None
    assert notifier.send.call_args[0][0] == "❌ wp-rocket E2E healthcheck Failed! (exit code 1)"
    analytics.publish.assert_not_called()


def test_failing_scenarios_listed_in_message(monitor_config, fake_runner):
    report = [{"name": "Checkout", "elements": [make_scenario("Guest flow", ["passed", "failed"])]}]
    _install_happy_path(fake_runner, monitor_config, report=report, test_exit=1)
    monitor, notifier, _ = _monitor(monitor_config, fake_runner)

    monitor.run_cycle()

    assert "• Checkout - Guest flow" in notifier.send.call_args[0][0]


def test_step_error_sends_script_error(monitor_config, fake_runner):
    fake_runner.on(["git", "clone"], lambda args, cwd: CommandResult(args=args, returncode=128, stderr="denied"))
    monitor, notifier, analytics = _monitor(monitor_config, fake_runner)

    result = monitor.run_cycle()

    assert result.success is False
    assert "Command failed (128)" in result.error
    assert notifier.send.call_args[0][0].startswith("❌ wp-rocket Monitor Script Error!")
    analytics.publish.assert_not_called()
    assert monitor.state.cycle_in_progress is False
    assert monitor.state.last_result is result


def test_overlapping_cycle_is_skipped(monitor_config, fake_runner):
    state = MonitorState(cycle_in_progress=True)
    monitor, notifier, _ = _monitor(monitor_config, fake_runner, state=state)

    assert monitor.run_cycle() is None
    assert fake_runner.calls == []
    notifier.send.assert_not_called()
    assert state.cycles_completed == 0


def test_start_runs_cycles_and_sleeps_between(monitor_config, fake_runner, sample_report):
    _install_happy_path(fake_runner, monitor_config, report=sample_report)
    monitor, notifier, _ = _monitor(monitor_config, fake_runner)
    sleeps = []

    monitor.start(max_cycles=2, sleep=sleeps.append)

    assert monitor.state.cycles_completed == 2
    assert sleeps == [300.0]
    assert notifier.send.call_count == 2
    assert monitor.state.is_running is False


def test_stop_ends_loop(monitor_config, fake_runner, sample_report):
    _install_happy_path(fake_runner, monitor_config, report=sample_report)
    monitor, _, _ = _monitor(monitor_config, fake_runner)

    def sleep(seconds):
        monitor.stop()

    monitor.start(sleep=sleep)

    assert monitor.state.cycles_completed == 1


def test_start_requires_e2e_dir(monitor_config, fake_runner, tmp_path):
    monitor_config.e2e_dir = tmp_path / "missing"
    monitor, _, _ = _monitor(monitor_config, fake_runner)

    with pytest.raises(CycleError, match="E2E directory does not exist"):
        monitor.start(max_cycles=1, sleep=lambda s: None)
    assert monitor.state.is_running is False


def test_start_refuses_when_already_running(monitor_config, fake_runner):
    state = MonitorState(is_running=True)
    monitor, _, _ = _monitor(monitor_config, fake_runner, state=state)

    monitor.start(max_cycles=1, sleep=lambda s: None)

    assert fake_runner.calls == []


def test_unparseable_nested_report_does_not_abort_cycle(monitor_config, fake_runner):
    _install_happy_path(fake_runner, monitor_config, report=None, test_exit=1)
    report_file = monitor_config.report_file
    report_file.parent.mkdir(parents=True, exist_ok=True)
    report_file.write_text("[" * 100000 + "]" * 100000, encoding="utf-8")
    monitor, notifier, analytics = _monitor(monitor_config, fake_runner)

    result = monitor.run_cycle()

    assert result.summary is None
    assert result.exit_code == 1
    assert notifier.send.call_args[0][0] == "❌ wp-rocket E2E healthcheck Failed! (exit code 1)"
    analytics.publish.assert_not_called()
    assert monitor.state.cycle_in_progress is False
