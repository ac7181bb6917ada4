"""
E2E Monitor - Build, test and report loop.

Each cycle updates the plugin clone, compiles the plugin archive, stages it
for the E2E harness, updates the harness, runs the suite, archives the
results, analyzes the cucumber report and notifies the configured sinks.

Example:
    from e2e_monitor.config_loader import load_config
    from e2e_monitor.monitor import Monitor

    monitor = Monitor(load_config("monitor.yaml"))
    monitor.start()
"""

import shutil
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from e2e_monitor.archive import archive_results, prune_archives
from e2e_monitor.common.file_logger import log_command_result
from e2e_monitor.common.logger import get_logger
from e2e_monitor.config_loader import MonitorConfig
from e2e_monitor.notifier import (
    AnalyticsClient,
    RunMetadata,
    SlackNotifier,
    format_cycle_message,
    format_error_message,
)
from e2e_monitor.reporter.analyzer import Summary, try_analyze_report_file
from e2e_monitor.runner import CommandError, CommandResult, CommandRunner, SubprocessCommandRunner

logger = get_logger(__name__)


class CycleError(Exception):
    """Raised when a cycle step cannot proceed (missing script, archive, ...)."""
    pass


@dataclass
class CycleResult:
    """Outcome of one monitor cycle."""
    success: bool
    exit_code: Optional[int] = None
    summary: Optional[Summary] = None
    duration_seconds: float = 0.0
    revision: Optional[str] = None
    archive_dir: Optional[Path] = None
    error: Optional[str] = None


@dataclass
class MonitorState:
    """
    Scheduler-owned loop state.

    Attributes:
        is_running: Loop keeps scheduling cycles while set.
        cycle_in_progress: Guards against overlapping cycles.
        cycles_completed: Number of finished cycles.
        last_result: Result of the most recent cycle.
    """
    is_running: bool = False
    cycle_in_progress: bool = False
    cycles_completed: int = 0
    last_result: Optional[CycleResult] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Monitor:
    """Polling build/test/report loop for one plugin."""

    def __init__(
        self,
        config: MonitorConfig,
        runner: Optional[CommandRunner] = None,
        notifier: Optional[SlackNotifier] = None,
        analytics: Optional[AnalyticsClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
        state: Optional[MonitorState] = None,
    ):
        """
        Initialize the monitor.

        Args:
            config: Monitor configuration.
            runner: Command runner for git, the compile script and the tests.
            notifier: Chat notifier (built from config when omitted).
            analytics: Analytics client (built from config when omitted).
            clock: Returns the current time; injectable for tests.
            state: Loop state; a fresh MonitorState when omitted.
        """
        self.config = config
        self.runner = runner or SubprocessCommandRunner()
        self.notifier = notifier or SlackNotifier(
            config.slack_webhook_url, timeout=config.request_timeout
        )
        self.analytics = analytics or AnalyticsClient(
            config.analytics_url,
            token=config.analytics_token,
            timeout=config.request_timeout,
        )
        self.clock = clock or _utcnow
        self.state = state or MonitorState()

    def _git_reset(self, repo_dir: Path, branch: str) -> None:
        self.runner.run(["git", "fetch", "origin"], cwd=repo_dir)
        self.runner.run(["git", "reset", "--hard", f"origin/{branch}"], cwd=repo_dir)

    def sync_plugin_repo(self) -> None:
        """Clone the plugin repository, or hard-reset an existing clone."""
        clone_dir = self.config.plugin_clone_dir
        logger.info("Cloning/updating plugin repository...")
        if clone_dir.exists():
            self._git_reset(clone_dir, self.config.plugin_branch)
        else:
            self.runner.run(
                [
                    "git", "clone",
                    "--branch", self.config.plugin_branch,
                    self.config.plugin_repo_url,
                    str(clone_dir),
                ],
                cwd=self.config.work_dir,
            )

    def build_plugin_archive(self) -> Path:
        """
        Install the licence file and run the compile script.

        Returns:
            Path of the archive produced by the compile script.

        Raises:
            CycleError: If the licence file, compile script or archive is missing.
        """
        licence_source = self.config.licence_source
        if licence_source is not None:
            if not licence_source.exists():
                raise CycleError(f"Pre-filled licence file not found: {licence_source}")
            target = self.config.plugin_clone_dir / self.config.licence_target_name
            shutil.copyfile(licence_source, target)
            logger.info(f"Installed licence file {target.name}")

        script = self.config.compile_script
        if not script.exists():
            raise CycleError(f"Compile script not found: {script}")

        logger.info(f"Running compile script {script.name}...")
        self.runner.run(["bash", str(script)], cwd=self.config.work_dir)

        archive = self.config.archive_path
        if not archive.exists():
            raise CycleError(f"No plugin archive found after compilation: {archive}")
        logger.info(f"Generated archive: {archive.name}")
        return archive

    def stage_archive(self, archive: Path) -> Path:
        """Move the archive into the harness plugin directory, replacing any stale copy."""
        stage_dir = self.config.plugin_stage_dir
        stage_dir.mkdir(parents=True, exist_ok=True)

        destination = stage_dir / archive.name
        if destination.exists():
            destination.unlink()
            logger.debug(f"Removed stale archive {destination}")

        shutil.move(str(archive), str(destination))
        logger.info(f"Staged archive at {destination}")
        return destination

    def sync_e2e_repo(self) -> None:
        logger.info("Updating E2E harness repository...")
        self._git_reset(self.config.e2e_dir, self.config.e2e_branch)

    def run_tests(self) -> CommandResult:
        """Run the E2E suite; a failing suite is a result, not an error."""
        logger.info("Running E2E test suite...")
        try:
            result = self.runner.run(self.config.test_command, cwd=self.config.e2e_dir, check=False)
        except CommandError as e:
            result = e.result
        log_command_result(logger, result, label="Test suite")
        return result

    def read_revision(self) -> Optional[str]:
        try:
            result = self.runner.run(["git", "rev-parse", "HEAD"], cwd=self.config.plugin_clone_dir)
        except CommandError as e:
            logger.warning(f"Could not determine plugin revision: {e}")
            return None
        return result.stdout.strip() or None

    def archive_results(self, now: datetime) -> Optional[Path]:
        archive_dir = archive_results(
            self.config.results_path, self.config.archive_root, now=now
        )
        prune_archives(self.config.archive_root, self.config.retention_days, now=now)
        return archive_dir

    def _report(self, result: CycleResult, started: datetime) -> None:
        message = format_cycle_message(
            self.config.plugin_id,
            self.config.test_suite,
            result.exit_code,
            result.summary,
        )
        self.notifier.send(message)

        if result.summary is not None:
            metadata = RunMetadata(
                plugin=self.config.plugin_id,
                test_suite=self.config.test_suite,
                timestamp=started.isoformat(),
                revision=result.revision,
                duration_seconds=round(result.duration_seconds, 3),
            )
            self.analytics.publish(result.summary, metadata)

    def run_cycle(self) -> Optional[CycleResult]:
        """
        Run one full cycle.

        Returns:
            CycleResult, or None if another cycle is still in progress.
        """
        if self.state.cycle_in_progress:
            logger.warning("Previous cycle still running, skipping this one")
            return None

        self.state.cycle_in_progress = True
        started = self.clock()
        logger.info(f"Starting new cycle at {started.isoformat()}")

        try:
            try:
                self.sync_plugin_repo()
                archive = self.build_plugin_archive()
                self.stage_archive(archive)
                self.sync_e2e_repo()
                test_result = self.run_tests()
                revision = self.read_revision()
                archive_dir = self.archive_results(started)
            except (CommandError, CycleError, OSError) as e:
                duration = (self.clock() - started).total_seconds()
                logger.error(f"❌ Cycle failed with error: {e}")
                result = CycleResult(success=False, duration_seconds=duration, error=str(e))
                self.state.last_result = result
                self.notifier.send(format_error_message(self.config.plugin_id, e))
                return result

            summary = try_analyze_report_file(self.config.report_file)
            duration = (self.clock() - started).total_seconds()
            result = CycleResult(
                success=test_result.ok,
                exit_code=test_result.returncode,
                summary=summary,
                duration_seconds=duration,
                revision=revision,
                archive_dir=archive_dir,
            )
            if result.success:
                logger.info("✅ Test suite passed successfully")
            else:
                logger.warning("❌ Test suite failed")

            self.state.last_result = result
            self._report(result, started)
            logger.info(f"Cycle completed in {duration:.1f}s")
            return result
        finally:
            self.state.cycle_in_progress = False
            self.state.cycles_completed += 1

    def start(
        self,
        max_cycles: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Run cycles until stopped.

        The first cycle runs immediately; later cycles follow every
        loop_interval seconds.

        Args:
            max_cycles: Stop after this many cycles (runs forever when None).
            sleep: Sleep function; injectable for tests.

        Raises:
            CycleError: If the E2E harness directory does not exist.
        """
        if self.state.is_running:
            logger.warning("Monitor is already running")
            return

        if not self.config.e2e_dir.exists():
            raise CycleError(f"E2E directory does not exist: {self.config.e2e_dir}")

        self.state.is_running = True
        logger.info(
            f"🚀 Starting E2E monitor for {self.config.plugin_id}. "
            f"Running every {self.config.loop_interval:g} seconds."
        )

        cycles = 0
        try:
            while self.state.is_running:
                self.run_cycle()
                cycles += 1
                if max_cycles is not None and cycles >= max_cycles:
                    break
                if self.state.is_running:
                    sleep(self.config.loop_interval)
        finally:
            self.state.is_running = False
            logger.info("E2E monitor stopped")

    def stop(self) -> None:
        """Ask the loop to exit after the current cycle."""
        logger.info("Stopping E2E monitor...")
        self.state.is_running = False
