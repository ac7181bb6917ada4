"""
Command Runner - Narrow interface over external processes.

git, the compile script and the test harness are all invoked through a
CommandRunner so that the monitor can be exercised without a real shell.
"""

import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence, Union

from e2e_monitor.common.logger import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


@dataclass
class CommandResult:
    """Outcome of one external command."""
    args: Sequence[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return shlex.join([str(a) for a in self.args])


class CommandError(Exception):
    """Raised when a checked command exits non-zero or cannot be started."""

    def __init__(self, result: CommandResult, message: Optional[str] = None):
        self.result = result
        super().__init__(
            message
            or f"Command failed ({result.returncode}): {result.command_line}"
        )


class CommandRunner(Protocol):
    def run(
        self,
        args: Sequence[str],
        cwd: Optional[PathLike] = None,
        check: bool = True,
    ) -> CommandResult:
        ...


class SubprocessCommandRunner:
    """
    CommandRunner backed by subprocess.run.

    Commands are always passed as argument lists, never through a shell.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Optional per-command timeout in seconds.
        """
        self.timeout = timeout

    def run(
        self,
        args: Sequence[str],
        cwd: Optional[PathLike] = None,
        check: bool = True,
    ) -> CommandResult:
        """
        Run a command and capture its output.

        Args:
            args: Program and arguments.
            cwd: Working directory.
            check: Raise CommandError on non-zero exit.

        Returns:
            CommandResult for the finished process.

        Raises:
            CommandError: If check is set and the command fails, or if the
                program cannot be started at all.
        """
        args = [str(a) for a in args]
        command_line = shlex.join(args)
        logger.info(f"Executing: {command_line} (in {cwd or Path.cwd()})")

        try:
            completed = subprocess.run(
                args,
                cwd=str(cwd) if cwd is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            result = CommandResult(args=args, returncode=127, stderr=str(e))
            logger.error(f"Command not found: {command_line}")
            raise CommandError(result) from e
        except subprocess.TimeoutExpired as e:
            result = CommandResult(args=args, returncode=124, stderr=f"Timed out after {e.timeout}s")
            logger.error(f"Command timed out: {command_line}")
            raise CommandError(result) from e

        result = CommandResult(
            args=args,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

        if result.ok:
            logger.info(f"Command succeeded: {command_line}")
        else:
            logger.error(f"Command failed: {command_line}")
            if result.stderr.strip():
                logger.error(f"Stderr: {result.stderr.strip()}")
            if check:
                raise CommandError(result)
        return result
