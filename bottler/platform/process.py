"""Running git, hub, brew and docker.

This is the only module that calls `subprocess` directly. Failures come back
as `Err(ProcessError)` values; callers decide whether a failure is fatal for
the whole run or only for the formula being processed.

Usage:
    match run(["git", "remote"], cwd=tap_dir):
        case Ok(stdout):
            remotes = stdout.split()
        case Err(error):
            console.error(str(error))
"""

from __future__ import annotations

import shlex
import shutil
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from bottler.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run", "run_silent", "which"]

# Return code used when the process never started or was killed on timeout.
NOT_STARTED = -1


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command that could not be started or exited non-zero.

    `stdout` and `stderr` are empty for `run_silent`, whose output went
    straight to the terminal.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def command_line(self) -> str:
        """The command as it would be typed in a shell."""
        return shlex.join(self.command)

    @property
    def output(self) -> str:
        """The most useful captured text: stderr, else stdout."""
        return self.stderr.strip() or self.stdout.strip()

    def __str__(self) -> str:
        if self.returncode == NOT_STARTED:
            return f"Failure while executing `{self.command_line}`: {self.stderr}"
        return f"Failure while executing `{self.command_line}` (exit {self.returncode})"


def _failure(
    cmd: Sequence[str], returncode: int, stdout: str = "", stderr: str = ""
) -> Err[ProcessError]:
    error = ProcessError(command=tuple(cmd), returncode=returncode, stdout=stdout, stderr=stderr)
    return Err(error)


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Run a command and capture its output.

    Args:
        cmd: Command and arguments.
        cwd: Working directory.
        env: Full environment for the child (inherits ours if None).
        timeout: Seconds before the child is killed. Used for the network
            calls (`git push`, `hub api`) so a stalled connection cannot
            hang a batch of formulae.

    Returns:
        Ok(stdout) on exit 0, Err(ProcessError) otherwise.
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        return _failure(cmd, NOT_STARTED, partial, f"timed out after {timeout}s")
    except OSError as e:
        return _failure(cmd, NOT_STARTED, stderr=str(e))

    if proc.returncode != 0:
        return _failure(cmd, proc.returncode, proc.stdout, proc.stderr)
    return Ok(proc.stdout)


def run_silent(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
) -> Result[None, ProcessError]:
    """Run a command with its output streaming to the terminal.

    For the long steps (`docker run`, `brew audit`, `brew bottle --merge`)
    that the maintainer wants to watch. Nothing is captured.
    """
    try:
        proc = subprocess.run(cmd, cwd=str(cwd), env=env, check=False)
    except OSError as e:
        return _failure(cmd, NOT_STARTED, stderr=str(e))

    if proc.returncode != 0:
        return _failure(cmd, proc.returncode)
    return Ok(None)


def which(tool: str) -> str | None:
    """Locate an executable on PATH."""
    return shutil.which(tool)
