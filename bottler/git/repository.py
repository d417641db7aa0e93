"""Git repository abstraction.

This module provides the Repository class for the git operations the bottle
PR workflow needs: listing remotes, creating and deleting branches,
committing files and pushing. All operations return Result types.

Usage:
    repo = Repository(tap.formula_dir)

    match repo.remotes():
        case Ok(names):
            print(names)
        case Err(e):
            print(f"Error: {e.message}")
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from bottler.core.result import Err, Ok, Result
from bottler.platform.process import ProcessError
from bottler.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

__all__ = [
    "GitError",
    "Repository",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


class Repository:
    """A git working copy.

    Commands run with `git -C <path>`; the process working directory is
    never changed.

    Attributes:
        path: Directory inside the working copy
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def remotes(self) -> Result[list[str], GitError]:
        """Names of the configured remotes (`git remote`)."""
        result = self._run_checked(["remote"])
        if isinstance(result, Err):
            return result
        return Ok(result.value.split())

    def remote_url(self, name: str) -> str | None:
        """URL of a remote, or None if it cannot be read."""
        result = self._run(["remote", "get-url", name])
        match result:
            case Ok(stdout):
                return stdout.strip() or None
            case Err(_):
                return None

    def is_clean(self) -> bool:
        """True if `git status --porcelain` reports nothing.

        A status that cannot be read counts as clean.
        """
        result = self._run(["status", "--porcelain"])
        match result:
            case Ok(stdout):
                return stdout.strip() == ""
            case Err(_):
                return True

    def branch_exists(self, branch: str) -> Result[bool, GitError]:
        result = self._run_checked(["branch", "--list", branch])
        if isinstance(result, Err):
            return result
        return Ok(result.value.strip() != "")

    def remote_branch_exists(self, remote: str, branch: str) -> Result[bool, GitError]:
        result = self._run_checked(["branch", "-r", "--list", f"{remote}/{branch}"])
        if isinstance(result, Err):
            return result
        return Ok(result.value.strip() != "")

    def delete_branch(self, branch: str) -> Result[None, GitError]:
        """Force-delete a local branch (`git branch -D`)."""
        return self._run_checked(["branch", "-D", branch]).map(lambda _: None)

    def create_branch(self, branch: str, start_point: str) -> Result[None, GitError]:
        """Create and check out a branch (`git checkout -b <branch> <start>`)."""
        return self._run_checked(["checkout", "-b", branch, start_point]).map(lambda _: None)

    def checkout(self, branch: str) -> Result[None, GitError]:
        return self._run_checked(["checkout", branch]).map(lambda _: None)

    def restore(self, paths: list[Path]) -> Result[None, GitError]:
        """Discard uncommitted changes to paths (`git checkout -- <paths>`)."""
        args = ["checkout", "--", *[str(p) for p in paths]]
        return self._run_checked(args).map(lambda _: None)

    def commit_paths(self, paths: list[Path], message: str) -> Result[None, GitError]:
        """Commit only the given paths (`git commit <paths> -m <message>`)."""
        args = ["commit", *[str(p) for p in paths], "-m", message]
        return self._run_checked(args).map(lambda _: None)

    def push(self, remote: str, branch: str) -> Result[None, GitError]:
        return self._run_checked(["push", remote, branch]).map(lambda _: None)

    def delete_remote_branch(self, remote: str, branch: str) -> Result[None, GitError]:
        return self._run_checked(["push", "--delete", remote, branch]).map(lambda _: None)

    def _run_checked(self, args: list[str]) -> Result[str, GitError]:
        result = self._run(args)
        match result:
            case Err(e):
                return Err(
                    GitError(
                        command=" ".join(args[:2]),
                        message=e.output or f"git {args[0]} failed",
                        returncode=e.returncode,
                    )
                )
            case Ok(stdout):
                return Ok(stdout)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS
            if command in {"fetch", "pull", "push", "clone"}
            else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)
