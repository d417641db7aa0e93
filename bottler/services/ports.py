"""Interfaces the services depend on.

`Repository`, `HubClient` and `BrewClient` are the production
implementations; tests provide in-memory fakes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from bottler.brew.formula import Formula
from bottler.core.result import Result
from bottler.git.repository import GitError
from bottler.services.eligibility import PullRequest
from bottler.services.errors import BottleError


class RepositoryOps(Protocol):
    path: Path

    def remotes(self) -> Result[list[str], GitError]: ...

    def remote_url(self, name: str) -> str | None: ...

    def is_clean(self) -> bool: ...

    def branch_exists(self, branch: str) -> Result[bool, GitError]: ...

    def remote_branch_exists(self, remote: str, branch: str) -> Result[bool, GitError]: ...

    def delete_branch(self, branch: str) -> Result[None, GitError]: ...

    def create_branch(self, branch: str, start_point: str) -> Result[None, GitError]: ...

    def checkout(self, branch: str) -> Result[None, GitError]: ...

    def restore(self, paths: list[Path]) -> Result[None, GitError]: ...

    def commit_paths(self, paths: list[Path], message: str) -> Result[None, GitError]: ...

    def push(self, remote: str, branch: str) -> Result[None, GitError]: ...

    def delete_remote_branch(self, remote: str, branch: str) -> Result[None, GitError]: ...


class HostingService(Protocol):
    @property
    def supports_assign_and_label(self) -> bool: ...

    def open_pull_requests(
        self, query: str, *, repo_slug: str
    ) -> Result[list[PullRequest], BottleError]: ...

    def create_pull_request(
        self,
        *,
        repo_dir: Path,
        head: str,
        message: str,
        assignee: str | None,
        label: str,
        browse: bool,
    ) -> Result[str | None, BottleError]: ...


class FormulaStore(Protocol):
    def formula(self, name: str) -> Result[Formula, BottleError]: ...

    def deps_union(self, names: list[str]) -> Result[list[str], BottleError]: ...

    def audit_online(self, path: Path) -> Result[None, BottleError]: ...


class BottleMerger(Protocol):
    def bottle_merge_write(
        self, json_files: list[Path], *, cwd: Path
    ) -> Result[None, BottleError]: ...
