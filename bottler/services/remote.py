"""Choosing the git remote that receives bottle branches."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from bottler.core.result import Err, Ok, Result
from bottler.services.errors import BottleError
from bottler.services.ports import RepositoryOps

__all__ = ["RemoteCache", "describe_remotes", "resolve_remote"]

_NO_REMOTE_HELP = (
    "You can do so:",
    " * on the command line via --remote=NAME",
    " * by setting HOMEBREW_GITHUB_USER env. variable",
    " * or by having a remote named as your USER env. variable",
)


def resolve_remote(
    explicit_name: str | None,
    available_remotes: Sequence[str],
    env_user: str | None,
    env_login: str | None,
) -> Result[str, BottleError]:
    """Pick a push remote.

    An explicit name must exist. Without one, the remote named after the
    configured login ($HOMEBREW_GITHUB_USER) wins over the one named after the
    OS user ($USER).

    Errors carry the available remote names in `details`.
    """
    available = tuple(available_remotes)
    if explicit_name is not None:
        if explicit_name in available:
            return Ok(explicit_name)
        return Err(
            BottleError(
                kind="invalid_remote",
                message=f"No remote '{explicit_name}' was found",
                details=available,
            )
        )

    for candidate in (env_login, env_user):
        if candidate and candidate in available:
            return Ok(candidate)

    return Err(
        BottleError(
            kind="no_remote",
            message="Please provide a valid remote name to use for Pull Requests",
            details=available,
        )
    )


def describe_remotes(repo: RepositoryOps, names: Sequence[str]) -> tuple[str, ...]:
    """Diagnostic lines listing each remote with its URL."""
    lines = ["Available remotes:"]
    for name in names:
        url = repo.remote_url(name) or ""
        lines.append(f"* {name.ljust(16)} {url}".rstrip())
    return tuple(lines)


class RemoteCache:
    """Resolves the push remote once per working copy for the current run."""

    def __init__(
        self,
        *,
        explicit_name: str | None,
        env_user: str | None,
        env_login: str | None,
    ) -> None:
        self.explicit_name = explicit_name
        self.env_user = env_user
        self.env_login = env_login
        self._resolved: dict[Path, str] = {}

    def resolve(self, repo: RepositoryOps) -> Result[str, BottleError]:
        cached = self._resolved.get(repo.path)
        if cached is not None:
            return Ok(cached)

        remotes = repo.remotes()
        if isinstance(remotes, Err):
            return Err(
                BottleError(
                    kind="command_failed",
                    message=f"failed to list remotes in {repo.path}",
                    hint=remotes.error.message,
                )
            )

        result = resolve_remote(
            self.explicit_name,
            remotes.value,
            env_user=self.env_user,
            env_login=self.env_login,
        )
        if isinstance(result, Err):
            e = result.error
            if e.kind == "no_remote":
                message, help_lines = e.message, _NO_REMOTE_HELP
            else:
                message, help_lines = f"{e.message} in {repo.path}", ()
            return Err(
                BottleError(
                    kind=e.kind,
                    message=message,
                    details=(*help_lines, *describe_remotes(repo, e.details)),
                )
            )

        self._resolved[repo.path] = result.value
        return result
