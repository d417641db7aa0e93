from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

BottleErrorKind = Literal[
    # configuration: abort the whole run
    "invalid_remote",
    "no_remote",
    "missing_credentials",
    "tool_missing",
    "no_formulae",
    "config_invalid",
    # precondition: skip one formula
    "branch_exists",
    # external command: abort one formula, cleanup still runs
    "command_failed",
    "remote_branch_exists",
    "inreplace_failed",
    "invalid_output",
    "build_failed",
    "no_bottle_metadata",
]

FATAL_KINDS: frozenset[str] = frozenset(
    {
        "invalid_remote",
        "no_remote",
        "missing_credentials",
        "tool_missing",
        "no_formulae",
        "config_invalid",
    }
)


@dataclass(frozen=True, slots=True)
class BottleError:
    kind: BottleErrorKind
    message: str
    hint: str | None = None
    # Extra diagnostic lines (e.g. the list of available remotes).
    details: tuple[str, ...] = ()

    @property
    def is_fatal(self) -> bool:
        return self.kind in FATAL_KINDS

    @property
    def is_skip(self) -> bool:
        return self.kind == "branch_exists"

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
