"""Formula and tap metadata.

These are read-only snapshots of what `brew info --json=v1` and
`brew tap-info --json=v1` report. Nothing here is persisted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from bottler.core.structured import StrDict, as_str_dict, get_bool, get_list, get_str, get_table

__all__ = [
    "BottleSpec",
    "Formula",
    "Tap",
    "parse_formula",
    "parse_tap",
    "tap_slug",
]

_GITHUB_REMOTE_RE = re.compile(r"^https://github\.com/([^.]+)(\.git)?$")


@dataclass(frozen=True, slots=True)
class Tap:
    """A repository of formula definitions.

    Attributes:
        user: Owning user/organization (e.g. "homebrew")
        repo: Repository name without the "homebrew-" prefix (e.g. "core")
        path: Root of the local checkout
        remote: Fetch URL of the checkout, if any
        official: True for taps owned by the Homebrew organization
    """

    user: str
    repo: str
    path: Path
    remote: str | None = None
    official: bool = False

    @property
    def name(self) -> str:
        return f"{self.user}/{self.repo}"

    @property
    def formula_dir(self) -> Path:
        formula_dir = self.path / "Formula"
        return formula_dir if formula_dir.is_dir() else self.path

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class BottleSpec:
    """Bottle state of a formula.

    Attributes:
        tags: Platform tags a bottle already exists for
        unneeded: The formula declares that it never needs a bottle
        disabled: Bottles are disabled for the formula
    """

    tags: frozenset[str] = field(default_factory=frozenset)
    unneeded: bool = False
    disabled: bool = False

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


@dataclass(frozen=True, slots=True)
class Formula:
    name: str
    path: Path
    tap: Tap
    requirements: tuple[str, ...] = ()
    bottle: BottleSpec = field(default_factory=BottleSpec)

    def __str__(self) -> str:
        return self.name


def tap_slug(tap: Tap) -> str | None:
    """The GitHub `owner/repo` slug of a tap.

    Not simply "<user>/homebrew-<repo>": the core tap may live under
    either Homebrew/homebrew-core or Linuxbrew/homebrew-core, so the remote
    wins when there is one. A remote that is not a GitHub HTTPS URL has no
    slug.
    """
    if tap.remote is None:
        return f"{tap.user}/homebrew-{tap.repo}"
    m = _GITHUB_REMOTE_RE.match(tap.remote)
    if m is None:
        return None
    slug = m.group(1)
    return slug.capitalize() if tap.official else slug


def parse_tap(data: StrDict) -> Tap | None:
    """Build a Tap from one `brew tap-info --json=v1` entry."""
    name = get_str(data, "name")
    path = get_str(data, "path")
    if name is None or path is None or "/" not in name:
        return None

    user = get_str(data, "user")
    repo = get_str(data, "repo")
    if user is None or repo is None:
        user, repo = name.split("/", 1)

    return Tap(
        user=user,
        repo=repo,
        path=Path(path),
        remote=get_str(data, "remote"),
        official=bool(get_bool(data, "official")),
    )


def _bottle_tags(info: StrDict) -> frozenset[str]:
    bottle = get_table(info, "bottle") or {}
    stable = get_table(bottle, "stable") or {}
    files = get_table(stable, "files") or {}
    return frozenset(files.keys())


def _requirement_names(info: StrDict) -> tuple[str, ...]:
    names: list[str] = []
    for item in get_list(info, "requirements") or []:
        req = as_str_dict(item)
        if req is None:
            continue
        name = get_str(req, "name")
        if name is not None:
            names.append(name)
    return tuple(names)


def parse_formula(info: StrDict, *, path: Path, tap: Tap) -> Formula | None:
    """Build a Formula from one `brew info --json=v1` entry."""
    name = get_str(info, "name")
    if name is None:
        return None

    return Formula(
        name=name,
        path=path,
        tap=tap,
        requirements=_requirement_names(info),
        bottle=BottleSpec(
            tags=_bottle_tags(info),
            unneeded=bool(get_bool(info, "bottle_unneeded")),
            disabled=bool(get_bool(info, "bottle_disabled")),
        ),
    )
