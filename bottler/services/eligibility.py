"""Deciding whether a formula needs a bottle pull request.

Checks run in a fixed order and the first match wins. The cheap, local
checks come first; the open-PR lookup (a network call) and the rate limit
come last.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field

from bottler.brew.formula import Formula, tap_slug
from bottler.core.config import PrConfig
from bottler.core.result import Err, Ok, Result
from bottler.services.errors import BottleError

__all__ = [
    "Decision",
    "EligibilityFilter",
    "EligibilityPolicy",
    "OpenPrLookup",
    "Proceed",
    "PullRequest",
    "RunCounter",
    "Skip",
    "should_skip",
]

MACOS_REQUIREMENT = "macos"


@dataclass(frozen=True, slots=True)
class PullRequest:
    title: str
    url: str
    state: str = "open"


@dataclass(frozen=True, slots=True)
class Skip:
    reason: str
    open_prs: tuple[PullRequest, ...] = ()

    @property
    def is_open_pr(self) -> bool:
        return bool(self.open_prs)


@dataclass(frozen=True, slots=True)
class Proceed:
    # 1-based position of this formula among those counted this run.
    number: int


type Decision = Skip | Proceed

type OpenPrLookup = Callable[[Formula], Result[list[PullRequest], BottleError]]


@dataclass
class RunCounter:
    """Formulae that reached the rate-limit check during this run."""

    value: int = 0

    def increment(self) -> int:
        self.value += 1
        return self.value


@dataclass(frozen=True, slots=True)
class EligibilityPolicy:
    """Which taps refuse Linux bottle requests.

    A tap whose slug matches `restricted_slug_pattern` is skipped unless its
    repo is `exception_repo`.
    """

    restricted_slug_pattern: str = "^Homebrew"
    exception_repo: str | None = "science"

    @classmethod
    def from_config(cls, pr: PrConfig) -> EligibilityPolicy:
        return cls(
            restricted_slug_pattern=pr.restricted_slug_pattern,
            exception_repo=pr.restricted_exception_repo,
        )

    def rejects(self, formula: Formula) -> bool:
        slug = tap_slug(formula.tap)
        if slug is None or re.search(self.restricted_slug_pattern, slug) is None:
            return False
        return formula.tap.repo != self.exception_repo


def _static_skip(formula: Formula, tag: str, policy: EligibilityPolicy) -> Skip | None:
    if MACOS_REQUIREMENT in formula.requirements:
        return Skip("it depends on macOS")
    if formula.bottle.unneeded:
        return Skip("a bottle is not needed")
    if formula.bottle.disabled:
        return Skip("bottles are disabled")
    if formula.bottle.has_tag(tag):
        return Skip("it has a bottle already")
    if policy.rejects(formula):
        return Skip(f"{formula.tap} does not support Linux")
    return None


def _rate_limited(limit: int) -> Skip:
    return Skip(f"GitHub rate limits pull requests (limit = {limit}).")


def should_skip(
    formula: Formula,
    tag: str,
    open_pr_lookup: OpenPrLookup,
    counter: RunCounter,
    limit: int,
    *,
    policy: EligibilityPolicy | None = None,
) -> Result[Decision, BottleError]:
    """Decide whether `formula` gets a bottle PR for `tag`.

    The counter is incremented for every formula that gets past the open-PR
    check, including the one that trips the limit, so it counts formulae
    considered rather than formulae submitted. Once it is past the limit,
    later formulae are rate limited without running any other check.

    Returns:
        Ok(Skip) or Ok(Proceed); Err if the open-PR lookup failed.
    """
    if counter.value > limit:
        counter.increment()
        return Ok(_rate_limited(limit))

    skip = _static_skip(formula, tag, policy or EligibilityPolicy())
    if skip is not None:
        return Ok(skip)

    lookup = open_pr_lookup(formula)
    if isinstance(lookup, Err):
        return lookup
    prefix = f"{formula.name}: "
    open_prs = tuple(pr for pr in lookup.value if pr.title.startswith(prefix))
    if open_prs:
        return Ok(Skip("a PR is open", open_prs=open_prs))

    number = counter.increment()
    if number > limit:
        return Ok(_rate_limited(limit))
    return Ok(Proceed(number=number))


@dataclass
class EligibilityFilter:
    """should_skip bound to one run's tag, limit, policy and counter."""

    tag: str
    limit: int
    open_pr_lookup: OpenPrLookup
    policy: EligibilityPolicy = field(default_factory=EligibilityPolicy)
    counter: RunCounter = field(default_factory=RunCounter)

    def check(self, formula: Formula) -> Result[Decision, BottleError]:
        return should_skip(
            formula,
            self.tag,
            self.open_pr_lookup,
            self.counter,
            self.limit,
            policy=self.policy,
        )
