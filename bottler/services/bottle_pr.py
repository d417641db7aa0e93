"""Opening pull requests that ask CI to build missing bottles.

For each eligible formula the service creates a `bottle-<name>` branch off
the mainline, prepends a marker comment to the formula file, commits it,
pushes the branch to the maintainer's remote and opens a pull request with
hub. The working copy is always returned to the mainline afterwards.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from bottler.brew.formula import Formula, tap_slug
from bottler.core.config import Config
from bottler.core.result import Err, Ok, Result
from bottler.git.repository import GitError, Repository
from bottler.output.console import ConsoleProtocol, Style
from bottler.output.errors import print_bottle_error
from bottler.services.eligibility import (
    EligibilityFilter,
    EligibilityPolicy,
    PullRequest,
    Skip,
)
from bottler.services.errors import BottleError
from bottler.services.ports import FormulaStore, HostingService, RepositoryOps
from bottler.services.remote import RemoteCache

__all__ = [
    "BottlePrOptions",
    "BottlePrService",
    "RunSummary",
    "SubmitOutcome",
    "add_keep_old",
    "collect_formulae",
]

CIRCLECI_CONFIG = Path(".circleci") / "config.yml"
KEEP_OLD_COMMIT_MESSAGE = "drop! CircleCI: Add --keep-old [Linux]"

SubmitStatus = Literal["submitted", "skipped_eligibility", "dry_run"]


@dataclass(frozen=True, slots=True)
class BottlePrOptions:
    tag: str
    limit: int
    remote: str | None = None
    dry_run: bool = False
    verbose: bool = False
    force: bool = False
    browse: bool = False
    keep_old: bool = False


@dataclass(frozen=True, slots=True)
class SubmitOutcome:
    status: SubmitStatus
    reason: str | None = None
    url: str | None = None


@dataclass
class RunSummary:
    submitted: list[str] = field(default_factory=list)
    # Eligible formulae that would have been submitted without --dry-run.
    dry_run: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def add_keep_old(text: str) -> str | None:
    """Opt the CircleCI config into --keep-old; None if either line is missing."""
    text, n_bot = re.subn(
        r"brew test-bot$", "brew test-bot --keep-old", text, count=1, flags=re.M
    )
    text, n_upload = re.subn(r"ci-upload$", "ci-upload?keep-old=1", text, count=1, flags=re.M)
    if not (n_bot and n_upload):
        return None
    return text


def _git_failed(e: GitError, message: str) -> Err[BottleError]:
    return Err(BottleError(kind="command_failed", message=message, hint=e.message or None))


def collect_formulae(
    store: FormulaStore,
    names: list[str],
    *,
    with_deps: bool,
    console: ConsoleProtocol,
    verbose: bool,
) -> Result[list[Formula], BottleError]:
    """Load the named formulae, preceded by their shared dependencies."""
    ordered = list(names)
    if with_deps:
        deps = store.deps_union(names)
        if isinstance(deps, Err):
            return deps
        if verbose and deps.value:
            console.info(f"Adding following dependencies: {', '.join(deps.value)}")
        ordered = [*deps.value, *names]

    formulae: list[Formula] = []
    for name in ordered:
        loaded = store.formula(name)
        if isinstance(loaded, Err):
            return loaded
        formulae.append(loaded.value)
    return Ok(formulae)


class BottlePrService:
    def __init__(
        self,
        *,
        config: Config,
        options: BottlePrOptions,
        console: ConsoleProtocol,
        hosting: HostingService,
        store: FormulaStore,
        repo_factory: Callable[[Path], RepositoryOps] = Repository,
    ) -> None:
        self._config = config
        self._options = options
        self._console = console
        self._hosting = hosting
        self._store = store
        self._repo_factory = repo_factory
        self._repos: dict[Path, RepositoryOps] = {}
        self.remotes = RemoteCache(
            explicit_name=options.remote,
            env_user=config.env.user,
            env_login=config.env.github_user,
        )
        self.eligibility = EligibilityFilter(
            tag=options.tag,
            limit=options.limit,
            open_pr_lookup=self._open_pull_requests,
            policy=EligibilityPolicy.from_config(config.pr),
        )

    def check_remotes(self, formulae: list[Formula]) -> Result[None, BottleError]:
        """Resolve the push remote of every tap up front.

        Stops at the first working copy with uncommitted changes, after
        warning about it.
        """
        dirs: list[Path] = []
        for formula in formulae:
            if formula.tap.formula_dir not in dirs:
                dirs.append(formula.tap.formula_dir)

        for tap_dir in dirs:
            repo = self._repo(tap_dir)
            if self._options.verbose:
                self._console.info(f"Checking that specified remote exists in {tap_dir}")
            remote = self.remotes.resolve(repo)
            if isinstance(remote, Err):
                return Err(remote.error)
            if not repo.is_clean():
                self._console.warning(f"You have uncommitted changes to {tap_dir}")
                return Ok(None)
        return Ok(None)

    def run(self, formulae: list[Formula]) -> Result[RunSummary, BottleError]:
        """Process formulae in order.

        Fatal errors stop the run. Other failures are reported and the run
        continues with the next formula.
        """
        checked = self.check_remotes(formulae)
        if isinstance(checked, Err):
            return checked

        summary = RunSummary()
        for formula in formulae:
            result = self.submit(formula)
            match result:
                case Ok(outcome):
                    match outcome.status:
                        case "skipped_eligibility":
                            summary.skipped.append(formula.name)
                        case "dry_run":
                            summary.dry_run.append(formula.name)
                        case "submitted":
                            summary.submitted.append(formula.name)
                case Err(e):
                    if e.is_fatal:
                        return Err(e)
                    print_bottle_error(e, self._console)
                    if e.is_skip:
                        summary.skipped.append(formula.name)
                    else:
                        summary.failed.append(formula.name)
        return Ok(summary)

    def submit(self, formula: Formula) -> Result[SubmitOutcome, BottleError]:
        opts = self._options
        repo = self._repo(formula.tap.formula_dir)

        remote = self.remotes.resolve(repo)
        if isinstance(remote, Err):
            return Err(remote.error)

        decision = self.eligibility.check(formula)
        if isinstance(decision, Err):
            return decision
        verdict = decision.value
        if isinstance(verdict, Skip):
            self._report_skip(formula, verdict)
            return Ok(SubmitOutcome(status="skipped_eligibility", reason=verdict.reason))
        number = verdict.number

        audit = self._store.audit_online(formula.path)
        if isinstance(audit, Err):
            self._console.warning(f"Please fix audit failure for {formula}")

        message = self._config.pr.message_template.format(formula=formula.name)
        self._console.header(f"{number}. {message}")

        branch = f"bottle-{formula.name}"
        exists = repo.branch_exists(branch)
        if isinstance(exists, Err):
            return _git_failed(exists.error, f"{formula}: failed to list branches")
        if exists.value:
            if not opts.force:
                return Err(
                    BottleError(
                        kind="branch_exists",
                        message=f"{formula}: Branch {branch} already exists",
                        hint="Use --force to delete it",
                    )
                )
            if opts.verbose:
                self._console.info(f"{formula}: Removing branch {branch} in {repo.path}")
            deleted = repo.delete_branch(branch)
            if isinstance(deleted, Err):
                return _git_failed(deleted.error, f"{formula}: failed to delete branch {branch}")

        mainline = self._config.pr.mainline_branch
        created = repo.create_branch(branch, mainline)
        if isinstance(created, Err):
            return _git_failed(created.error, f"{formula}: failed to create branch {branch}")

        touched: list[Path] = []
        try:
            return self._publish(formula, repo, remote.value, branch, message, touched)
        finally:
            self._cleanup(repo, branch, touched)

    def _publish(
        self,
        formula: Formula,
        repo: RepositoryOps,
        remote: str,
        branch: str,
        message: str,
        touched: list[Path],
    ) -> Result[SubmitOutcome, BottleError]:
        opts = self._options
        if opts.dry_run:
            self._console.print(f"{formula}: dry run, not committing {branch}", Style.DIM)
            return Ok(SubmitOutcome(status="dry_run"))

        touched.append(formula.path)
        marked = _prepend_marker(formula.path, message)
        if isinstance(marked, Err):
            return marked

        if opts.keep_old:
            kept = self._keep_old(formula, repo, touched)
            if isinstance(kept, Err):
                return kept

        committed = repo.commit_paths([formula.path], message)
        if isinstance(committed, Err):
            return _git_failed(committed.error, f"{formula}: git commit failed")

        remote_exists = repo.remote_branch_exists(remote, branch)
        if isinstance(remote_exists, Err):
            return _git_failed(remote_exists.error, f"{formula}: failed to list remote branches")
        if remote_exists.value:
            if not opts.force:
                return Err(
                    BottleError(
                        kind="remote_branch_exists",
                        message=f"{formula}: Remote branch {remote}/{branch} already exists",
                        hint="Use --force to delete it",
                    )
                )
            if opts.verbose:
                self._console.info(f"{formula}: Removing branch {branch} from {remote}")
            deleted = repo.delete_remote_branch(remote, branch)
            if isinstance(deleted, Err):
                return _git_failed(deleted.error, f"{formula}: failed to delete {remote}/{branch}")

        return self._open_pull_request(formula, repo, remote, branch, message)

    def _open_pull_request(
        self,
        formula: Formula,
        repo: RepositoryOps,
        remote: str,
        branch: str,
        message: str,
    ) -> Result[SubmitOutcome, BottleError]:
        if self._options.verbose:
            self._console.info(f"{formula}: Using remote '{remote}' to submit Pull Request")

        pushed = repo.push(remote, branch)
        if isinstance(pushed, Err):
            return _git_failed(pushed.error, f"{formula}: git push {remote} {branch} failed")

        if not self._hosting.supports_assign_and_label:
            self._console.warning("Please upgrade hub\n  brew upgrade hub")

        created = self._hosting.create_pull_request(
            repo_dir=repo.path,
            head=f"{remote}:{branch}",
            message=message,
            assignee=self._config.env.account,
            label=self._config.pr.label,
            browse=self._options.browse,
        )
        if isinstance(created, Err):
            return created

        url = created.value
        self._console.success(f"{formula}: {url}" if url else f"{formula}: pull request opened")
        return Ok(SubmitOutcome(status="submitted", url=url))

    def _keep_old(
        self, formula: Formula, repo: RepositoryOps, touched: list[Path]
    ) -> Result[None, BottleError]:
        path = formula.tap.path / CIRCLECI_CONFIG
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            return Err(BottleError(kind="inreplace_failed", message=f"failed to read {path}: {e}"))

        updated = add_keep_old(text)
        if updated is None:
            return Err(
                BottleError(
                    kind="inreplace_failed",
                    message=f"{path}: expected 'brew test-bot' and 'ci-upload' lines",
                )
            )
        touched.append(path)
        try:
            path.write_text(updated, encoding="utf-8")
        except OSError as e:
            return Err(BottleError(kind="inreplace_failed", message=f"failed to write {path}: {e}"))

        committed = repo.commit_paths([path], KEEP_OLD_COMMIT_MESSAGE)
        if isinstance(committed, Err):
            return _git_failed(committed.error, f"{formula}: git commit {CIRCLECI_CONFIG} failed")
        return Ok(None)

    def _cleanup(self, repo: RepositoryOps, branch: str, touched: list[Path]) -> None:
        mainline = self._config.pr.mainline_branch
        # Uncommitted edits would otherwise follow the checkout onto the mainline.
        if touched:
            restored = repo.restore(touched)
            if isinstance(restored, Err):
                self._console.error(f"git checkout -- failed: {restored.error.message}")
        checkout = repo.checkout(mainline)
        if isinstance(checkout, Err):
            self._console.error(f"git checkout {mainline} failed: {checkout.error.message}")
            return
        deleted = repo.delete_branch(branch)
        if isinstance(deleted, Err):
            self._console.error(f"git branch -D {branch} failed: {deleted.error.message}")

    def _report_skip(self, formula: Formula, skip: Skip) -> None:
        if skip.is_open_pr:
            self._console.warning(f"{formula}: Skipping because {skip.reason}")
            for pr in skip.open_prs:
                self._console.print(f"{pr.title} ({pr.url})")
            return
        self._console.info(f"{formula}: Skipping because {skip.reason}")

    def _open_pull_requests(self, formula: Formula) -> Result[list[PullRequest], BottleError]:
        slug = tap_slug(formula.tap)
        if slug is None:
            return Ok([])
        return self._hosting.open_pull_requests(formula.name, repo_slug=slug)

    def _repo(self, path: Path) -> RepositoryOps:
        repo = self._repos.get(path)
        if repo is None:
            repo = self._repo_factory(path)
            self._repos[path] = repo
        return repo


def _prepend_marker(path: Path, message: str) -> Result[None, BottleError]:
    try:
        original = path.read_text(encoding="utf-8")
        path.write_text(f"# {message}\n{original}", encoding="utf-8")
    except OSError as e:
        return Err(BottleError(kind="command_failed", message=f"failed to update {path}: {e}"))
    return Ok(None)
