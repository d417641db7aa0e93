from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Any

import pytest

from bottler.brew.formula import Tap
from bottler.core.config import Config, EnvConfig
from bottler.core.result import Err, Ok
from bottler.output.console import MockConsole, Style
from bottler.services.bottle_pr import (
    KEEP_OLD_COMMIT_MESSAGE,
    BottlePrOptions,
    BottlePrService,
    SubmitOutcome,
    add_keep_old,
    collect_formulae,
)
from bottler.services.eligibility import PullRequest
from bottler.test.fakes import FakeHosting, FakeRepo, FakeStore, make_formula, make_tap

CIRCLECI = """\
jobs:
  build:
    steps:
      - run: brew test-bot
      - run: curl https://example.test/ci-upload
"""


def _service(
    repo: FakeRepo,
    *,
    hosting: FakeHosting | None = None,
    store: FakeStore | None = None,
    console: MockConsole | None = None,
    **opts: Any,
) -> BottlePrService:
    opts.setdefault("limit", 10)
    options = BottlePrOptions(tag="x86_64_linux", **opts)
    return BottlePrService(
        config=Config(env=EnvConfig(github_user="alice", user="alice")),
        options=options,
        console=console or MockConsole(),
        hosting=hosting or FakeHosting(),
        store=store or FakeStore(),
        repo_factory=lambda _path: repo,
    )


@pytest.fixture
def tap(tmp_path: Path):
    return make_tap(tmp_path)


@pytest.fixture
def repo(tap) -> FakeRepo:
    return FakeRepo(path=tap.formula_dir)


class TestSubmit:
    def test_opens_pull_request(self, tap, repo: FakeRepo) -> None:
        foo = make_formula("foo", tap)
        hosting = FakeHosting()
        console = MockConsole()

        result = _service(repo, hosting=hosting, console=console).submit(foo)

        assert isinstance(result, Ok)
        assert result.value.status == "submitted"
        assert result.value.url == "https://github.com/Linuxbrew/homebrew-extra/pull/1"
        assert repo.calls == [
            ("remote",),
            ("checkout -b", "bottle-foo", "master"),
            ("commit", "foo.rb", "foo: Build a bottle for Linuxbrew"),
            ("push", "alice", "bottle-foo"),
            ("checkout --", "foo.rb"),
            ("checkout", "master"),
            ("branch -D", "bottle-foo"),
        ]
        assert hosting.created == [
            {
                "head": "alice:bottle-foo",
                "message": "foo: Build a bottle for Linuxbrew",
                "assignee": "alice",
                "label": "bottle",
                "browse": False,
            }
        ]
        assert foo.path.read_text(encoding="utf-8").startswith(
            "# foo: Build a bottle for Linuxbrew\nclass Foo"
        )
        assert "1. foo: Build a bottle for Linuxbrew" in console.messages
        assert repo.current == "master"

    def test_dry_run_creates_and_removes_branch_only(self, tap, repo: FakeRepo) -> None:
        foo = make_formula("foo", tap)
        before = foo.path.read_text(encoding="utf-8")
        hosting = FakeHosting()

        result = _service(repo, hosting=hosting, dry_run=True).submit(foo)

        assert result == Ok(SubmitOutcome(status="dry_run"))
        assert repo.ops() == ["remote", "checkout -b", "checkout", "branch -D"]
        assert hosting.created == []
        assert foo.path.read_text(encoding="utf-8") == before

    def test_cleanup_runs_after_push_failure(self, tap) -> None:
        repo = FakeRepo(path=tap.formula_dir, fail_on={"push"})
        hosting = FakeHosting()

        result = _service(repo, hosting=hosting).submit(make_formula("foo", tap))

        assert isinstance(result, Err)
        assert result.error.kind == "command_failed"
        assert repo.ops()[-2:] == ["checkout", "branch -D"]
        assert repo.current == "master"
        assert "bottle-foo" not in repo.local_branches
        assert hosting.created == []

    def test_cleanup_runs_after_pull_request_failure(self, tap, repo: FakeRepo) -> None:
        result = _service(repo, hosting=FakeHosting(fail_create=True)).submit(
            make_formula("foo", tap)
        )

        assert isinstance(result, Err)
        assert repo.ops()[-2:] == ["checkout", "branch -D"]

    def test_existing_branch_without_force_is_skipped(self, tap) -> None:
        repo = FakeRepo(path=tap.formula_dir, local_branches={"bottle-foo"})

        result = _service(repo).submit(make_formula("foo", tap))

        assert isinstance(result, Err)
        assert result.error.kind == "branch_exists"
        assert result.error.is_skip
        assert result.error.message == "foo: Branch bottle-foo already exists"
        assert repo.ops() == ["remote"]

    def test_existing_branch_is_deleted_with_force(self, tap) -> None:
        repo = FakeRepo(path=tap.formula_dir, local_branches={"bottle-foo"})

        result = _service(repo, force=True).submit(make_formula("foo", tap))

        assert isinstance(result, Ok)
        assert repo.calls[1] == ("branch -D", "bottle-foo")
        assert repo.calls[2] == ("checkout -b", "bottle-foo", "master")

    def test_existing_remote_branch_without_force_fails(self, tap) -> None:
        repo = FakeRepo(path=tap.formula_dir, remote_branches={"alice/bottle-foo"})
        hosting = FakeHosting()

        result = _service(repo, hosting=hosting).submit(make_formula("foo", tap))

        assert isinstance(result, Err)
        assert result.error.kind == "remote_branch_exists"
        assert "push" not in repo.ops()
        assert repo.ops()[-2:] == ["checkout", "branch -D"]

    def test_existing_remote_branch_is_deleted_with_force(self, tap) -> None:
        repo = FakeRepo(path=tap.formula_dir, remote_branches={"alice/bottle-foo"})

        result = _service(repo, force=True).submit(make_formula("foo", tap))

        assert isinstance(result, Ok)
        ops = repo.ops()
        assert ops.index("push --delete") < ops.index("push")

    def test_keep_old_commits_circleci_config(self, tap, repo: FakeRepo) -> None:
        config = tap.path / ".circleci" / "config.yml"
        config.parent.mkdir()
        config.write_text(CIRCLECI, encoding="utf-8")

        result = _service(repo, keep_old=True).submit(make_formula("foo", tap))

        assert isinstance(result, Ok)
        text = config.read_text(encoding="utf-8")
        assert "brew test-bot --keep-old\n" in text
        assert "ci-upload?keep-old=1\n" in text
        commits = [c for c in repo.calls if c[0] == "commit"]
        assert commits == [
            ("commit", "config.yml", KEEP_OLD_COMMIT_MESSAGE),
            ("commit", "foo.rb", "foo: Build a bottle for Linuxbrew"),
        ]

    def test_keep_old_without_matching_lines_fails(self, tap, repo: FakeRepo) -> None:
        config = tap.path / ".circleci" / "config.yml"
        config.parent.mkdir()
        config.write_text("jobs: {}\n", encoding="utf-8")

        result = _service(repo, keep_old=True).submit(make_formula("foo", tap))

        assert isinstance(result, Err)
        assert result.error.kind == "inreplace_failed"
        assert "push" not in repo.ops()
        assert repo.ops()[-2:] == ["checkout", "branch -D"]

    def test_failure_after_marker_restores_formula_file(self, tap, repo: FakeRepo) -> None:
        foo = make_formula("foo", tap)

        result = _service(repo, keep_old=True).submit(foo)

        assert isinstance(result, Err)
        assert result.error.kind == "inreplace_failed"
        assert repo.ops()[-3:] == ["checkout --", "checkout", "branch -D"]
        assert ("checkout --", "foo.rb") in repo.calls

    def test_failed_restore_is_reported_and_cleanup_continues(self, tap) -> None:
        repo = FakeRepo(path=tap.formula_dir, fail_on={"commit", "restore"})
        console = MockConsole()

        result = _service(repo, console=console).submit(make_formula("foo", tap))

        assert isinstance(result, Err)
        assert result.error.kind == "command_failed"
        assert console.find("git checkout -- failed")
        assert repo.ops()[-2:] == ["checkout", "branch -D"]

    def test_old_hub_warns_and_still_opens_pull_request(self, tap, repo: FakeRepo) -> None:
        hosting = FakeHosting(assign_and_label=False)
        console = MockConsole()

        result = _service(repo, hosting=hosting, console=console).submit(
            make_formula("foo", tap)
        )

        assert isinstance(result, Ok)
        assert console.find("Please upgrade hub")
        assert len(hosting.created) == 1

    def test_audit_failure_only_warns(self, tap, repo: FakeRepo) -> None:
        store = FakeStore(audit_ok=False)
        console = MockConsole()
        foo = make_formula("foo", tap)

        result = _service(repo, store=store, console=console).submit(foo)

        assert isinstance(result, Ok)
        assert store.audited == [foo.path]
        assert "Warning: Please fix audit failure for foo" in console.messages

    def test_skipped_formula_has_no_side_effects(self, tap, repo: FakeRepo) -> None:
        foo = make_formula("foo", tap, tags=("x86_64_linux",))
        store = FakeStore()
        console = MockConsole()

        result = _service(repo, store=store, console=console).submit(foo)

        assert isinstance(result, Ok)
        assert result.value.status == "skipped_eligibility"
        assert repo.ops() == ["remote"]
        assert store.audited == []
        assert "foo: Skipping because it has a bottle already" in console.messages

    def test_open_pull_request_is_listed(self, tap, repo: FakeRepo) -> None:
        pr = PullRequest(title="foo: Build a bottle for Linuxbrew", url="https://x/pull/7")
        hosting = FakeHosting(open_prs={"foo": [pr]})
        console = MockConsole()

        result = _service(repo, hosting=hosting, console=console).submit(
            make_formula("foo", tap)
        )

        assert isinstance(result, Ok)
        assert result.value.status == "skipped_eligibility"
        assert hosting.lookups == [("foo", "Linuxbrew/homebrew-extra")]
        assert "Warning: foo: Skipping because a PR is open" in console.messages
        assert "foo: Build a bottle for Linuxbrew (https://x/pull/7)" in console.messages


class TestRun:
    def test_rate_limit_skips_after_limit(self, tap, repo: FakeRepo) -> None:
        formulae = [make_formula(n, tap) for n in ("a", "b", "c")]
        console = MockConsole()
        service = _service(repo, console=console, limit=2)

        result = service.run(formulae)

        assert isinstance(result, Ok)
        assert result.value.submitted == ["a", "b"]
        assert result.value.skipped == ["c"]
        assert "c: Skipping because GitHub rate limits pull requests (limit = 2)." in (
            console.messages
        )

    def test_dry_run_is_not_reported_as_submitted(self, tap, repo: FakeRepo) -> None:
        formulae = [make_formula(n, tap) for n in ("a", "b")]

        result = _service(repo, dry_run=True).run(formulae)

        assert isinstance(result, Ok)
        assert result.value.dry_run == ["a", "b"]
        assert result.value.submitted == []
        assert result.value.ok

    def test_failure_continues_with_next_formula(self, tap) -> None:
        repo = FakeRepo(path=tap.formula_dir, local_branches={"bottle-a"})
        formulae = [make_formula(n, tap) for n in ("a", "b")]
        console = MockConsole()

        result = _service(repo, console=console).run(formulae)

        assert isinstance(result, Ok)
        assert result.value.skipped == ["a"]
        assert result.value.submitted == ["b"]
        assert result.value.ok
        assert "Error: a: Branch bottle-a already exists" in console.messages

    def test_command_failure_is_counted(self, tap) -> None:
        repo = FakeRepo(path=tap.formula_dir, fail_on={"commit"})

        result = _service(repo).run([make_formula("a", tap)])

        assert isinstance(result, Ok)
        assert result.value.failed == ["a"]
        assert not result.value.ok

    def test_missing_remote_stops_the_run(self, tap) -> None:
        repo = FakeRepo(path=tap.formula_dir, remote_names=["origin"])
        service = _service(repo)

        result = service.run([make_formula("a", tap), make_formula("b", tap)])

        assert isinstance(result, Err)
        assert result.error.kind == "no_remote"
        assert repo.ops() == ["remote"]

    def test_uncommitted_changes_warn(self, tap) -> None:
        repo = FakeRepo(path=tap.formula_dir, clean=False)
        console = MockConsole()

        result = _service(repo, console=console).check_remotes([make_formula("a", tap)])

        assert result == Ok(None)
        assert f"Warning: You have uncommitted changes to {tap.formula_dir}" in console.messages

    def test_verbose_announces_remote_check(self, tap, repo: FakeRepo) -> None:
        console = MockConsole()

        _service(repo, console=console, verbose=True).check_remotes([make_formula("a", tap)])

        assert console.find("Checking that specified remote exists in")
        assert console.count(Style.WARNING) == 0


class TestCollectFormulae:
    def test_dependencies_come_first(self, tap) -> None:
        store = FakeStore(
            formulae={n: make_formula(n, tap) for n in ("a", "b", "dep")}, deps=["dep"]
        )
        console = MockConsole()

        result = collect_formulae(store, ["a", "b"], with_deps=True, console=console, verbose=True)

        assert isinstance(result, Ok)
        assert [f.name for f in result.value] == ["dep", "a", "b"]
        assert "Adding following dependencies: dep" in console.messages

    def test_single_formula_still_gets_its_dependencies(self, tap) -> None:
        store = FakeStore(formulae={n: make_formula(n, tap) for n in ("a", "dep")}, deps=["dep"])

        result = collect_formulae(
            store, ["a"], with_deps=True, console=MockConsole(), verbose=False
        )

        assert isinstance(result, Ok)
        assert [f.name for f in result.value] == ["dep", "a"]

    def test_no_deps(self, tap) -> None:
        store = FakeStore(formulae={n: make_formula(n, tap) for n in ("a", "b")}, deps=["dep"])

        result = collect_formulae(
            store, ["a", "b"], with_deps=False, console=MockConsole(), verbose=False
        )

        assert isinstance(result, Ok)
        assert [f.name for f in result.value] == ["a", "b"]

    def test_unknown_formula_fails(self) -> None:
        result = collect_formulae(
            FakeStore(), ["nope"], with_deps=False, console=MockConsole(), verbose=False
        )
        assert isinstance(result, Err)


class TestAddKeepOld:
    def test_rewrites_both_lines(self) -> None:
        updated = add_keep_old(CIRCLECI)
        assert updated is not None
        assert "brew test-bot --keep-old" in updated
        assert "ci-upload?keep-old=1" in updated

    def test_lines_must_end_at_match(self) -> None:
        assert add_keep_old("brew test-bot --foo\nci-upload\n") is None
        assert add_keep_old("brew test-bot\n") is None


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        raise RuntimeError(
            f"git {' '.join(args)} failed (code {result.returncode}): {result.stderr.strip()}"
        )
    return result.stdout.strip()


def _init_tap(tmp_path: Path) -> Tap:
    root = tmp_path.resolve()
    remote = root / "alice.git"
    _git(root, "init", "--bare", str(remote))

    checkout = root / "homebrew-extra"
    checkout.mkdir()
    _git(checkout, "init", "-b", "master")
    _git(checkout, "config", "user.email", "test@example.com")
    _git(checkout, "config", "user.name", "Test")
    _git(checkout, "config", "commit.gpgsign", "false")
    _git(checkout, "remote", "add", "alice", str(remote))
    return make_tap(checkout)


@pytest.mark.skipif(shutil.which("git") is None, reason="git not available")
def test_failed_submission_leaves_mainline_clean(tmp_path: Path) -> None:
    tap = _init_tap(tmp_path)
    foo = make_formula("foo", tap)
    _git(tap.path, "add", "foo.rb")
    _git(tap.path, "commit", "-m", "foo 1.0")
    before = foo.path.read_text(encoding="utf-8")
    service = BottlePrService(
        config=Config(env=EnvConfig(github_user="alice", user="alice")),
        options=BottlePrOptions(tag="x86_64_linux", limit=10, keep_old=True),
        console=MockConsole(),
        hosting=FakeHosting(),
        store=FakeStore(),
    )

    # No .circleci/config.yml, so --keep-old fails after the marker was written.
    result = service.submit(foo)

    assert isinstance(result, Err)
    assert result.error.kind == "inreplace_failed"
    assert _git(tap.path, "rev-parse", "--abbrev-ref", "HEAD") == "master"
    assert _git(tap.path, "status", "--porcelain") == ""
    assert _git(tap.path, "branch", "--list", "bottle-foo") == ""
    assert foo.path.read_text(encoding="utf-8") == before
