from __future__ import annotations

from functools import partial
from pathlib import Path

import pytest
import typer

from bottler.cli.context import CLIContext
from bottler.core.config import Config, EnvConfig
from bottler.core.result import Err, Ok, Result
from bottler.core.version import ToolVersion
from bottler.output.console import MockConsole
from bottler.services.bottle_pr import BottlePrService
from bottler.services.errors import BottleError
from bottler.services.hub import HubCapabilities
from bottler.test.fakes import FakeHosting, FakeRepo, FakeStore, make_formula, make_tap


class _Env:
    def __init__(self, tmp_path: Path) -> None:
        self.console = MockConsole()
        self.tap = make_tap(tmp_path)
        self.repo = FakeRepo(path=self.tap.formula_dir)
        self.store = FakeStore(
            formulae={n: make_formula(n, self.tap) for n in ("foo", "bar", "zlib")},
            deps=["zlib"],
        )
        self.hosting = FakeHosting()
        self.capabilities = HubCapabilities(
            version=ToolVersion((2, 14, 2)), assign_and_label=True, api=True
        )


@pytest.fixture
def env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> _Env:
    import bottler.cli.commands.bottle_pr_cmd as cmd

    state = _Env(tmp_path)
    ctx = CLIContext(config=Config(env=EnvConfig(github_user="alice")), console=state.console)

    def fake_detect(*, cwd: Path, min_version: str) -> HubCapabilities:
        del cwd, min_version
        return state.capabilities

    monkeypatch.setattr(cmd, "build_context", lambda: ctx)
    monkeypatch.setattr(cmd, "ensure_hub_available", lambda: Ok(None))
    monkeypatch.setattr(cmd, "detect_capabilities", fake_detect)
    monkeypatch.setattr(cmd, "BrewClient", lambda **_: state.store)
    monkeypatch.setattr(cmd, "HubClient", lambda **_: state.hosting)
    monkeypatch.setattr(
        cmd, "BottlePrService", partial(BottlePrService, repo_factory=lambda _p: state.repo)
    )
    return state


def _invoke(formulae: list[str] | None, **overrides: object) -> None:
    import bottler.cli.commands.bottle_pr_cmd as cmd

    kwargs: dict[str, object] = {
        "remote": None,
        "tag": None,
        "limit": None,
        "dry_run": False,
        "verbose": False,
        "force": False,
        "browse": False,
        "keep_old": False,
        "no_deps": False,
        "version": False,
    }
    kwargs.update(overrides)
    cmd.build_bottle_pr(formulae, **kwargs)  # type: ignore[arg-type]


def test_submits_dependencies_first(env: _Env) -> None:
    _invoke(["foo", "bar"])

    assert [c["head"] for c in env.hosting.created] == [
        "alice:bottle-zlib",
        "alice:bottle-foo",
        "alice:bottle-bar",
    ]
    assert not env.console.has_error()


def test_single_formula_gets_dependencies_first(env: _Env) -> None:
    _invoke(["foo"])
    assert [c["head"] for c in env.hosting.created] == ["alice:bottle-zlib", "alice:bottle-foo"]


def test_no_deps(env: _Env) -> None:
    _invoke(["foo", "bar"], no_deps=True)
    assert [c["head"] for c in env.hosting.created] == ["alice:bottle-foo", "alice:bottle-bar"]


def test_limit_and_dry_run_are_passed_through(env: _Env) -> None:
    _invoke(["foo", "bar"], limit=1, dry_run=True, no_deps=True)

    assert env.hosting.created == []
    assert "bar: Skipping because GitHub rate limits pull requests (limit = 1)." in (
        env.console.messages
    )


def test_no_formulae_is_a_user_error(env: _Env) -> None:
    with pytest.raises(typer.Exit) as exc:
        _invoke(None)

    assert exc.value.exit_code == 1
    assert "Error: No formula has been specified" in env.console.messages


def test_missing_hub_is_an_env_error(env: _Env, monkeypatch: pytest.MonkeyPatch) -> None:
    import bottler.cli.commands.bottle_pr_cmd as cmd

    def missing() -> Result[None, BottleError]:
        return Err(BottleError(kind="tool_missing", message="Please install hub"))

    monkeypatch.setattr(cmd, "ensure_hub_available", missing)

    with pytest.raises(typer.Exit) as exc:
        _invoke(["foo"])

    assert exc.value.exit_code == 2


def test_unknown_remote_is_a_user_error(env: _Env) -> None:
    with pytest.raises(typer.Exit) as exc:
        _invoke(["foo"], remote="origin2")

    assert exc.value.exit_code == 1
    assert env.console.find("No remote 'origin2' was found")
    assert env.hosting.created == []


def test_failed_formula_exits_with_build_error(env: _Env) -> None:
    env.repo.fail_on.add("push")

    with pytest.raises(typer.Exit) as exc:
        _invoke(["foo"])

    assert exc.value.exit_code == 3
    assert "Error: Failed: zlib, foo" in env.console.messages
    assert env.repo.ops()[-2:] == ["checkout", "branch -D"]


def test_existing_branch_is_reported_but_not_a_failure(env: _Env) -> None:
    env.repo.local_branches.add("bottle-foo")

    _invoke(["foo"])

    assert "Error: foo: Branch bottle-foo already exists" in env.console.messages
    assert [c["head"] for c in env.hosting.created] == ["alice:bottle-zlib"]
