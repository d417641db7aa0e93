"""Thin wrapper over the `brew` executable.

Formula and tap metadata come from brew's JSON output; dependency listing,
auditing and bottle merging are delegated to brew's own subcommands.
"""

from __future__ import annotations

import json
from pathlib import Path

from bottler.brew.formula import Formula, Tap, parse_formula, parse_tap
from bottler.core.config import EnvConfig
from bottler.core.result import Err, Ok, Result
from bottler.core.structured import as_obj_list, as_str_dict, get_str
from bottler.platform.process import ProcessError, run, run_silent, which
from bottler.services.errors import BottleError

__all__ = ["BrewClient", "brew_executable"]

_BREW_TIMEOUT_SECONDS = 5 * 60.0


def brew_executable(env: EnvConfig) -> str:
    """Locate brew: $HOMEBREW_BREW_FILE, then $HOMEBREW_PREFIX/bin/brew, then PATH."""
    if env.brew_file:
        return env.brew_file
    if env.prefix:
        return str(Path(env.prefix) / "bin" / "brew")
    return which("brew") or "brew"


def _command_failed(e: ProcessError, message: str) -> Err[BottleError]:
    return Err(
        BottleError(
            kind="command_failed",
            message=message,
            hint=e.stderr.strip() or None,
        )
    )


class BrewClient:
    def __init__(self, *, env: EnvConfig, cwd: Path) -> None:
        self.brew = brew_executable(env)
        self.cwd = cwd
        self._taps: dict[str, Tap] = {}

    def formula(self, name: str) -> Result[Formula, BottleError]:
        """Load a formula with its tap and definition path."""
        info = self._json(["info", "--json=v1", name], what=f"formula {name}")
        if isinstance(info, Err):
            return info
        entries = as_obj_list(info.value) or []
        data = as_str_dict(entries[0]) if entries else None
        if data is None:
            return Err(BottleError(kind="invalid_output", message=f"{name}: no formula metadata"))

        tap_name = get_str(data, "tap")
        if tap_name is None:
            return Err(
                BottleError(
                    kind="invalid_output",
                    message=f"{name}: formula does not belong to a tap",
                )
            )
        tap = self.tap(tap_name)
        if isinstance(tap, Err):
            return tap

        path = self._run(["formula", name], what=f"locate formula {name}")
        if isinstance(path, Err):
            return path
        lines = path.value.strip().splitlines()
        if not lines:
            return Err(BottleError(kind="invalid_output", message=f"{name}: no formula path"))

        formula = parse_formula(data, path=Path(lines[-1].strip()), tap=tap.value)
        if formula is None:
            return Err(BottleError(kind="invalid_output", message=f"{name}: no formula metadata"))
        return Ok(formula)

    def tap(self, name: str) -> Result[Tap, BottleError]:
        cached = self._taps.get(name)
        if cached is not None:
            return Ok(cached)

        info = self._json(["tap-info", "--json=v1", name], what=f"tap {name}")
        if isinstance(info, Err):
            return info
        entries = as_obj_list(info.value) or []
        data = as_str_dict(entries[0]) if entries else None
        tap = parse_tap(data) if data is not None else None
        if tap is None:
            return Err(BottleError(kind="invalid_output", message=f"{name}: no tap metadata"))

        self._taps[name] = tap
        return Ok(tap)

    def deps_union(self, names: list[str]) -> Result[list[str], BottleError]:
        """Dependencies shared by all formulae, topologically ordered (`deps -n --union`)."""
        result = self._run(["deps", "-n", "--union", *names], what="list dependencies")
        if isinstance(result, Err):
            return result
        return Ok(result.value.split())

    def audit_online(self, path: Path) -> Result[None, BottleError]:
        result = run_silent([self.brew, "audit", "--online", str(path)], cwd=self.cwd)
        if isinstance(result, Err):
            return _command_failed(result.error, f"brew audit failed: {path.name}")
        return Ok(None)

    def bottle_merge_write(self, json_files: list[Path], *, cwd: Path) -> Result[None, BottleError]:
        """Merge bottle JSON into the formula definitions (`bottle --merge --write`)."""
        cmd = [self.brew, "bottle", "--merge", "--write", *[p.name for p in json_files]]
        result = run_silent(cmd, cwd=cwd)
        if isinstance(result, Err):
            return _command_failed(result.error, "brew bottle --merge --write failed")
        return Ok(None)

    def _run(self, args: list[str], *, what: str) -> Result[str, BottleError]:
        result = run([self.brew, *args], cwd=self.cwd, timeout=_BREW_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return _command_failed(result.error, f"brew: failed to {what}")
        return Ok(result.value)

    def _json(self, args: list[str], *, what: str) -> Result[object, BottleError]:
        result = self._run(args, what=f"read {what}")
        if isinstance(result, Err):
            return result
        try:
            obj: object = json.loads(result.value)
        except json.JSONDecodeError as e:
            return Err(
                BottleError(
                    kind="invalid_output",
                    message=f"brew returned invalid JSON for {what}: {e}",
                )
            )
        return Ok(obj)
