"""Typed configuration loading and access.

Configuration is read once at process start and passed explicitly to the
services that need it. It has two sources:

- an optional TOML file with `[pr]` and `[docker]` tables (policy knobs
  that differ between organizations);
- the process environment (account names, credentials, brew location).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_int, get_str, get_table

__all__ = [
    "Config",
    "ConfigError",
    "DockerConfig",
    "EnvConfig",
    "PrConfig",
    "load_config",
    "load_config_or_default",
    "DEFAULT_TAG",
    "DEFAULT_LIMIT",
]

DEFAULT_TAG = "x86_64_linux"
DEFAULT_LIMIT = 10


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class PrConfig:
    """Policy for `build-bottle-pr`.

    `restricted_slug_pattern` / `restricted_exception_repo` describe taps that
    do not accept Linux bottle requests: a tap whose slug matches the pattern
    is skipped unless its repo name is the exception.
    """

    mainline_branch: str = "master"
    label: str = "bottle"
    default_tag: str = DEFAULT_TAG
    default_limit: int = DEFAULT_LIMIT
    message_template: str = "{formula}: Build a bottle for Linuxbrew"
    hub_min_version: str = "2.3.0"
    restricted_slug_pattern: str = "^Homebrew"
    restricted_exception_repo: str | None = "science"


@dataclass(frozen=True, slots=True)
class DockerConfig:
    """Container settings for `test-bot-docker`."""

    image: str = "linuxbrew/linuxbrew"
    container: str = "linuxbrew-test-bot"
    workdir: str = "linuxbrew-test-bot"
    home: str = "/home/linuxbrew"
    extra_tap: str = "linuxbrew/xorg"
    git_name: str = "LinuxbrewTestBot"
    git_email: str = "testbot@linuxbrew.sh"


@dataclass(frozen=True, slots=True)
class EnvConfig:
    """Values taken from the process environment."""

    github_user: str | None = None
    user: str | None = None
    bintray_user: str | None = None
    bintray_key: str | None = None
    brew_file: str | None = None
    prefix: str | None = None

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> EnvConfig:
        env = os.environ if environ is None else environ

        def value(key: str) -> str | None:
            v = env.get(key, "").strip()
            return v or None

        return cls(
            github_user=value("HOMEBREW_GITHUB_USER"),
            user=value("USER"),
            bintray_user=value("HOMEBREW_BINTRAY_USER"),
            bintray_key=value("HOMEBREW_BINTRAY_KEY"),
            brew_file=value("HOMEBREW_BREW_FILE"),
            prefix=value("HOMEBREW_PREFIX"),
        )

    @property
    def account(self) -> str | None:
        """Account used to assign pull requests."""
        return self.github_user or self.user


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    pr: PrConfig = field(default_factory=PrConfig)
    docker: DockerConfig = field(default_factory=DockerConfig)
    env: EnvConfig = field(default_factory=EnvConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object], env: EnvConfig | None = None) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        pr: StrDict = get_table(data, "pr") or {}
        docker: StrDict = get_table(data, "docker") or {}
        pr_defaults = PrConfig()
        docker_defaults = DockerConfig()

        exception_repo = pr_defaults.restricted_exception_repo
        if "restricted_exception_repo" in pr:
            # An empty string disables the exception.
            exception_repo = get_str(pr, "restricted_exception_repo")

        limit = get_int(pr, "default_limit")
        if limit is not None and limit < 0:
            raise ValueError("pr.default_limit must be >= 0")

        return cls(
            pr=PrConfig(
                mainline_branch=get_str(pr, "mainline_branch") or pr_defaults.mainline_branch,
                label=get_str(pr, "label") or pr_defaults.label,
                default_tag=get_str(pr, "default_tag") or pr_defaults.default_tag,
                default_limit=pr_defaults.default_limit if limit is None else limit,
                message_template=get_str(pr, "message_template") or pr_defaults.message_template,
                hub_min_version=get_str(pr, "hub_min_version") or pr_defaults.hub_min_version,
                restricted_slug_pattern=get_str(pr, "restricted_slug_pattern")
                or pr_defaults.restricted_slug_pattern,
                restricted_exception_repo=exception_repo,
            ),
            docker=DockerConfig(
                image=get_str(docker, "image") or docker_defaults.image,
                container=get_str(docker, "container") or docker_defaults.container,
                workdir=get_str(docker, "workdir") or docker_defaults.workdir,
                home=get_str(docker, "home") or docker_defaults.home,
                extra_tap=get_str(docker, "extra_tap") or docker_defaults.extra_tap,
                git_name=get_str(docker, "git_name") or docker_defaults.git_name,
                git_email=get_str(docker, "git_email") or docker_defaults.git_email,
            ),
            env=env or EnvConfig(),
        )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path, env: EnvConfig | None = None) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to config.toml
        env: Environment values to attach (defaults to an empty EnvConfig)

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value, env=env))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(
    path: Path | None, env: EnvConfig | None = None
) -> Result[Config, ConfigError]:
    """Load config from file when it exists, else return the defaults.

    A missing file is not an error; a present but broken file is.
    """
    if path is None or not path.exists():
        return Ok(Config(env=env or EnvConfig()))
    return load_config(path, env=env)
