"""Locations of user-level files."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

__all__ = [
    "config_file_path",
    "home",
    "user_config_dir",
]

APP_NAME = "bottler"
CONFIG_ENV_VAR = "BOTTLER_CONFIG"


@lru_cache(maxsize=1)
def home() -> Path:
    """Get user's home directory (HOME first, for CI/container scenarios)."""
    home_env = os.environ.get("HOME")
    if home_env:
        return Path(home_env)
    return Path.home()


@lru_cache(maxsize=1)
def user_config_dir() -> Path:
    """Get the user-level configuration directory.

    Location: $XDG_CONFIG_HOME/bottler or ~/.config/bottler
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME
    return home() / ".config" / APP_NAME


def config_file_path() -> Path:
    """Path of the config file; $BOTTLER_CONFIG wins over the default location."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return user_config_dir() / "config.toml"


def clear_caches() -> None:
    """Clear all cached paths.

    Useful for testing when environment variables change.
    """
    home.cache_clear()
    user_config_dir.cache_clear()
