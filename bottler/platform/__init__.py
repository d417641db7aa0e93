"""Platform abstraction layer."""

from .paths import config_file_path, home, user_config_dir
from .process import ProcessError, run, run_silent, which

__all__ = [
    # paths
    "config_file_path",
    "home",
    "user_config_dir",
    # process
    "ProcessError",
    "run",
    "run_silent",
    "which",
]
