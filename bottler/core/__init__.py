"""Core types: results, exit codes, configuration."""

from .config import Config, ConfigError, DockerConfig, EnvConfig, PrConfig, load_config
from .errors import ErrorCode
from .result import Err, Ok, Result
from .version import ToolVersion, parse_version

__all__ = [
    # config
    "Config",
    "ConfigError",
    "DockerConfig",
    "EnvConfig",
    "PrConfig",
    "load_config",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
    # version
    "ToolVersion",
    "parse_version",
]
