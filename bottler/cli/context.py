from __future__ import annotations

from dataclasses import dataclass

import typer

from bottler.core.config import Config, EnvConfig, load_config_or_default
from bottler.core.errors import ErrorCode
from bottler.core.result import Err
from bottler.output.console import ConsoleProtocol, RichConsole
from bottler.platform.paths import config_file_path


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    console: ConsoleProtocol


def build_context() -> CLIContext:
    env = EnvConfig.from_environ()
    config_result = load_config_or_default(config_file_path(), env=env)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    return CLIContext(config=config_result.value, console=RichConsole())
