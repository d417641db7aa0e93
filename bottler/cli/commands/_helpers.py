"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import typer

from bottler import __version__
from bottler.core.result import Err, Result
from bottler.output.errors import bottle_error_exit_code, print_bottle_error
from bottler.services.errors import BottleError

if TYPE_CHECKING:
    from bottler.cli.context import CLIContext


def value_or_exit[T](result: Result[T, BottleError], ctx: CLIContext) -> T:
    """Return the Ok value, or print the error and exit with its code.

    Replaces the common pattern:
        match result:
            case Err(e):
                ctx.console.error(e.message)
                raise typer.Exit(code=...)
            case Ok(value):
                ...
    """
    if isinstance(result, Err):
        print_bottle_error(result.error, ctx.console)
        raise typer.Exit(code=bottle_error_exit_code(result.error))
    return result.value


def exit_with_code(code: int) -> NoReturn:
    raise typer.Exit(code=code)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


def version_option() -> bool:
    return typer.Option(
        False,
        "--version",
        callback=_show_version,
        is_eager=True,
        help="Show version and exit.",
    )
