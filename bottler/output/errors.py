"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from bottler.core.errors import ErrorCode
from bottler.output.console import Style
from bottler.services.errors import BottleError

if TYPE_CHECKING:
    from bottler.output.console import ConsoleProtocol

__all__ = ["print_bottle_error", "bottle_error_exit_code"]


def print_bottle_error(error: BottleError, console: ConsoleProtocol) -> None:
    """Print an error with its diagnostic lines and hint."""
    console.error(error.message)
    for line in error.details:
        console.print(line, Style.ERROR)
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def bottle_error_exit_code(error: BottleError) -> int:
    match error.kind:
        case "no_formulae" | "invalid_remote":
            return int(ErrorCode.USER_ERROR)
        case "no_remote" | "missing_credentials" | "tool_missing" | "config_invalid":
            return int(ErrorCode.ENV_ERROR)
        case _:
            return int(ErrorCode.BUILD_ERROR)
