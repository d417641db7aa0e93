"""Formula metadata and the brew executable."""

from bottler.brew.client import BrewClient, brew_executable
from bottler.brew.formula import BottleSpec, Formula, Tap, parse_formula, parse_tap, tap_slug

__all__ = [
    "BottleSpec",
    "BrewClient",
    "Formula",
    "Tap",
    "brew_executable",
    "parse_formula",
    "parse_tap",
    "tap_slug",
]
