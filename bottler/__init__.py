"""Maintainer tools for building Linuxbrew bottles."""

__version__ = "0.1.0"
