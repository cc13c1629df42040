"""
CLI layer for distpack.

Provides a Typer application whose commands delegate to
:mod:`distpack.build`. This package handles only terminal transport:
argument parsing, coloured output, and table formatting.

Entry point::

    distpack --help
"""

from distpack.cli.app import app

__all__ = ["app"]
