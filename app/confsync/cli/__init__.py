"""CLI package for confsync.

This package contains the Typer application and all subcommands.
"""

from confsync.cli.main import app

__all__ = ["app"]
