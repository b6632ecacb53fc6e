"""CLI commands for confsync.

This package contains all subcommand implementations.
"""

from confsync.cli.commands import history, init, resolve, restore, snapshots, status, sync

__all__ = ["history", "init", "resolve", "restore", "snapshots", "status", "sync"]
