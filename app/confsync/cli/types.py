"""Shared types and utilities for CLI commands.

This module provides the exit codes, the global options stored on the
Typer context and the engine/config helpers used by several command
modules.
"""

from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path

import typer

from confsync.core.config import (
    ConfigError,
    EngineConfig,
    load_config_or_default,
    require_config,
)
from confsync.core.log import configure_logging
from confsync.models.run import SyncOutcome
from confsync.utils.formatting import print_error


class ExitCode(IntEnum):
    """Process exit codes shared by all commands."""

    OK = 0
    FAILED = 1
    BUSY = 2
    NOT_FOUND = 4
    CONFLICT = 5


OUTCOME_EXIT_CODES: dict[SyncOutcome, ExitCode] = {
    SyncOutcome.SUCCESS: ExitCode.OK,
    SyncOutcome.FAILED: ExitCode.FAILED,
    SyncOutcome.CONFLICT: ExitCode.CONFLICT,
}


@dataclass(frozen=True, slots=True)
class GlobalOptions:
    """Options given before the command name."""

    config_path: Path | None = None
    verbose: bool = False
    quiet: bool = False


def get_options(ctx: typer.Context) -> GlobalOptions:
    """Read the global options stored by the main callback."""
    obj = ctx.obj if isinstance(ctx.obj, dict) else {}
    return GlobalOptions(
        config_path=obj.get("config_path"),
        verbose=obj.get("verbose", False),
        quiet=obj.get("quiet", False),
    )


def load_engine_config(ctx: typer.Context, *, required: bool = True) -> EngineConfig:
    """Load the engine config and attach the sync log.

    Args:
        ctx: Typer context carrying the global options.
        required: If False, fall back to defaults when no config file exists.

    Returns:
        Loaded EngineConfig.

    Raises:
        typer.Exit: If the config cannot be loaded.
    """
    options = get_options(ctx)
    if required:
        config = require_config(options.config_path)
    else:
        try:
            config = load_config_or_default(options.config_path)
        except ConfigError as e:
            print_error(f"Failed to load config: {e}")
            raise typer.Exit(code=ExitCode.FAILED) from e

    if required:
        configure_logging(
            config.paths.sync_log,
            verbose=options.verbose,
            quiet=options.quiet,
        )
    return config
