"""Main CLI application entry point.

Defines the Typer application and global options.
"""

from pathlib import Path
from typing import Annotated

import typer

from confsync import __version__
from confsync.cli.commands import history, init, resolve, restore, snapshots, status, sync
from confsync.core.log import configure_logging

# Create main Typer app
app = typer.Typer(
    name="confsync",
    help="Declarative configuration sync for long-lived containers.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"confsync version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Config file (default: $CONFSYNC_CONFIG or /etc/confsync/config.toml).",
            dir_okay=False,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-essential output.",
        ),
    ] = False,
) -> None:
    """confsync - Declarative configuration sync for long-lived containers.

    Reconciles packages, provisioning scripts and managed files from a
    configuration repository, with conflict detection and snapshots.
    """
    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    configure_logging(verbose=verbose, quiet=quiet)


# Register commands
app.add_typer(sync.app, name="sync")
app.add_typer(status.app, name="status")
app.add_typer(restore.app, name="restore")
app.add_typer(resolve.app, name="resolve")
app.add_typer(snapshots.app, name="snapshots")
app.add_typer(history.app, name="history")
app.add_typer(init.app, name="init")


if __name__ == "__main__":
    app()
