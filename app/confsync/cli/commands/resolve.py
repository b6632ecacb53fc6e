"""Resolve command implementation.

Clears an open conflict without rolling back: the on-disk content of
every managed file becomes the new checksum baseline.
"""

import typer

from confsync.cli.display import create_conflicts_table
from confsync.cli.types import ExitCode, load_engine_config
from confsync.core.errors import ConfsyncError
from confsync.core.lock import SyncAlreadyRunningError
from confsync.core.orchestrator import SyncEngine
from confsync.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Accept the on-disk state and clear an open conflict.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def resolve(ctx: typer.Context) -> None:
    """Resolve an open conflict.

    The conflict marker is archived and the current content of each
    managed target is recorded as the expected baseline for the next sync.
    """
    if ctx.invoked_subcommand is not None:
        return

    config = load_engine_config(ctx)
    engine = SyncEngine(config)

    try:
        marker = engine.resolve()
    except SyncAlreadyRunningError as e:
        print_error(str(e))
        raise typer.Exit(code=ExitCode.BUSY) from e
    except (ConfsyncError, OSError) as e:
        print_error(f"Resolve failed: {e}")
        raise typer.Exit(code=ExitCode.FAILED) from e

    if marker is None:
        print_info("No open conflict. Checksum baseline refreshed from disk.")
        return

    console.print(create_conflicts_table(marker.conflicts))
    print_success(f"Resolved {len(marker.conflicts)} conflict(s) from run {marker.run_id}.")
