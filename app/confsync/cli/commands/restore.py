"""Restore command implementation.

Rolls the container back to a recorded pre-sync snapshot using the
backend that created it.
"""

from typing import Annotated

import typer

from confsync.cli.types import ExitCode, load_engine_config
from confsync.core.lock import SyncAlreadyRunningError
from confsync.core.orchestrator import SyncEngine
from confsync.models.snapshot import SnapshotBackendType
from confsync.snapshots.base import SnapshotError, SnapshotNotFoundError
from confsync.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Roll back to a pre-sync snapshot.",
    invoke_without_command=True,
    # Options may follow the snapshot argument
    context_settings={"allow_interspersed_args": True},
)


@app.callback(invoke_without_command=True)
def restore(
    ctx: typer.Context,
    ref: Annotated[
        str,
        typer.Argument(help="Snapshot name or backend reference (see 'confsync snapshots')."),
    ],
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Skip confirmation prompt.",
        ),
    ] = False,
) -> None:
    """Restore a snapshot.

    Exit codes: 0 restored, 1 restore failed, 2 another run in progress,
    4 snapshot not found.

    Examples:
        confsync restore confsync-20260101-120000
        confsync restore confsync-20260101-120000 -y
    """
    if ctx.invoked_subcommand is not None:
        return

    config = load_engine_config(ctx)
    engine = SyncEngine(config)

    try:
        snapshot = engine.snapshots.find(ref)
    except SnapshotNotFoundError as e:
        print_error(str(e))
        print_info("Run 'confsync snapshots' to list recorded snapshots.")
        raise typer.Exit(code=ExitCode.NOT_FOUND) from e

    console.print(f"\n[bold]Restore: {snapshot.name}[/bold]")
    console.print(f"  Backend: {snapshot.backend.value}")
    console.print(f"  Created: {snapshot.created}")
    console.print(f"  Reference: {snapshot.reference}")
    if snapshot.backend == SnapshotBackendType.FILE:
        print_info(f"Run 'confsync snapshots show {snapshot.name}' to see what would change.")

    if not yes:
        confirm = typer.confirm("Roll back to this snapshot?")
        if not confirm:
            print_info("Cancelled.")
            return

    try:
        engine.restore(snapshot.name)
    except SyncAlreadyRunningError as e:
        print_error(str(e))
        raise typer.Exit(code=ExitCode.BUSY) from e
    except SnapshotNotFoundError as e:
        print_error(str(e))
        raise typer.Exit(code=ExitCode.NOT_FOUND) from e
    except SnapshotError as e:
        print_error(str(e))
        raise typer.Exit(code=ExitCode.FAILED) from e

    print_success(f"Restored snapshot {snapshot.name}.")
