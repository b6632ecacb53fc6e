"""Snapshots command implementation.

Lists the pre-sync snapshots recorded by the engine and shows what a
restore of one of them would change.
"""

import json
from typing import Annotated

import typer

from confsync.cli.display import create_snapshots_table, print_changes
from confsync.cli.types import ExitCode, load_engine_config
from confsync.core.orchestrator import SyncEngine
from confsync.snapshots.base import SnapshotError, SnapshotNotFoundError
from confsync.utils.formatting import console, print_error, print_info

app = typer.Typer(
    help="List recorded snapshots.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def snapshots(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show the snapshot inventory."""
    if ctx.invoked_subcommand is not None:
        return

    config = load_engine_config(ctx, required=False)
    inventory = SyncEngine(config).snapshots.list_snapshots()

    if json_output:
        console.print_json(json.dumps([s.to_dict() for s in inventory]))
        return

    if not inventory:
        print_info("No snapshots recorded.")
        return

    console.print(create_snapshots_table(inventory))


@app.command("show")
def show(
    ctx: typer.Context,
    ref: Annotated[
        str,
        typer.Argument(help="Snapshot name or backend reference."),
    ],
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show how the files preserved in a snapshot differ from disk now.

    Each preserved target is reported as unchanged, modified, deleted or
    created since the snapshot, with a short diff for modified text files.
    Only file-backend snapshots can be inspected this way.

    Exit codes: 0 shown, 1 not supported or unreadable, 4 snapshot not found.

    Examples:
        confsync snapshots show confsync-20260101-120000
        confsync snapshots show confsync-20260101-120000 --json
    """
    config = load_engine_config(ctx, required=False)
    manager = SyncEngine(config).snapshots

    try:
        snapshot = manager.find(ref)
    except SnapshotNotFoundError as e:
        print_error(str(e))
        print_info("Run 'confsync snapshots' to list recorded snapshots.")
        raise typer.Exit(code=ExitCode.NOT_FOUND) from e

    try:
        changes = manager.changes(snapshot)
    except SnapshotError as e:
        print_error(str(e))
        raise typer.Exit(code=ExitCode.FAILED) from e

    if json_output:
        data = {"snapshot": snapshot.to_dict(), "changes": [c.to_dict() for c in changes]}
        console.print_json(json.dumps(data))
        return

    if not changes:
        print_info(f"No files were preserved in {snapshot.name}.")
        return

    print_changes(snapshot, changes)
