"""Status command implementation.

Reports the engine condition from persisted state only: never run,
clean, failed or conflict, plus open conflicts and the snapshot inventory.
"""

import json
from typing import Annotated

import typer

from confsync.cli.display import print_status, status_to_dict
from confsync.cli.types import ExitCode, load_engine_config
from confsync.core.orchestrator import SyncEngine
from confsync.core.state import StateError, SyncStatus
from confsync.utils.formatting import console, print_error

app = typer.Typer(
    help="Show last sync outcome, open conflicts and snapshots.",
    invoke_without_command=True,
)

_STATUS_EXIT_CODES: dict[SyncStatus, ExitCode] = {
    SyncStatus.NEVER_RUN: ExitCode.OK,
    SyncStatus.CLEAN: ExitCode.OK,
    SyncStatus.FAILED: ExitCode.FAILED,
    SyncStatus.CONFLICT: ExitCode.CONFLICT,
}


@app.callback(invoke_without_command=True)
def status(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show the engine status.

    The exit code mirrors the state: 0 never run or clean, 1 failed,
    5 open conflict.

    Examples:
        confsync status
        confsync status --json
    """
    if ctx.invoked_subcommand is not None:
        return

    config = load_engine_config(ctx, required=False)
    engine = SyncEngine(config)

    try:
        engine_status = engine.status()
    except StateError as e:
        print_error(str(e))
        raise typer.Exit(code=ExitCode.FAILED) from e

    if json_output:
        console.print_json(json.dumps(status_to_dict(engine_status)))
    else:
        print_status(engine_status)

    code = _STATUS_EXIT_CODES[engine_status.report.status]
    if code != ExitCode.OK:
        raise typer.Exit(code=code)
