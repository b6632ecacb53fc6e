"""Sync command implementation.

Runs the full reconciliation pipeline once: repository update, pre-sync
snapshot, scripts, packages, files and conflict detection.
"""

import logging
from typing import Annotated

import typer

from confsync.cli.display import print_sync_result
from confsync.cli.types import OUTCOME_EXIT_CODES, ExitCode, load_engine_config
from confsync.core.lock import SyncAlreadyRunningError
from confsync.core.orchestrator import SyncEngine, SyncOptions
from confsync.models.run import SyncOutcome
from confsync.utils.formatting import print_error, print_success, print_warning

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Reconcile the container with the configuration repository.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def sync(
    ctx: typer.Context,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            "-n",
            help="Show what would change without running scripts or writing anything.",
        ),
    ] = False,
    no_pull: Annotated[
        bool,
        typer.Option(
            "--no-pull",
            help="Use the local clone as-is instead of fetching the tracked branch.",
        ),
    ] = False,
) -> None:
    """Run the sync pipeline once.

    Exit codes: 0 clean, 1 failed, 2 another run in progress,
    5 conflict awaiting 'confsync resolve' or 'confsync restore'.

    Examples:
        confsync sync              # Full sync
        confsync sync --dry-run    # Preview only
        confsync sync --no-pull    # Skip git fetch
    """
    if ctx.invoked_subcommand is not None:
        return

    config = load_engine_config(ctx)
    engine = SyncEngine(config)

    try:
        result = engine.run_sync(SyncOptions(dry_run=dry_run, pull=not no_pull))
    except SyncAlreadyRunningError as e:
        print_error(str(e))
        raise typer.Exit(code=ExitCode.BUSY) from e
    except (OSError, RuntimeError) as e:
        print_error(str(e))
        raise typer.Exit(code=ExitCode.FAILED) from e

    print_sync_result(result)

    if result.outcome == SyncOutcome.SUCCESS:
        print_success("Dry run complete." if dry_run else "Sync complete.")
    elif result.outcome == SyncOutcome.CONFLICT:
        print_warning(
            f"{len(result.conflicts)} conflict(s) detected; conflicting files were not written."
        )
    else:
        fatal = result.fatal_error
        print_error(f"Sync failed: {fatal.message if fatal else 'unknown error'}")

    code = OUTCOME_EXIT_CODES[result.outcome]
    if code != ExitCode.OK:
        raise typer.Exit(code=code)
