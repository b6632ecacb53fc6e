"""History command for viewing past sync runs.

This module provides the `confsync history` command for viewing the
recorded outcome of each sync invocation.
"""

import json
from typing import Annotated

import typer

from confsync.cli.display import create_runs_table
from confsync.cli.types import load_engine_config
from confsync.core.state import EngineState
from confsync.utils.formatting import console, print_info

app = typer.Typer(
    name="history",
    help="View history of sync runs.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def history(
    ctx: typer.Context,
    limit: Annotated[
        int,
        typer.Option(
            "--limit",
            "-n",
            min=1,
            help="Maximum number of runs to show.",
        ),
    ] = 20,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show history of sync runs, newest first.

    Examples:
        confsync history            # Show last 20 runs
        confsync history -n 50      # Show last 50 runs
        confsync history --json     # JSON output for scripting
    """
    if ctx.invoked_subcommand is not None:
        return

    config = load_engine_config(ctx, required=False)
    runs = EngineState(config.paths).get_runs(limit=limit)

    if json_output:
        console.print_json(json.dumps([run.to_dict() for run in runs]))
        return

    if not runs:
        print_info("No sync runs recorded.")
        return

    console.print(create_runs_table(runs))
