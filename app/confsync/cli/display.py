"""Shared Rich display functions for sync results and engine state.

Provides reusable table builders and summary printers used by the sync,
status, snapshots and history commands.
"""

from datetime import datetime
from typing import Any

from rich.table import Table

from confsync.core.orchestrator import EngineStatus, SyncResult
from confsync.core.state import SyncStatus
from confsync.models.checksum import ConflictRecord
from confsync.models.run import ErrorCategory, SyncOutcome, SyncRun
from confsync.models.snapshot import ChangeKind, FileChange, Snapshot
from confsync.utils.formatting import console, create_table, short_digest

_STATUS_STYLES: dict[SyncStatus, str] = {
    SyncStatus.NEVER_RUN: "muted",
    SyncStatus.CLEAN: "success",
    SyncStatus.FAILED: "error",
    SyncStatus.CONFLICT: "warning",
}

_OUTCOME_STYLES: dict[SyncOutcome, str] = {
    SyncOutcome.SUCCESS: "success",
    SyncOutcome.FAILED: "error",
    SyncOutcome.CONFLICT: "warning",
}

_CHANGE_STYLES: dict[ChangeKind, str] = {
    ChangeKind.UNCHANGED: "muted",
    ChangeKind.MODIFIED: "changed",
    ChangeKind.DELETED: "removed",
    ChangeKind.CREATED: "added",
}

# What a restore does to the live target
_RESTORE_ACTIONS: dict[ChangeKind, str] = {
    ChangeKind.UNCHANGED: "-",
    ChangeKind.MODIFIED: "overwrite",
    ChangeKind.DELETED: "recreate",
    ChangeKind.CREATED: "remove",
}


def format_timestamp(iso_timestamp: str | None) -> str:
    """Format ISO timestamp for display (YYYY-MM-DD HH:MM), '-' if unset."""
    if not iso_timestamp:
        return "-"
    try:
        dt = datetime.fromisoformat(iso_timestamp.replace("Z", "+00:00"))
    except ValueError:
        return iso_timestamp
    return dt.strftime("%Y-%m-%d %H:%M")


def create_conflicts_table(conflicts: tuple[ConflictRecord, ...] | list[ConflictRecord]) -> Table:
    """Create a Rich table listing conflicting files with their three digests.

    Args:
        conflicts: Conflict records to display.

    Returns:
        Rich Table configured for conflict display.
    """
    table = create_table("Conflicts")
    table.add_column("Target", no_wrap=True)
    table.add_column("Expected", style="muted")
    table.add_column("Current", style="changed")
    table.add_column("Incoming", style="added")

    for conflict in conflicts:
        table.add_row(
            conflict.target,
            short_digest(conflict.expected),
            short_digest(conflict.current),
            short_digest(conflict.incoming),
        )
    return table


def create_snapshots_table(snapshots: tuple[Snapshot, ...] | list[Snapshot]) -> Table:
    """Create a Rich table of the snapshot inventory, newest first."""
    table = create_table("Snapshots")
    table.add_column("Name", no_wrap=True)
    table.add_column("Backend", width=7)
    table.add_column("Created", style="info")
    table.add_column("Reference", style="muted")

    for snapshot in sorted(snapshots, key=lambda s: s.created, reverse=True):
        table.add_row(
            snapshot.name,
            snapshot.backend.value,
            format_timestamp(snapshot.created),
            snapshot.reference,
        )
    return table


def create_changes_table(snapshot: Snapshot, changes: list[FileChange]) -> Table:
    """Create a Rich table of preserved targets and what a restore would do."""
    table = create_table(f"Changes since {snapshot.name}")
    table.add_column("Target", no_wrap=True)
    table.add_column("Change", width=9)
    table.add_column("On restore", style="muted")

    for change in changes:
        style = _CHANGE_STYLES[change.kind]
        table.add_row(
            change.target,
            f"[{style}]{change.kind.value}[/{style}]",
            _RESTORE_ACTIONS[change.kind],
        )
    return table


def print_changes(snapshot: Snapshot, changes: list[FileChange]) -> None:
    """Print the change table followed by the diff of each modified file."""
    console.print(create_changes_table(snapshot, changes))
    for change in changes:
        if not change.diff:
            continue
        console.print()
        for line in change.diff:
            console.print(line, style=_diff_style(line), markup=False, highlight=False)


def create_runs_table(runs: list[SyncRun]) -> Table:
    """Create a Rich table of recorded sync runs."""
    table = create_table("Sync History")
    table.add_column("Run", justify="right", style="muted")
    table.add_column("Started", style="info")
    table.add_column("Outcome", width=8)
    table.add_column("Files", justify="right")
    table.add_column("Packages", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Snapshot", style="muted")

    for run in runs:
        style = _OUTCOME_STYLES[run.outcome]
        outcome = f"[{style}]{run.outcome.value}[/{style}]"
        if run.first_run:
            outcome += " [muted](first)[/muted]"
        table.add_row(
            str(run.run_id),
            format_timestamp(run.started),
            outcome,
            str(run.stats.get("files_deployed", 0)),
            str(run.stats.get("packages_installed", 0)),
            str(len(run.errors)),
            run.snapshot or "-",
        )
    return table


def print_sync_result(result: SyncResult) -> None:
    """Print the summary of a sync run.

    Shows per-phase counters, soft errors, and the conflict table when the
    run was blocked.
    """
    prefix = "Dry run: " if result.dry_run else ""
    parts: list[str] = []

    if result.scripts is not None:
        if result.dry_run:
            parts.append(f"{len(result.scripts.skipped)} script(s) to run")
        else:
            parts.append(f"{len(result.scripts.executed)} script(s) run")
    if result.packages is not None:
        if result.dry_run:
            parts.append(f"[added]{result.packages.planned_count} package(s) to install[/added]")
        else:
            parts.append(f"[added]{result.packages.installed_count} package(s) installed[/added]")
        if result.packages.failed_count:
            parts.append(f"[removed]{result.packages.failed_count} package(s) failed[/removed]")
    if result.files is not None:
        if result.dry_run:
            parts.append(f"[changed]{len(result.files.planned)} file(s) to write[/changed]")
        else:
            parts.append(f"[changed]{len(result.files.deployed)} file(s) deployed[/changed]")
        if result.files.backups:
            parts.append(f"{len(result.files.backups)} backup(s)")

    if parts:
        console.print(f"{prefix}{', '.join(parts)}")

    soft = [e for e in result.errors if e.category == ErrorCategory.SOFT]
    for error in soft:
        console.print(f"  [warning]![/warning] [muted]{error.phase}:[/muted] {error.message}")

    if result.conflicts:
        console.print()
        console.print(create_conflicts_table(result.conflicts))
        if result.snapshot is not None:
            console.print(f"[muted]Pre-sync snapshot kept: {result.snapshot.name}[/muted]")


def print_status(status: EngineStatus) -> None:
    """Print the engine condition, open conflicts and snapshot inventory."""
    report = status.report
    style = _STATUS_STYLES[report.status]
    console.print(f"Status: [{style}]{report.status.value}[/{style}]")
    console.print(f"Last successful sync: {format_timestamp(report.last_sync)}")

    if report.last_run is not None:
        run = report.last_run
        console.print(
            f"Last run: #{run.run_id} {run.outcome.value} at {format_timestamp(run.finished)}"
        )
        fatal = [e for e in run.errors if e.category == ErrorCategory.FATAL]
        for error in fatal:
            console.print(f"  [error]{error.phase}:[/error] {error.message}")

    if report.conflict is not None:
        console.print()
        console.print(create_conflicts_table(report.conflict.conflicts))
        if report.conflict.snapshot:
            console.print(f"[muted]Snapshot for restore: {report.conflict.snapshot}[/muted]")
        console.print("[muted]Run 'confsync resolve' to accept the on-disk state.[/muted]")

    console.print()
    if status.snapshots:
        console.print(create_snapshots_table(status.snapshots))
    else:
        console.print("[muted]No snapshots recorded.[/muted]")


def status_to_dict(status: EngineStatus) -> dict[str, Any]:
    """Convert the engine status to a JSON-serializable dictionary."""
    report = status.report
    return {
        "status": report.status.value,
        "last_sync": report.last_sync,
        "last_run": report.last_run.to_dict() if report.last_run else None,
        "conflict": report.conflict.to_dict() if report.conflict else None,
        "snapshots": [s.to_dict() for s in status.snapshots],
    }


def _diff_style(line: str) -> str:
    if line.startswith(("---", "+++")):
        return "bold_header"
    if line.startswith("@@"):
        return "info"
    if line.startswith("+"):
        return "added"
    if line.startswith("-"):
        return "removed"
    return "text"
