"""Persisted engine state.

This module provides the EngineState class for the run history (JSONL),
the last-sync timestamp and the open conflict marker (TOML). Together
they let ``status`` report the engine's condition without re-running
the pipeline.
"""

import json
import logging
import tomllib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import tomli_w

from confsync.core.errors import ConfsyncError
from confsync.core.paths import StatePaths, ensure_dir
from confsync.models.checksum import ConflictMarker
from confsync.models.run import SyncOutcome, SyncRun
from confsync.utils.fileio import atomic_write_bytes

logger = logging.getLogger(__name__)


class StateError(ConfsyncError):
    """Raised when engine state cannot be read or written."""


class SyncStatus(str, Enum):
    """Condition of the engine as seen from persisted state."""

    NEVER_RUN = "never-run"
    CLEAN = "clean"
    FAILED = "failed"
    CONFLICT = "conflict"


@dataclass(frozen=True, slots=True)
class StatusReport:
    """Engine condition derived from persisted state.

    Attributes:
        status: Overall condition.
        last_run: Most recent recorded run, if any.
        last_sync: Time of the last successful sync, if any.
        conflict: Open conflict marker, if any.
    """

    status: SyncStatus
    last_run: SyncRun | None
    last_sync: str | None
    conflict: ConflictMarker | None


class EngineState:
    """Reads and writes run history, last-sync time and the conflict marker.

    Storage location: /var/lib/confsync/ (see StatePaths).

    The run history uses JSON Lines: each line is one SyncRun, appended
    once per run and never rewritten.
    """

    def __init__(self, paths: StatePaths) -> None:
        self._paths = paths

    @property
    def paths(self) -> StatePaths:
        """State file locations."""
        return self._paths

    # Run history

    def record_run(self, run: SyncRun) -> None:
        """Append a run to the history file.

        Raises:
            RuntimeError: If the state directory cannot be created.
            OSError: If the file cannot be written.
        """
        ensure_dir(self._paths.state_dir, "state")
        with self._paths.runs.open(mode="a", encoding="utf-8") as f:
            f.write(run.to_json_line() + "\n")
            f.flush()

    def get_runs(self, limit: int | None = None) -> list[SyncRun]:
        """Read run history, newest first.

        Corrupt lines are skipped with a warning.

        Args:
            limit: Maximum number of runs to return. If None, returns all.

        Returns:
            List of SyncRun, newest first. Empty if no history exists.
        """
        if not self._paths.runs.exists():
            return []

        runs: list[SyncRun] = []
        with self._paths.runs.open(encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    runs.append(SyncRun.from_json_line(line))
                except (json.JSONDecodeError, KeyError, ValueError) as e:
                    logger.warning("Skipping corrupt run history line %d: %s", line_num, e)

        runs.reverse()
        if limit is not None:
            return runs[:limit]
        return runs

    def last_run(self) -> SyncRun | None:
        """Return the most recent run, if any."""
        runs = self.get_runs(limit=1)
        return runs[0] if runs else None

    def next_run_id(self) -> int:
        """Return the identifier for a new run (one above the highest recorded)."""
        runs = self.get_runs()
        return max((run.run_id for run in runs), default=0) + 1

    # Last successful sync

    def write_last_sync(self, timestamp: str) -> None:
        """Record the time of a successful sync."""
        atomic_write_bytes(self._paths.last_sync, f"{timestamp}\n".encode())

    def read_last_sync(self) -> str | None:
        """Return the time of the last successful sync, if any."""
        try:
            return self._paths.last_sync.read_text(encoding="utf-8").strip() or None
        except FileNotFoundError:
            return None

    # Conflict marker

    def has_conflict(self) -> bool:
        """Check if an unresolved conflict exists."""
        return self._paths.conflict_marker.exists()

    def load_conflict(self) -> ConflictMarker | None:
        """Load the open conflict marker.

        Returns:
            ConflictMarker, or None if no conflict is open.

        Raises:
            StateError: If the marker exists but cannot be parsed.
        """
        path = self._paths.conflict_marker
        if not path.exists():
            return None
        try:
            with open(path, "rb") as f:
                return ConflictMarker.from_dict(tomllib.load(f))
        except (OSError, tomllib.TOMLDecodeError, KeyError, TypeError, ValueError) as e:
            raise StateError(f"Cannot read conflict marker {path}: {e}") from e

    def write_conflict(self, marker: ConflictMarker) -> Path:
        """Write the conflict marker, replacing any previous one."""
        data = tomli_w.dumps(marker.to_dict()).encode("utf-8")
        try:
            return atomic_write_bytes(self._paths.conflict_marker, data)
        except OSError as e:
            raise StateError(f"Cannot write conflict marker: {e}") from e

    def archive_conflict(self, stamp: str) -> Path | None:
        """Move the conflict marker to a timestamped archive file.

        Args:
            stamp: Suffix for the archive name (e.g., '20260101-120000').

        Returns:
            Archive path, or None if no conflict was open.
        """
        marker = self._paths.conflict_marker
        if not marker.exists():
            return None
        archive = self._paths.resolved_archive(stamp)
        marker.replace(archive)
        logger.info("Archived conflict marker to %s", archive)
        return archive

    # Status

    def status(self) -> StatusReport:
        """Derive the engine condition from persisted state.

        Raises:
            StateError: If the conflict marker is unreadable.
        """
        conflict = self.load_conflict()
        last_run = self.last_run()
        last_sync = self.read_last_sync()

        if conflict is not None:
            status = SyncStatus.CONFLICT
        elif last_run is None:
            status = SyncStatus.CLEAN if last_sync else SyncStatus.NEVER_RUN
        elif last_run.outcome == SyncOutcome.FAILED:
            status = SyncStatus.FAILED
        else:
            status = SyncStatus.CLEAN

        return StatusReport(
            status=status,
            last_run=last_run,
            last_sync=last_sync,
            conflict=conflict,
        )
