"""Checksum state and three-way conflict detection.

Three digests are compared for every managed file whose policy is
``replace`` or ``backup``:

- expected: target digest recorded at the end of the last successful sync
- current: target digest on disk now
- incoming: digest of the file in the repository

A conflict is a file edited locally (current differs from expected) whose
repository version also changed since the last sync. Missing targets,
files new to the repository and the first run never conflict.
"""

import json
import logging
from pathlib import Path
from typing import Any

from confsync.core.errors import ConfsyncError
from confsync.core.paths import StatePaths
from confsync.models.checksum import ChecksumRecord, ConflictRecord
from confsync.models.managed_file import MISSING, ManagedFile
from confsync.utils.fileio import atomic_write_json, file_digest

logger = logging.getLogger(__name__)

STATE_VERSION = 1

ChecksumState = dict[str, ChecksumRecord]


class ChecksumStateError(ConfsyncError):
    """Raised when persisted checksum state cannot be read."""


def capture_state(files: list[ManagedFile] | tuple[ManagedFile, ...]) -> ChecksumState:
    """Hash every managed target as it is on disk right now.

    Args:
        files: Managed files whose targets to hash.

    Returns:
        Records keyed by target path; absent targets get the MISSING digest.
    """
    state: ChecksumState = {}
    for managed in files:
        target = str(managed.target)
        try:
            digest = file_digest(managed.target)
        except OSError as e:
            logger.warning("Cannot hash %s: %s", target, e)
            digest = MISSING
        state[target] = ChecksumRecord(target=target, digest=digest, source_digest=managed.digest)
    return state


class ChecksumStore:
    """Reads and writes the persisted checksum snapshots.

    checksums.prev.json holds the baseline of the last successful sync;
    checksums.current.json holds the on-disk state captured when a
    conflict was detected and is kept for diagnosis only.
    """

    def __init__(self, paths: StatePaths) -> None:
        self._paths = paths

    def has_baseline(self) -> bool:
        """Check if a previous successful sync recorded checksums."""
        return self._paths.checksums_prev.exists()

    def load_previous(self) -> ChecksumState:
        """Load the previous-state snapshot.

        Returns:
            Records keyed by target path; empty on first run.

        Raises:
            ChecksumStateError: If the file exists but cannot be parsed.
        """
        return self._load(self._paths.checksums_prev)

    def save_previous(self, state: ChecksumState) -> Path:
        """Promote a snapshot to be the next run's baseline."""
        path = self._save(self._paths.checksums_prev, state)
        logger.info("Recorded checksums for %d managed file(s)", len(state))
        return path

    def commit(self, files: list[ManagedFile] | tuple[ManagedFile, ...]) -> ChecksumState:
        """Hash the deployed targets and promote them to the next baseline.

        Returns:
            The committed state.
        """
        state = capture_state(files)
        self.save_previous(state)
        return state

    def save_current(self, state: ChecksumState) -> Path:
        """Persist the current-state snapshot as a diagnostic artifact."""
        return self._save(self._paths.checksums_current, state)

    def clear_current(self) -> None:
        """Remove the diagnostic current-state snapshot."""
        self._paths.checksums_current.unlink(missing_ok=True)

    def _load(self, path: Path) -> ChecksumState:
        if not path.exists():
            return {}
        try:
            data: Any = json.loads(path.read_text(encoding="utf-8"))
            files: dict[str, Any] = data["files"]
            return {
                target: ChecksumRecord.from_dict(target, record)
                for target, record in files.items()
            }
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            msg = f"Cannot read checksum state {path}: {e}"
            raise ChecksumStateError(msg) from e

    def _save(self, path: Path, state: ChecksumState) -> Path:
        data = {
            "version": STATE_VERSION,
            "files": {target: record.to_dict() for target, record in sorted(state.items())},
        }
        try:
            return atomic_write_json(path, data)
        except OSError as e:
            msg = f"Cannot write checksum state {path}: {e}"
            raise ChecksumStateError(msg) from e


class ConflictDetector:
    """Three-way comparison between baseline, disk and repository."""

    def check(
        self,
        files: list[ManagedFile] | tuple[ManagedFile, ...],
        previous: ChecksumState,
        current: ChecksumState,
    ) -> list[ConflictRecord]:
        """Find files changed both locally and upstream.

        Args:
            files: Managed files from the repository (incoming side).
            previous: Baseline from the last successful sync.
            current: On-disk state captured at the start of the run.

        Returns:
            One ConflictRecord per divergent file, in file order. Always
            empty when there is no baseline.
        """
        if not previous:
            logger.info("No checksum baseline; first sync skips conflict detection")
            return []

        conflicts: list[ConflictRecord] = []
        checked = 0

        for managed in files:
            if not managed.policy.tracks_conflicts:
                continue
            target = str(managed.target)
            expected = previous.get(target)
            if expected is None:
                logger.debug("New managed file %s; no conflict possible", target)
                continue

            checked += 1
            record = current.get(target)
            current_digest = record.digest if record is not None else MISSING
            incoming = managed.digest
            upstream_base = expected.source_digest or expected.digest

            locally_modified = current_digest not in (expected.digest, MISSING)
            upstream_modified = incoming != upstream_base
            if not (locally_modified and upstream_modified) or current_digest == incoming:
                continue

            conflict = ConflictRecord(
                target=target,
                expected=expected.digest,
                current=current_digest,
                incoming=incoming,
            )
            logger.warning(
                "Conflict: %s (expected %s, current %s, incoming %s)",
                target,
                conflict.expected,
                conflict.current,
                conflict.incoming,
            )
            conflicts.append(conflict)

        logger.info("Checked %d tracked file(s), %d conflict(s)", checked, len(conflicts))
        return conflicts

