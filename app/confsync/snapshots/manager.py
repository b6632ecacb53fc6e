"""Snapshot/rollback manager.

Selects a backend, takes the pre-sync snapshot, keeps an inventory of
snapshots in snapshots.json, prunes them by age and restores them by
name. The backend is recorded on each snapshot, so restore and prune
never probe again.
"""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from confsync.core.checksums import ChecksumStore, capture_state
from confsync.core.config import SnapshotConfig
from confsync.core.paths import StatePaths
from confsync.core.state import EngineState
from confsync.models.checksum import ConflictMarker
from confsync.models.managed_file import ManagedFile
from confsync.models.snapshot import (
    FileChange,
    Snapshot,
    SnapshotBackendType,
    generate_snapshot_name,
)
from confsync.snapshots.base import SnapshotBackend, SnapshotError, SnapshotNotFoundError
from confsync.snapshots.btrfs import BtrfsBackend
from confsync.snapshots.file import FileBackend
from confsync.snapshots.lvm import LvmBackend
from confsync.snapshots.zfs import ZfsBackend
from confsync.utils.fileio import atomic_write_json

logger = logging.getLogger(__name__)


def default_backends(config: SnapshotConfig, paths: StatePaths) -> list[SnapshotBackend]:
    """Return the built-in backends in probe order (zfs, lvm, btrfs, file)."""
    return [
        ZfsBackend(),
        LvmBackend(size=config.lvm_size),
        BtrfsBackend(),
        FileBackend(paths.backups_dir, paths.checksums_prev),
    ]


class SnapshotManager:
    """Creates, lists, prunes and restores pre-sync snapshots.

    Attributes:
        config: Snapshot settings.
        state: Engine state, consulted for the open conflict marker.
        backends: Candidate backends in probe order.
    """

    def __init__(
        self,
        config: SnapshotConfig,
        state: EngineState,
        backends: list[SnapshotBackend] | None = None,
    ) -> None:
        self._config = config
        self._state = state
        self._paths = state.paths
        self._backends = backends if backends is not None else default_backends(
            config, self._paths
        )
        self._selected: SnapshotBackend | None = None
        self._active: Snapshot | None = None

    @property
    def active(self) -> Snapshot | None:
        """Snapshot created by this manager during the current run."""
        return self._active

    def _backend_for(self, backend_type: SnapshotBackendType) -> SnapshotBackend:
        for backend in self._backends:
            if backend.backend_type == backend_type:
                return backend
        msg = f"No {backend_type.value} backend configured"
        raise SnapshotError(msg)

    def select_backend(self) -> SnapshotBackend | None:
        """Choose the backend for new snapshots.

        Returns:
            The configured backend, the first backend whose probe succeeds
            in 'auto' mode, or None when snapshots are disabled.

        Raises:
            SnapshotError: If a forced backend is not usable here.
        """
        if not self._config.is_enabled:
            return None
        if self._selected is not None:
            return self._selected

        if self._config.backend != "auto":
            backend = self._backend_for(SnapshotBackendType(self._config.backend))
            if not backend.probe():
                msg = f"Snapshot backend '{self._config.backend}' is not usable on this container"
                raise SnapshotError(msg)
            self._selected = backend
        else:
            for backend in self._backends:
                if backend.probe():
                    self._selected = backend
                    break

        if self._selected is not None:
            logger.info("Snapshot backend: %s", self._selected.backend_type.value)
        return self._selected

    def create_snapshot(self, now: datetime | None = None) -> Snapshot | None:
        """Take the pre-sync snapshot.

        Args:
            now: Timestamp used for the name (defaults to the current time).

        Returns:
            The new Snapshot, or None when snapshots are disabled.

        Raises:
            SnapshotError: If the snapshot cannot be created.
        """
        backend = self.select_backend()
        if backend is None:
            logger.info("Snapshots disabled")
            return None

        inventory = self.list_snapshots()
        taken = {s.name for s in inventory}
        base = name = generate_snapshot_name(now)
        counter = 1
        while name in taken:
            name = f"{base}-{counter}"
            counter += 1

        snapshot = backend.create(name)
        inventory.append(snapshot)
        self._save_inventory(inventory)
        self._active = snapshot
        return snapshot

    def preserve(self, target: Path) -> None:
        """Pre-write hook: let the active snapshot save a target's content.

        Raises:
            SnapshotError: If the backend cannot save the target.
        """
        if self._active is None:
            return
        self._backend_for(self._active.backend).preserve(self._active, str(target))

    def list_snapshots(self) -> list[Snapshot]:
        """Return recorded snapshots, oldest first.

        Corrupt entries are skipped with a warning.
        """
        path = self._paths.snapshots_index
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Cannot read snapshot inventory %s: %s", path, e)
            return []

        snapshots: list[Snapshot] = []
        for entry in data.get("snapshots", []):
            try:
                snapshots.append(Snapshot.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping corrupt snapshot entry: %s", e)
        return sorted(snapshots, key=lambda s: s.created)

    def find(self, ref: str) -> Snapshot:
        """Look up a snapshot by name or backend reference.

        Raises:
            SnapshotNotFoundError: If nothing matches.
        """
        for snapshot in self.list_snapshots():
            if ref in (snapshot.name, snapshot.reference):
                return snapshot
        raise SnapshotNotFoundError(f"Snapshot not found: {ref}")

    def restore(self, ref: str) -> Snapshot:
        """Roll back to a recorded snapshot using the backend that made it.

        A successful rollback also closes an open conflict: the marker is
        archived like a resolve would, and the diagnostic current-state
        snapshot is dropped.

        Args:
            ref: Snapshot name or backend reference.

        Returns:
            The restored Snapshot.

        Raises:
            SnapshotNotFoundError: If the reference matches no snapshot.
            SnapshotError: If the rollback fails.
        """
        snapshot = self.find(ref)
        logger.info("Restoring snapshot %s (%s)", snapshot.name, snapshot.backend.value)
        self._backend_for(snapshot.backend).restore(snapshot)
        if self._state.has_conflict():
            self._state.archive_conflict(_archive_stamp())
            logger.info("Closed open conflict after restoring %s", snapshot.name)
        ChecksumStore(self._paths).clear_current()
        return snapshot

    def changes(self, snapshot: Snapshot) -> list[FileChange]:
        """List how the files preserved in a snapshot differ from disk now.

        Raises:
            SnapshotError: If the snapshot's backend cannot compare per file.
        """
        return self._backend_for(snapshot.backend).changes(snapshot)

    def prune(
        self,
        retention_days: int | None = None,
        now: datetime | None = None,
    ) -> list[Snapshot]:
        """Delete snapshots older than the retention window.

        The snapshot referenced by an open conflict marker and the snapshot
        taken by the current run are never removed.

        Args:
            retention_days: Window in days (defaults to the configured value).
            now: Reference time (defaults to the current time).

        Returns:
            Snapshots that were deleted.
        """
        days = retention_days if retention_days is not None else self._config.retention_days
        now = now or datetime.now(UTC)
        protected = self._protected_names()

        kept: list[Snapshot] = []
        removed: list[Snapshot] = []
        for snapshot in self.list_snapshots():
            if snapshot.name in protected or snapshot.age_days(now) <= days:
                kept.append(snapshot)
                continue
            try:
                self._backend_for(snapshot.backend).delete(snapshot)
            except SnapshotError as e:
                logger.warning("Could not prune %s: %s", snapshot.name, e)
                kept.append(snapshot)
                continue
            logger.info("Pruned snapshot %s", snapshot.name)
            removed.append(snapshot)

        if removed:
            self._save_inventory(kept)
        return removed

    def resolve(self, files: list[ManagedFile] | tuple[ManagedFile, ...]) -> ConflictMarker | None:
        """Clear an open conflict, accepting the on-disk state as the new baseline.

        The conflict marker is archived, the diagnostic current-state
        snapshot is dropped, and the checksums of the targets as they are on
        disk now become the expected baseline.

        Args:
            files: Managed files currently declared by the repository.

        Returns:
            The resolved marker, or None if no conflict was open.
        """
        marker = self._state.load_conflict()
        checksums = ChecksumStore(self._paths)
        checksums.save_previous(capture_state(files))
        checksums.clear_current()
        if marker is None:
            logger.info("No open conflict; baseline refreshed from disk")
            return None

        self._state.archive_conflict(_archive_stamp())
        logger.info("Resolved %d conflict(s) from run %d", len(marker.conflicts), marker.run_id)
        return marker

    def _protected_names(self) -> set[str]:
        names: set[str] = set()
        marker = self._state.load_conflict()
        if marker is not None and marker.snapshot:
            names.add(marker.snapshot)
        if self._active is not None:
            names.add(self._active.name)
        return names

    def _save_inventory(self, snapshots: list[Snapshot]) -> None:
        atomic_write_json(
            self._paths.snapshots_index,
            {"snapshots": [s.to_dict() for s in snapshots]},
        )


def _archive_stamp() -> str:
    return datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
