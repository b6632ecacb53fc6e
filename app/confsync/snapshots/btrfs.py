"""Btrfs snapshot backend.

Snapshots are read-only subvolumes under /.snapshots. Btrfs cannot swap
the mounted root subvolume in place, so a restore creates a writable
copy and logs the steps needed to boot from it.
"""

import logging
from pathlib import Path

from confsync.models.snapshot import Snapshot, SnapshotBackendType
from confsync.snapshots.base import SnapshotBackend, SnapshotError, find_root_mount, run_checked
from confsync.utils.shell import command_exists

logger = logging.getLogger(__name__)

SNAPSHOT_ROOT = Path("/.snapshots")


class BtrfsBackend(SnapshotBackend):
    """Snapshots the btrfs subvolume mounted at '/'."""

    def __init__(self, snapshot_root: Path = SNAPSHOT_ROOT) -> None:
        self._root = snapshot_root

    @property
    def backend_type(self) -> SnapshotBackendType:
        """Return BTRFS as the backend type."""
        return SnapshotBackendType.BTRFS

    def probe(self) -> bool:
        """Check that '/' is btrfs and the btrfs tool exists."""
        if not command_exists("btrfs"):
            return False
        mount = find_root_mount()
        return mount is not None and mount.fstype == "btrfs"

    def create(self, name: str) -> Snapshot:
        """Create a read-only snapshot of '/'."""
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SnapshotError(f"Cannot create {self._root}: {e}") from e
        path = self._root / name
        run_checked(
            ["btrfs", "subvolume", "snapshot", "-r", "/", str(path)],
            f"create btrfs snapshot {path}",
        )
        logger.info("Created btrfs snapshot %s", path)
        return self._snapshot(name, str(path))

    def restore(self, snapshot: Snapshot) -> None:
        """Create a writable copy of the snapshot for manual switch-over."""
        restore_path = f"{snapshot.reference}-restore"
        run_checked(
            ["btrfs", "subvolume", "snapshot", snapshot.reference, restore_path],
            f"create writable copy of {snapshot.reference}",
        )
        logger.warning("Created writable subvolume %s", restore_path)
        logger.warning("To complete the rollback:")
        logger.warning("  1. btrfs subvolume list / (note the ID of %s)", restore_path)
        logger.warning("  2. btrfs subvolume set-default <ID> /")
        logger.warning("  3. Restart the container")

    def delete(self, snapshot: Snapshot) -> None:
        """Delete the snapshot subvolume."""
        run_checked(
            ["btrfs", "subvolume", "delete", snapshot.reference],
            f"delete {snapshot.reference}",
        )
