"""ZFS snapshot backend."""

import logging

from confsync.models.snapshot import Snapshot, SnapshotBackendType
from confsync.snapshots.base import SnapshotBackend, SnapshotError, find_root_mount, run_checked
from confsync.utils.shell import command_exists

logger = logging.getLogger(__name__)


class ZfsBackend(SnapshotBackend):
    """Snapshots the ZFS dataset mounted at '/'."""

    def __init__(self) -> None:
        self._dataset: str | None = None

    @property
    def backend_type(self) -> SnapshotBackendType:
        """Return ZFS as the backend type."""
        return SnapshotBackendType.ZFS

    def probe(self) -> bool:
        """Check that '/' is a ZFS dataset and the zfs tool exists."""
        if not command_exists("zfs"):
            return False
        mount = find_root_mount()
        if mount is None or mount.fstype != "zfs":
            return False
        self._dataset = mount.source
        return True

    def create(self, name: str) -> Snapshot:
        """Run zfs snapshot on the root dataset."""
        if self._dataset is None and not self.probe():
            msg = "ZFS backend is not usable: '/' is not a ZFS dataset"
            raise SnapshotError(msg)
        reference = f"{self._dataset}@{name}"
        run_checked(["zfs", "snapshot", reference], f"create ZFS snapshot {reference}")
        logger.info("Created ZFS snapshot %s", reference)
        return self._snapshot(name, reference)

    def restore(self, snapshot: Snapshot) -> None:
        """Roll the dataset back, destroying later snapshots."""
        run_checked(
            ["zfs", "rollback", "-r", snapshot.reference],
            f"roll back to {snapshot.reference}",
        )
        logger.info("Rolled back to ZFS snapshot %s", snapshot.reference)

    def delete(self, snapshot: Snapshot) -> None:
        """Destroy the snapshot."""
        run_checked(["zfs", "destroy", snapshot.reference], f"destroy {snapshot.reference}")
