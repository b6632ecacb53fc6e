"""LVM snapshot backend.

LVM snapshots need reserved copy-on-write space (``lvm_size``). A restore
merges the snapshot back into its origin; when the origin is in use, as
the root volume always is, the merge completes on the next activation.
"""

import logging
import subprocess

from confsync.models.snapshot import Snapshot, SnapshotBackendType
from confsync.snapshots.base import SnapshotBackend, SnapshotError, find_root_mount, run_checked
from confsync.utils.shell import command_exists, run_command

logger = logging.getLogger(__name__)


class LvmBackend(SnapshotBackend):
    """Snapshots the logical volume mounted at '/'.

    Attributes:
        size: Copy-on-write space for each snapshot (e.g., '1G').
    """

    def __init__(self, size: str = "1G") -> None:
        self._size = size
        self._origin: tuple[str, str] | None = None

    @property
    def backend_type(self) -> SnapshotBackendType:
        """Return LVM as the backend type."""
        return SnapshotBackendType.LVM

    def probe(self) -> bool:
        """Check that '/' is on a logical volume."""
        if not (command_exists("lvs") and command_exists("lvcreate")):
            return False
        mount = find_root_mount()
        if mount is None:
            return False
        try:
            result = run_command(
                ["lvs", "--noheadings", "-o", "vg_name,lv_name", mount.source],
                timeout=30.0,
            )
        except subprocess.TimeoutExpired:
            return False
        fields = result.stdout.split()
        if not result.success or len(fields) != 2:
            return False
        self._origin = (fields[0], fields[1])
        return True

    def create(self, name: str) -> Snapshot:
        """Run lvcreate --snapshot against the root volume."""
        origin = self._origin
        if origin is None and self.probe():
            origin = self._origin
        if origin is None:
            msg = "LVM backend is not usable: '/' is not on a logical volume"
            raise SnapshotError(msg)
        vg, lv = origin
        run_checked(
            ["lvcreate", "--snapshot", "--size", self._size, "--name", name, f"{vg}/{lv}"],
            f"create LVM snapshot {vg}/{name}",
        )
        logger.info("Created LVM snapshot %s/%s of %s", vg, name, lv)
        return self._snapshot(name, f"{vg}/{name}")

    def restore(self, snapshot: Snapshot) -> None:
        """Merge the snapshot into its origin volume."""
        run_checked(["lvconvert", "--merge", snapshot.reference], f"merge {snapshot.reference}")
        logger.warning(
            "LVM merge of %s scheduled; it completes when the origin volume is "
            "next activated (reboot the container)",
            snapshot.reference,
        )

    def delete(self, snapshot: Snapshot) -> None:
        """Remove the snapshot volume."""
        run_checked(["lvremove", "-f", snapshot.reference], f"remove {snapshot.reference}")
