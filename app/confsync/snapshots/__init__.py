"""Snapshot backends and the rollback manager.

Backends are probed in a fixed order (zfs, lvm, btrfs) with per-file
backups as the fallback.
"""

from confsync.snapshots.base import SnapshotBackend, SnapshotError, SnapshotNotFoundError
from confsync.snapshots.btrfs import BtrfsBackend
from confsync.snapshots.file import FileBackend
from confsync.snapshots.lvm import LvmBackend
from confsync.snapshots.manager import SnapshotManager, default_backends
from confsync.snapshots.zfs import ZfsBackend

__all__ = [
    "BtrfsBackend",
    "FileBackend",
    "LvmBackend",
    "SnapshotBackend",
    "SnapshotError",
    "SnapshotManager",
    "SnapshotNotFoundError",
    "ZfsBackend",
    "default_backends",
]
