"""Data models for confsync.

This package contains the dataclasses for packages, managed files,
checksums, snapshots, sync runs and progress events.
"""

from confsync.models.checksum import ChecksumRecord, ConflictMarker, ConflictRecord
from confsync.models.event import Phase, PhaseEvent
from confsync.models.managed_file import MISSING, FileIssue, FilePolicy, ManagedFile
from confsync.models.package import PackageBucket, PackageManager, PackageSpec
from confsync.models.run import ErrorCategory, SyncError, SyncOutcome, SyncRun
from confsync.models.snapshot import ChangeKind, FileChange, Snapshot, SnapshotBackendType

__all__ = [
    "MISSING",
    "ChangeKind",
    "ChecksumRecord",
    "ConflictMarker",
    "ConflictRecord",
    "ErrorCategory",
    "FileChange",
    "FileIssue",
    "FilePolicy",
    "ManagedFile",
    "PackageBucket",
    "PackageManager",
    "PackageSpec",
    "Phase",
    "PhaseEvent",
    "Snapshot",
    "SnapshotBackendType",
    "SyncError",
    "SyncOutcome",
    "SyncRun",
]
