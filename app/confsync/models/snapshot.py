"""Snapshot models for pre-sync rollback points."""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

SNAPSHOT_PREFIX = "confsync"


class SnapshotBackendType(Enum):
    """Storage mechanism used for a snapshot."""

    ZFS = "zfs"
    LVM = "lvm"
    BTRFS = "btrfs"
    FILE = "file"


class ChangeKind(Enum):
    """How a live target differs from its preserved copy."""

    UNCHANGED = "unchanged"
    MODIFIED = "modified"
    DELETED = "deleted"
    # Absent when the snapshot was taken; a restore removes it
    CREATED = "created"


@dataclass(frozen=True, slots=True)
class Snapshot:
    """A pre-sync rollback point.

    Attributes:
        name: Snapshot name (confsync-YYYYMMDD-HHMMSS).
        backend: Backend that created the snapshot.
        created: Creation time (ISO 8601 with timezone).
        reference: Backend-specific handle (dataset@name, vg/lv, subvolume
            path or backup directory).
    """

    name: str
    backend: SnapshotBackendType
    created: str
    reference: str

    def __post_init__(self) -> None:
        """Validate snapshot data after initialization."""
        if not self.name:
            msg = "Snapshot name cannot be empty"
            raise ValueError(msg)
        if not self.reference:
            msg = f"Snapshot {self.name} has no backend reference"
            raise ValueError(msg)

    @property
    def created_at(self) -> datetime:
        """Return the creation time as an aware datetime."""
        return datetime.fromisoformat(self.created)

    def age_days(self, now: datetime | None = None) -> float:
        """Return the snapshot age in days."""
        now = now or datetime.now(UTC)
        return (now - self.created_at).total_seconds() / 86400

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "name": self.name,
            "backend": self.backend.value,
            "created": self.created,
            "reference": self.reference,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If the backend is unknown.
        """
        return cls(
            name=data["name"],
            backend=SnapshotBackendType(data["backend"]),
            created=data["created"],
            reference=data["reference"],
        )


def generate_snapshot_name(now: datetime | None = None) -> str:
    """Build a snapshot name from a timestamp."""
    now = now or datetime.now(UTC)
    return f"{SNAPSHOT_PREFIX}-{now.strftime('%Y%m%d-%H%M%S')}"


@dataclass(frozen=True, slots=True)
class FileChange:
    """Difference between a preserved target and the file on disk now.

    Attributes:
        target: Absolute target path.
        kind: How the live target differs from the snapshot.
        diff: Leading lines of a unified diff (modified text files only).
    """

    target: str
    kind: ChangeKind
    diff: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {"target": self.target, "kind": self.kind.value, "diff": list(self.diff)}
