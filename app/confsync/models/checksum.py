"""Checksum and conflict records.

These records make up the persisted checksum state used for three-way
conflict detection between the last synced state, the state on disk and
the incoming repository content.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class ChecksumRecord:
    """Digest of one managed target.

    Attributes:
        target: Absolute target path (key).
        digest: Digest of the target, or MISSING.
        source_digest: Digest of the repository file when the record was taken.
    """

    target: str
    digest: str
    source_digest: str | None = None

    def __post_init__(self) -> None:
        """Validate record data after initialization."""
        if not self.target:
            msg = "Checksum record target cannot be empty"
            raise ValueError(msg)
        if not self.digest:
            msg = f"Checksum record for {self.target} has an empty digest"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        result: dict[str, Any] = {"digest": self.digest}
        if self.source_digest is not None:
            result["source_digest"] = self.source_digest
        return result

    @classmethod
    def from_dict(cls, target: str, data: dict[str, Any]) -> "ChecksumRecord":
        """Deserialize from dictionary.

        Raises:
            KeyError: If the digest is missing.
        """
        return cls(
            target=target,
            digest=data["digest"],
            source_digest=data.get("source_digest"),
        )


@dataclass(frozen=True, slots=True)
class ConflictRecord:
    """A managed file changed both locally and upstream.

    Attributes:
        target: Absolute target path.
        expected: Digest recorded at the end of the previous successful sync.
        current: Digest of the target on disk.
        incoming: Digest of the file in the repository.
    """

    target: str
    expected: str
    current: str
    incoming: str

    def to_dict(self) -> dict[str, str]:
        """Serialize to dictionary."""
        return {
            "target": self.target,
            "expected": self.expected,
            "current": self.current,
            "incoming": self.incoming,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConflictRecord":
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
        """
        return cls(
            target=data["target"],
            expected=data["expected"],
            current=data["current"],
            incoming=data["incoming"],
        )


@dataclass(frozen=True, slots=True)
class ConflictMarker:
    """An open conflict awaiting operator action.

    Attributes:
        detected: ISO 8601 timestamp of detection.
        run_id: Sync run that detected the conflicts.
        snapshot: Name of the pre-sync snapshot kept for restore, if any.
        conflicts: The divergent files.
    """

    detected: str
    run_id: int
    snapshot: str | None
    conflicts: tuple[ConflictRecord, ...]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for TOML storage (no None values)."""
        result: dict[str, Any] = {
            "detected": self.detected,
            "run_id": self.run_id,
            "conflicts": [c.to_dict() for c in self.conflicts],
        }
        if self.snapshot is not None:
            result["snapshot"] = self.snapshot
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConflictMarker":
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
        """
        return cls(
            detected=data["detected"],
            run_id=int(data["run_id"]),
            snapshot=data.get("snapshot"),
            conflicts=tuple(ConflictRecord.from_dict(c) for c in data.get("conflicts", [])),
        )
