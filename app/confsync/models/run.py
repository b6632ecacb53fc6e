"""Sync run records.

This module defines the data structures recording each sync invocation
in the run history file, and the error values phases report.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SyncOutcome(str, Enum):
    """Terminal outcome of a sync run.

    Attributes:
        SUCCESS: All phases completed; checksums committed.
        CONFLICT: Blocked on local edits that diverge from upstream.
        FAILED: A fatal error stopped the pipeline.
    """

    SUCCESS = "success"
    CONFLICT = "conflict"
    FAILED = "failed"


class ErrorCategory(str, Enum):
    """Whether an error stopped the pipeline or only a single item."""

    FATAL = "fatal"
    SOFT = "soft"


@dataclass(frozen=True, slots=True)
class SyncError:
    """An error reported by a pipeline phase.

    Attributes:
        category: Fatal (run stopped) or soft (single item skipped).
        phase: Phase that reported the error.
        message: Human-readable description.
    """

    category: ErrorCategory
    phase: str
    message: str

    def to_dict(self) -> dict[str, str]:
        """Serialize to dictionary."""
        return {"category": self.category.value, "phase": self.phase, "message": self.message}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncError":
        """Deserialize from dictionary."""
        return cls(
            category=ErrorCategory(data["category"]),
            phase=data["phase"],
            message=data["message"],
        )


@dataclass(frozen=True, slots=True)
class SyncRun:
    """Record of a single sync invocation.

    Attributes:
        run_id: Monotonically increasing run number.
        started: Start time (ISO 8601 with timezone).
        finished: End time (ISO 8601 with timezone).
        outcome: Terminal outcome.
        first_run: True if no checksum baseline existed.
        snapshot: Name of the pre-sync snapshot, if one was taken.
        commit: Repository commit that was synced, if known.
        stats: Counters per phase (e.g., files_deployed, packages_installed).
        errors: Errors reported during the run.
    """

    run_id: int
    started: str
    finished: str
    outcome: SyncOutcome
    first_run: bool = False
    snapshot: str | None = None
    commit: str | None = None
    stats: dict[str, int] = field(default_factory=lambda: {})
    errors: tuple[SyncError, ...] = ()

    def __post_init__(self) -> None:
        """Validate run data after initialization."""
        if self.run_id < 1:
            msg = f"Run ID must be positive, got {self.run_id}"
            raise ValueError(msg)
        if not self.started or not self.finished:
            msg = "Run timestamps cannot be empty"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage.

        Returns:
            Dictionary representation of the run.
        """
        return {
            "run_id": self.run_id,
            "started": self.started,
            "finished": self.finished,
            "outcome": self.outcome.value,
            "first_run": self.first_run,
            "snapshot": self.snapshot,
            "commit": self.commit,
            "stats": self.stats,
            "errors": [e.to_dict() for e in self.errors],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncRun":
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If outcome or error data is invalid.
        """
        return cls(
            run_id=int(data["run_id"]),
            started=data["started"],
            finished=data["finished"],
            outcome=SyncOutcome(data["outcome"]),
            first_run=data.get("first_run", False),
            snapshot=data.get("snapshot"),
            commit=data.get("commit"),
            stats=data.get("stats", {}),
            errors=tuple(SyncError.from_dict(e) for e in data.get("errors", [])),
        )

    def to_json_line(self) -> str:
        """Serialize to JSON line for JSONL storage.

        Returns:
            Single JSON line (no trailing newline).
        """
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json_line(cls, line: str) -> "SyncRun":
        """Deserialize from JSON line.

        Raises:
            json.JSONDecodeError: If line is not valid JSON.
            KeyError: If required fields are missing.
            ValueError: If data is invalid.
        """
        return cls.from_dict(json.loads(line.strip()))
