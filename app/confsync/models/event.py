"""Phase progress events.

Events are emitted as JSON lines so an external process can tail the
stream and relay progress over its own transport.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Phase(str, Enum):
    """Pipeline phases in execution order."""

    LOCK = "lock"
    REPOSITORY = "repository"
    SNAPSHOT = "snapshot"
    DISCOVER = "discover"
    SCRIPTS = "scripts"
    PACKAGES = "packages"
    FILES = "files"
    CONFLICTS = "conflicts"
    COMMIT = "commit"
    DONE = "done"

    @property
    def percent(self) -> int:
        """Return the progress hint reached when this phase starts."""
        return _PHASE_PERCENT[self]


_PHASE_PERCENT: dict[Phase, int] = {
    Phase.LOCK: 0,
    Phase.REPOSITORY: 5,
    Phase.SNAPSHOT: 15,
    Phase.DISCOVER: 20,
    Phase.SCRIPTS: 25,
    Phase.PACKAGES: 50,
    Phase.FILES: 75,
    Phase.CONFLICTS: 85,
    Phase.COMMIT: 90,
    Phase.DONE: 100,
}


@dataclass(frozen=True, slots=True)
class PhaseEvent:
    """A single progress event.

    Attributes:
        phase: Phase the event belongs to.
        percent: Percent-complete hint (0-100).
        message: Human-readable message.
        level: Log level name (info, warning, error).
        timestamp: Emission time (ISO 8601 with timezone).
    """

    phase: Phase
    percent: int
    message: str
    level: str
    timestamp: str

    def __post_init__(self) -> None:
        """Validate event data after initialization."""
        if not 0 <= self.percent <= 100:
            msg = f"Percent must be between 0 and 100, got {self.percent}"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "phase": self.phase.value,
            "percent": self.percent,
            "message": self.message,
            "level": self.level,
            "timestamp": self.timestamp,
        }

    def to_json_line(self) -> str:
        """Serialize to JSON line (no trailing newline)."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json_line(cls, line: str) -> "PhaseEvent":
        """Deserialize from JSON line.

        Raises:
            json.JSONDecodeError: If line is not valid JSON.
            KeyError: If required fields are missing.
        """
        data = json.loads(line.strip())
        return cls(
            phase=Phase(data["phase"]),
            percent=int(data["percent"]),
            message=data["message"],
            level=data["level"],
            timestamp=data["timestamp"],
        )
