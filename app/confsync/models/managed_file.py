"""Managed file models.

A managed file is a file under the repository's ``files/`` directory that
the engine deploys to a fixed target path according to a policy.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

# Digest recorded for a target that does not exist. Never equal to a SHA-256 hex digest.
MISSING = "MISSING"


class FilePolicy(Enum):
    """Deployment policy for a managed file.

    Attributes:
        REPLACE: Overwrite the target whenever it differs from the source.
        DEFAULT: Write the target only if it does not exist yet.
        BACKUP: Like REPLACE, but keep a timestamped copy of the old target.
    """

    REPLACE = "replace"
    DEFAULT = "default"
    BACKUP = "backup"

    @property
    def tracks_conflicts(self) -> bool:
        """Check if files under this policy take part in conflict detection."""
        return self in (FilePolicy.REPLACE, FilePolicy.BACKUP)


@dataclass(frozen=True, slots=True)
class ManagedFile:
    """A file from the repository together with its deployment metadata.

    Attributes:
        name: Repository-relative file name (identity).
        source: Path of the file inside the repository clone.
        target: Absolute path the file is deployed to.
        policy: Deployment policy.
        content: File content read at parse time.
        digest: SHA-256 hex digest of content.
    """

    name: str
    source: Path
    target: Path
    policy: FilePolicy
    content: bytes = field(repr=False)
    digest: str

    def __post_init__(self) -> None:
        """Validate file data after initialization."""
        if not self.name:
            msg = "Managed file name cannot be empty"
            raise ValueError(msg)
        if not self.target.is_absolute():
            msg = f"Target path for '{self.name}' must be absolute: {self.target}"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class FileIssue:
    """A repository file that could not be turned into a ManagedFile.

    Attributes:
        name: Repository-relative file name.
        reason: Human-readable explanation.
    """

    name: str
    reason: str
