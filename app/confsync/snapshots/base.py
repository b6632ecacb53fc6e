"""Abstract base class for snapshot backends.

A backend captures the container's state before a sync so it can be
rolled back. Copy-on-write backends snapshot the root filesystem; the
file backend preserves individual targets just before they are written.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime

from confsync.core.errors import ConfsyncError
from confsync.models.snapshot import FileChange, Snapshot, SnapshotBackendType
from confsync.utils.shell import CommandResult, command_exists, run_command

logger = logging.getLogger(__name__)


class SnapshotError(ConfsyncError):
    """Raised when a snapshot operation fails."""


class SnapshotNotFoundError(SnapshotError):
    """Raised when a snapshot reference matches no recorded snapshot."""


@dataclass(frozen=True, slots=True)
class RootMount:
    """Source device/dataset and filesystem type of '/'."""

    source: str
    fstype: str


def find_root_mount() -> RootMount | None:
    """Describe the root mount using findmnt.

    Returns:
        RootMount, or None if findmnt is unavailable or fails.
    """
    if not command_exists("findmnt"):
        logger.debug("findmnt not available; copy-on-write backends disabled")
        return None
    try:
        result = run_command(["findmnt", "-n", "-o", "SOURCE,FSTYPE", "/"], timeout=10.0)
    except subprocess.TimeoutExpired:
        return None
    fields = result.stdout.split()
    if not result.success or len(fields) < 2:
        return None
    # btrfs reports subvolumes as /dev/sda1[/@]
    return RootMount(source=fields[0].split("[", 1)[0], fstype=fields[1])


def run_checked(args: list[str], action: str, timeout: float = 300.0) -> CommandResult:
    """Run a backend command, raising SnapshotError on failure.

    Args:
        args: Command and arguments.
        action: Description used in the error message.
        timeout: Maximum time in seconds.

    Returns:
        The successful CommandResult.

    Raises:
        SnapshotError: If the command fails, times out or is missing.
    """
    try:
        result = run_command(args, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise SnapshotError(f"Failed to {action}: {e}") from e
    if not result.success:
        detail = result.stderr.strip() or f"exit code {result.returncode}"
        raise SnapshotError(f"Failed to {action}: {detail}")
    return result


class SnapshotBackend(ABC):
    """Abstract base class for all snapshot backends.

    Example:
        >>> backend = ZfsBackend()
        >>> if backend.probe():
        ...     snapshot = backend.create("confsync-20260101-120000")
    """

    @property
    @abstractmethod
    def backend_type(self) -> SnapshotBackendType:
        """Return the backend identifier recorded on snapshots."""

    @abstractmethod
    def probe(self) -> bool:
        """Check if this backend can snapshot the managed paths.

        Returns:
            True if the backend is usable on this container.
        """

    @abstractmethod
    def create(self, name: str) -> Snapshot:
        """Create a snapshot.

        Args:
            name: Snapshot name.

        Returns:
            The created Snapshot.

        Raises:
            SnapshotError: If the snapshot cannot be created.
        """

    @abstractmethod
    def restore(self, snapshot: Snapshot) -> None:
        """Roll the container back to a snapshot.

        Raises:
            SnapshotError: If the rollback fails.
        """

    @abstractmethod
    def delete(self, snapshot: Snapshot) -> None:
        """Delete a snapshot.

        Raises:
            SnapshotError: If the snapshot cannot be deleted.
        """

    def preserve(self, snapshot: Snapshot, target: str) -> None:  # noqa: B027
        """Save a target's content before it is overwritten.

        Copy-on-write backends capture everything at creation time, so the
        default does nothing.
        """

    def changes(self, snapshot: Snapshot) -> list[FileChange]:
        """Compare the files preserved in a snapshot with the live targets.

        Raises:
            SnapshotError: If the backend cannot inspect snapshots per file.
        """
        msg = (
            f"Showing changes is not supported for {self.backend_type.value} snapshots; "
            "only file backups can be compared per file"
        )
        raise SnapshotError(msg)

    def _snapshot(self, name: str, reference: str) -> Snapshot:
        return Snapshot(
            name=name,
            backend=self.backend_type,
            created=datetime.now(UTC).isoformat(),
            reference=reference,
        )
