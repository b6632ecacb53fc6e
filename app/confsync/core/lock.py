"""Single-writer lock around engine operations.

Two overlapping runs would corrupt checksum state and snapshot retention
bookkeeping, so sync, restore and resolve hold an advisory flock on a
lock file. A second invocation fails immediately instead of queuing.
"""

import fcntl
import logging
import os
from pathlib import Path
from types import TracebackType
from typing import IO

from confsync.core.errors import ConfsyncError

logger = logging.getLogger(__name__)


class SyncAlreadyRunningError(ConfsyncError):
    """Raised when another process holds the lock."""

    def __init__(self, path: Path, pid: int | None = None) -> None:
        self.path = path
        self.pid = pid
        holder = f" (pid {pid})" if pid else ""
        super().__init__(f"Another confsync run is in progress{holder}; lock: {path}")


class SyncLock:
    """Advisory exclusive lock on a file.

    The holder's PID is written into the file for diagnostics. The file
    itself is never deleted, so there is no window in which two processes
    lock different inodes.

    Example:
        >>> with SyncLock(Path("/run/confsync.lock")):
        ...     engine.run_sync()
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._handle: IO[str] | None = None

    @property
    def path(self) -> Path:
        """Path of the lock file."""
        return self._path

    @property
    def held(self) -> bool:
        """Check if this instance currently holds the lock."""
        return self._handle is not None

    def acquire(self) -> None:
        """Acquire the lock without blocking.

        Raises:
            SyncAlreadyRunningError: If another process holds the lock.
            OSError: If the lock file cannot be opened.
        """
        if self._handle is not None:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self._path, "a+", encoding="utf-8")  # noqa: SIM115
        try:
            fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            handle.seek(0)
            content = handle.read().strip()
            handle.close()
            raise SyncAlreadyRunningError(
                self._path, int(content) if content.isdigit() else None
            ) from None

        handle.seek(0)
        handle.truncate()
        handle.write(f"{os.getpid()}\n")
        handle.flush()
        self._handle = handle
        logger.debug("Acquired lock %s", self._path)

    def release(self) -> None:
        """Release the lock if held."""
        if self._handle is None:
            return
        try:
            self._handle.seek(0)
            self._handle.truncate()
            fcntl.flock(self._handle, fcntl.LOCK_UN)
        finally:
            self._handle.close()
            self._handle = None
        logger.debug("Released lock %s", self._path)

    def __enter__(self) -> "SyncLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
