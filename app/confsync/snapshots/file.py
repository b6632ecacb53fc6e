"""Per-file backup snapshot backend.

Used when no copy-on-write filesystem is available. Creating a snapshot
only sets up a backup directory; the prior content of each managed
target is copied into it just before the target is first written during
the run. Targets that did not exist are recorded as absent so a restore
removes them again.

Layout of a backup directory::

    <backups>/<name>/manifest.json
    <backups>/<name>/checksums.prev.json   (baseline at creation time)
    <backups>/<name>/files/<target path>
"""

import difflib
import itertools
import json
import logging
import shutil
from pathlib import Path
from typing import Any

from confsync.models.snapshot import ChangeKind, FileChange, Snapshot, SnapshotBackendType
from confsync.snapshots.base import SnapshotBackend, SnapshotError
from confsync.utils.fileio import atomic_write_json

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
CHECKSUMS_NAME = "checksums.prev.json"

SAVED = "saved"
ABSENT = "absent"

# Diff lines shown per modified file
DIFF_LINES = 20


class FileBackend(SnapshotBackend):
    """Just-in-time per-file backups.

    Attributes:
        backups_dir: Directory holding one sub-directory per snapshot.
        checksums_path: Live checksum baseline, saved and restored with
            each snapshot so a restore also rewinds conflict detection.
    """

    def __init__(self, backups_dir: Path, checksums_path: Path) -> None:
        self._backups_dir = backups_dir
        self._checksums_path = checksums_path

    @property
    def backend_type(self) -> SnapshotBackendType:
        """Return FILE as the backend type."""
        return SnapshotBackendType.FILE

    def probe(self) -> bool:
        """The file backend works everywhere."""
        return True

    def create(self, name: str) -> Snapshot:
        """Create an empty backup directory and save the checksum baseline."""
        directory = self._backups_dir / name
        try:
            directory.mkdir(parents=True, exist_ok=False)
            had_checksums = self._checksums_path.exists()
            if had_checksums:
                shutil.copy2(self._checksums_path, directory / CHECKSUMS_NAME)
            snapshot = self._snapshot(name, str(directory))
            self._write_manifest(
                directory,
                {"name": name, "had_checksums": had_checksums, "entries": {}},
            )
        except FileExistsError as e:
            raise SnapshotError(f"Backup directory already exists: {directory}") from e
        except OSError as e:
            raise SnapshotError(f"Failed to create backup directory {directory}: {e}") from e

        logger.info("Created file backup snapshot %s", directory)
        return snapshot

    def preserve(self, snapshot: Snapshot, target: str) -> None:
        """Copy a target into the backup before its first overwrite in this run.

        Raises:
            SnapshotError: If the backup directory is unusable.
        """
        directory = Path(snapshot.reference)
        manifest = self._read_manifest(directory)
        entries: dict[str, str] = manifest.setdefault("entries", {})
        if target in entries:
            return

        source = Path(target)
        try:
            if source.is_file():
                dest = directory / "files" / target.lstrip("/")
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, dest)
                entries[target] = SAVED
            else:
                entries[target] = ABSENT
            self._write_manifest(directory, manifest)
        except OSError as e:
            raise SnapshotError(f"Failed to back up {target}: {e}") from e
        logger.debug("Preserved %s (%s) in %s", target, entries[target], snapshot.name)

    def restore(self, snapshot: Snapshot) -> None:
        """Put every preserved target back and remove targets that were absent."""
        directory = Path(snapshot.reference)
        manifest = self._read_manifest(directory)
        entries: dict[str, str] = manifest.get("entries", {})
        errors: list[str] = []

        for target, kind in sorted(entries.items()):
            path = Path(target)
            try:
                if kind == SAVED:
                    path.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(directory / "files" / target.lstrip("/"), path)
                    logger.info("Restored %s", target)
                elif path.exists():
                    path.unlink()
                    logger.info("Removed %s (absent at snapshot time)", target)
            except OSError as e:
                errors.append(f"{target}: {e}")

        try:
            saved_checksums = directory / CHECKSUMS_NAME
            if saved_checksums.exists():
                shutil.copy2(saved_checksums, self._checksums_path)
            elif not manifest.get("had_checksums", False):
                self._checksums_path.unlink(missing_ok=True)
        except OSError as e:
            errors.append(f"checksum baseline: {e}")

        if errors:
            raise SnapshotError(f"Restore of {snapshot.name} incomplete: {'; '.join(errors)}")
        logger.info("Restored %d file(s) from %s", len(entries), snapshot.name)

    def changes(self, snapshot: Snapshot) -> list[FileChange]:
        """Compare each preserved target with the file on disk now.

        Saved targets are unchanged, modified or deleted; targets that were
        absent at snapshot time are reported as created if they exist now.
        """
        directory = Path(snapshot.reference)
        entries: dict[str, str] = self._read_manifest(directory).get("entries", {})
        changes: list[FileChange] = []

        try:
            for target, kind in sorted(entries.items()):
                live = Path(target)
                if kind != SAVED:
                    state = ChangeKind.CREATED if live.exists() else ChangeKind.UNCHANGED
                    changes.append(FileChange(target, state))
                elif not live.exists():
                    changes.append(FileChange(target, ChangeKind.DELETED))
                else:
                    saved = (directory / "files" / target.lstrip("/")).read_bytes()
                    current = live.read_bytes()
                    if saved == current:
                        changes.append(FileChange(target, ChangeKind.UNCHANGED))
                    else:
                        diff = _short_diff(target, saved, current)
                        changes.append(FileChange(target, ChangeKind.MODIFIED, diff))
        except OSError as e:
            raise SnapshotError(f"Cannot compare {snapshot.name}: {e}") from e

        return changes

    def delete(self, snapshot: Snapshot) -> None:
        """Remove the backup directory."""
        try:
            shutil.rmtree(snapshot.reference)
        except FileNotFoundError:
            return
        except OSError as e:
            raise SnapshotError(f"Failed to delete {snapshot.reference}: {e}") from e

    def _read_manifest(self, directory: Path) -> dict[str, Any]:
        try:
            data: dict[str, Any] = json.loads((directory / MANIFEST_NAME).read_text("utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise SnapshotError(f"Unreadable backup manifest in {directory}: {e}") from e
        return data

    def _write_manifest(self, directory: Path, manifest: dict[str, Any]) -> None:
        atomic_write_json(directory / MANIFEST_NAME, manifest)


def _short_diff(target: str, saved: bytes, current: bytes) -> tuple[str, ...]:
    """Return the first lines of a unified diff, or nothing for binary content."""
    try:
        old = saved.decode("utf-8").splitlines()
        new = current.decode("utf-8").splitlines()
    except UnicodeDecodeError:
        return ()
    lines = difflib.unified_diff(
        old, new, fromfile=f"{target} (snapshot)", tofile=f"{target} (current)", lineterm=""
    )
    return tuple(itertools.islice(lines, DIFF_LINES))
