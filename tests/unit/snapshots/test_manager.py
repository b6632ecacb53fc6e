"""Unit tests for the snapshot manager."""

from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from confsync.core.checksums import ChecksumStore
from confsync.core.config import SnapshotConfig
from confsync.core.paths import StatePaths
from confsync.core.state import EngineState
from confsync.models.checksum import ConflictMarker, ConflictRecord
from confsync.models.managed_file import FilePolicy, ManagedFile
from confsync.models.snapshot import Snapshot, SnapshotBackendType
from confsync.snapshots.base import SnapshotBackend, SnapshotError, SnapshotNotFoundError
from confsync.snapshots.file import FileBackend
from confsync.snapshots.manager import SnapshotManager
from confsync.utils.fileio import sha256_bytes

NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=UTC)


def _mock_backend(backend_type: SnapshotBackendType, usable: bool) -> MagicMock:
    backend = MagicMock(spec=SnapshotBackend)
    backend.backend_type = backend_type
    backend.probe.return_value = usable
    backend.create.side_effect = lambda name: Snapshot(
        name=name,
        backend=backend_type,
        created=NOW.isoformat(),
        reference=f"{backend_type.value}:{name}",
    )
    return backend


@pytest.fixture
def state(state_paths: StatePaths) -> EngineState:
    """EngineState in a temporary directory."""
    return EngineState(state_paths)


@pytest.fixture
def file_manager(state: EngineState, state_paths: StatePaths) -> SnapshotManager:
    """Manager using only the file backend."""
    backend = FileBackend(state_paths.backups_dir, state_paths.checksums_prev)
    return SnapshotManager(SnapshotConfig(backend="file"), state, [backend])


class TestSelectBackend:
    """Tests for SnapshotManager.select_backend."""

    def test_auto_takes_first_usable(self, state: EngineState) -> None:
        """Auto mode probes in order and stops at the first usable backend."""
        zfs = _mock_backend(SnapshotBackendType.ZFS, usable=False)
        btrfs = _mock_backend(SnapshotBackendType.BTRFS, usable=True)
        file = _mock_backend(SnapshotBackendType.FILE, usable=True)
        manager = SnapshotManager(SnapshotConfig(), state, [zfs, btrfs, file])

        assert manager.select_backend() is btrfs
        file.probe.assert_not_called()

    def test_disabled(self, state: EngineState) -> None:
        """Disabled snapshots select nothing and create nothing."""
        zfs = _mock_backend(SnapshotBackendType.ZFS, usable=True)
        manager = SnapshotManager(SnapshotConfig(enabled="no"), state, [zfs])

        assert manager.select_backend() is None
        assert manager.create_snapshot() is None
        zfs.create.assert_not_called()

    def test_forced_backend_unusable(self, state: EngineState) -> None:
        """A forced backend that fails its probe is an error, not a fallback."""
        zfs = _mock_backend(SnapshotBackendType.ZFS, usable=False)
        file = _mock_backend(SnapshotBackendType.FILE, usable=True)
        manager = SnapshotManager(SnapshotConfig(backend="zfs"), state, [zfs, file])

        with pytest.raises(SnapshotError, match="not usable"):
            manager.select_backend()


class TestInventory:
    """Tests for create, list, find and restore."""

    def test_create_records_inventory(self, file_manager: SnapshotManager) -> None:
        """Created snapshots are recorded and become active."""
        snapshot = file_manager.create_snapshot(NOW)

        assert snapshot is not None
        assert snapshot.name == "confsync-20260310-120000"
        assert file_manager.active == snapshot
        assert file_manager.list_snapshots() == [snapshot]

    def test_same_second_names_unique(self, file_manager: SnapshotManager) -> None:
        """Snapshots taken in the same second get distinct names."""
        first = file_manager.create_snapshot(NOW)
        second = file_manager.create_snapshot(NOW)

        assert first is not None and second is not None
        assert second.name == "confsync-20260310-120000-1"

    def test_find_by_name_or_reference(self, file_manager: SnapshotManager) -> None:
        """Snapshots are found by name or backend reference."""
        snapshot = file_manager.create_snapshot(NOW)
        assert snapshot is not None

        assert file_manager.find(snapshot.name) == snapshot
        assert file_manager.find(snapshot.reference) == snapshot
        with pytest.raises(SnapshotNotFoundError):
            file_manager.find("confsync-19990101-000000")

    def test_corrupt_inventory_entries_skipped(
        self, file_manager: SnapshotManager, state_paths: StatePaths
    ) -> None:
        """Invalid inventory entries are skipped."""
        state_paths.state_dir.mkdir(parents=True)
        state_paths.snapshots_index.write_text(
            '{"snapshots": [{"name": "x"}, {"name": "y", "backend": "file", '
            '"created": "2026-03-01T00:00:00+00:00", "reference": "/b/y"}]}'
        )

        assert [s.name for s in file_manager.list_snapshots()] == ["y"]

    def test_restore_uses_recorded_backend(self, state: EngineState) -> None:
        """Restore dispatches to the backend that made the snapshot."""
        zfs = _mock_backend(SnapshotBackendType.ZFS, usable=True)
        file = _mock_backend(SnapshotBackendType.FILE, usable=True)
        manager = SnapshotManager(SnapshotConfig(), state, [zfs, file])
        snapshot = manager.create_snapshot(NOW)
        assert snapshot is not None

        restored = manager.restore(snapshot.name)

        assert restored == snapshot
        zfs.restore.assert_called_once_with(snapshot)
        file.restore.assert_not_called()

    def test_restore_closes_open_conflict(
        self, state: EngineState, state_paths: StatePaths
    ) -> None:
        """A successful restore archives the marker and drops the diagnostic state."""
        zfs = _mock_backend(SnapshotBackendType.ZFS, usable=True)
        manager = SnapshotManager(SnapshotConfig(), state, [zfs])
        snapshot = manager.create_snapshot(NOW)
        assert snapshot is not None
        state.write_conflict(
            ConflictMarker(
                detected=NOW.isoformat(),
                run_id=2,
                snapshot=snapshot.name,
                conflicts=(ConflictRecord("/etc/motd", "a", "b", "c"),),
            )
        )
        ChecksumStore(state_paths).save_current({})

        manager.restore(snapshot.name)

        assert state.has_conflict() is False
        assert list(state_paths.state_dir.glob("conflicts.resolved-*.toml"))
        assert not state_paths.checksums_current.exists()

    def test_failed_restore_keeps_conflict(self, state: EngineState) -> None:
        """When the backend fails, the conflict stays open."""
        zfs = _mock_backend(SnapshotBackendType.ZFS, usable=True)
        zfs.restore.side_effect = SnapshotError("rollback refused")
        manager = SnapshotManager(SnapshotConfig(), state, [zfs])
        snapshot = manager.create_snapshot(NOW)
        assert snapshot is not None
        state.write_conflict(
            ConflictMarker(
                detected=NOW.isoformat(),
                run_id=2,
                snapshot=snapshot.name,
                conflicts=(ConflictRecord("/etc/motd", "a", "b", "c"),),
            )
        )

        with pytest.raises(SnapshotError):
            manager.restore(snapshot.name)

        assert state.has_conflict() is True

    def test_preserve_only_with_active_snapshot(
        self, file_manager: SnapshotManager, target_root: Path
    ) -> None:
        """The pre-write hook is a no-op until a snapshot is taken."""
        target = target_root / "motd"
        target.write_text("old")

        file_manager.preserve(target)
        snapshot = file_manager.create_snapshot(NOW)
        assert snapshot is not None
        file_manager.preserve(target)

        assert (Path(snapshot.reference) / "files" / str(target).lstrip("/")).read_text() == "old"


class TestPrune:
    """Tests for SnapshotManager.prune."""

    def _seed(self, manager: SnapshotManager, ages: list[int]) -> list[Snapshot]:
        return [
            s
            for s in (manager.create_snapshot(NOW - timedelta(days=age)) for age in ages)
            if s is not None
        ]

    def _fresh_manager(self, state: EngineState, backend: MagicMock) -> SnapshotManager:
        return SnapshotManager(SnapshotConfig(retention_days=7), state, [backend])

    def test_removes_old_snapshots(self, state: EngineState) -> None:
        """Snapshots older than the window are deleted."""
        backend = _mock_backend(SnapshotBackendType.ZFS, usable=True)
        backend.create.side_effect = lambda name: Snapshot(
            name=name,
            backend=SnapshotBackendType.ZFS,
            created=datetime.strptime(name, "confsync-%Y%m%d-%H%M%S")
            .replace(tzinfo=UTC)
            .isoformat(),
            reference=f"rpool@{name}",
        )
        self._seed(SnapshotManager(SnapshotConfig(), state, [backend]), [10, 3])
        manager = self._fresh_manager(state, backend)

        removed = manager.prune(now=NOW)

        assert [s.name for s in removed] == ["confsync-20260228-120000"]
        assert [s.name for s in manager.list_snapshots()] == ["confsync-20260307-120000"]

    def test_conflict_snapshot_protected(self, state: EngineState) -> None:
        """The snapshot named in an open conflict marker survives pruning."""
        backend = _mock_backend(SnapshotBackendType.ZFS, usable=True)
        backend.create.side_effect = lambda name: Snapshot(
            name=name,
            backend=SnapshotBackendType.ZFS,
            created=(NOW - timedelta(days=30)).isoformat(),
            reference=f"rpool@{name}",
        )
        (old,) = self._seed(SnapshotManager(SnapshotConfig(), state, [backend]), [30])
        state.write_conflict(
            ConflictMarker(
                detected=NOW.isoformat(),
                run_id=1,
                snapshot=old.name,
                conflicts=(ConflictRecord("/etc/motd", "a", "b", "c"),),
            )
        )

        removed = self._fresh_manager(state, backend).prune(now=NOW)

        assert removed == []
        backend.delete.assert_not_called()

    def test_delete_failure_keeps_entry(self, state: EngineState) -> None:
        """A snapshot that cannot be deleted stays in the inventory."""
        backend = _mock_backend(SnapshotBackendType.ZFS, usable=True)
        backend.create.side_effect = lambda name: Snapshot(
            name=name,
            backend=SnapshotBackendType.ZFS,
            created=(NOW - timedelta(days=30)).isoformat(),
            reference=f"rpool@{name}",
        )
        backend.delete.side_effect = SnapshotError("dataset is busy")
        self._seed(SnapshotManager(SnapshotConfig(), state, [backend]), [30])
        manager = self._fresh_manager(state, backend)

        assert manager.prune(now=NOW) == []
        assert len(manager.list_snapshots()) == 1


class TestResolve:
    """Tests for SnapshotManager.resolve."""

    def test_accepts_disk_state(
        self,
        file_manager: SnapshotManager,
        state: EngineState,
        state_paths: StatePaths,
        target_root: Path,
    ) -> None:
        """Resolve archives the marker and records on-disk digests as the baseline."""
        target = target_root / "motd"
        target.write_bytes(b"local edit")
        managed = ManagedFile(
            name="motd",
            source=Path("/repo/files/motd"),
            target=target,
            policy=FilePolicy.REPLACE,
            content=b"upstream",
            digest=sha256_bytes(b"upstream"),
        )
        marker = ConflictMarker(
            detected=NOW.isoformat(),
            run_id=4,
            snapshot=None,
            conflicts=(ConflictRecord(str(target), "a", sha256_bytes(b"local edit"), "c"),),
        )
        state.write_conflict(marker)

        resolved = file_manager.resolve([managed])

        assert resolved == marker
        assert state.has_conflict() is False
        assert list(state_paths.state_dir.glob("conflicts.resolved-*.toml"))
        baseline = ChecksumStore(state_paths).load_previous()[str(target)]
        assert baseline.digest == sha256_bytes(b"local edit")
        assert baseline.source_digest == sha256_bytes(b"upstream")

    def test_no_marker(self, file_manager: SnapshotManager, state_paths: StatePaths) -> None:
        """Without a marker resolve only refreshes the baseline."""
        assert file_manager.resolve([]) is None
        assert state_paths.checksums_prev.exists()
