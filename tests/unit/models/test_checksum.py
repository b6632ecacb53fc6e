"""Unit tests for checksum and conflict records."""

import pytest
from confsync.models.checksum import ChecksumRecord, ConflictMarker, ConflictRecord


class TestChecksumRecord:
    """Tests for ChecksumRecord dataclass."""

    def test_empty_digest_rejected(self) -> None:
        """A record needs a digest (or the MISSING sentinel)."""
        with pytest.raises(ValueError, match="empty digest"):
            ChecksumRecord(target="/etc/motd", digest="")

    def test_to_dict_omits_missing_source_digest(self) -> None:
        """source_digest is only written when known."""
        assert ChecksumRecord(target="/etc/motd", digest="a" * 64).to_dict() == {
            "digest": "a" * 64
        }

    def test_from_dict_uses_key_as_target(self) -> None:
        """The target comes from the enclosing mapping key."""
        record = ChecksumRecord.from_dict("/etc/motd", {"digest": "abc", "source_digest": "def"})
        assert record.target == "/etc/motd"
        assert record.source_digest == "def"


class TestConflictMarker:
    """Tests for ConflictMarker dataclass."""

    def test_to_dict_without_snapshot(self) -> None:
        """The snapshot key is omitted when snapshots are disabled (TOML has no null)."""
        marker = ConflictMarker(
            detected="2026-01-01T00:00:00+00:00",
            run_id=3,
            snapshot=None,
            conflicts=(ConflictRecord("/etc/motd", "a", "b", "c"),),
        )
        data = marker.to_dict()
        assert "snapshot" not in data
        assert data["conflicts"][0]["current"] == "b"

    def test_from_dict_round_trip(self) -> None:
        """from_dict restores an equal marker."""
        marker = ConflictMarker(
            detected="2026-01-01T00:00:00+00:00",
            run_id=3,
            snapshot="confsync-20260101-000000",
            conflicts=(ConflictRecord("/etc/motd", "a", "b", "c"),),
        )
        assert ConflictMarker.from_dict(marker.to_dict()) == marker
