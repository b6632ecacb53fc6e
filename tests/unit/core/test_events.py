"""Unit tests for the phase event stream."""

from pathlib import Path

from confsync.core.events import EventEmitter
from confsync.models.event import Phase, PhaseEvent


class TestEventEmitter:
    """Tests for EventEmitter class."""

    def test_appends_json_lines(self, tmp_path: Path) -> None:
        """Each event becomes one line in the event file."""
        path = tmp_path / "log" / "events.jsonl"
        emitter = EventEmitter(path)

        emitter.emit(Phase.LOCK, "Lock acquired")
        emitter.emit(Phase.FILES, "Deploying", percent=80)

        lines = path.read_text().splitlines()
        events = [PhaseEvent.from_json_line(line) for line in lines]
        assert [e.phase for e in events] == [Phase.LOCK, Phase.FILES]
        assert events[0].percent == Phase.LOCK.percent
        assert events[1].percent == 80

    def test_events_kept_in_memory(self) -> None:
        """Without a file, events are still recorded and returned."""
        emitter = EventEmitter(None)

        event = emitter.emit(Phase.DONE, "Sync failed", level="error")

        assert emitter.events == [event]
        assert event.level == "error"

    def test_write_failure_does_not_raise(self, tmp_path: Path) -> None:
        """An unwritable event file only logs a warning."""
        blocker = tmp_path / "log"
        blocker.write_text("not a directory")
        emitter = EventEmitter(blocker / "events.jsonl")

        event = emitter.emit(Phase.LOCK, "Lock acquired")

        assert event.message == "Lock acquired"
