"""Phase progress event stream.

Each event is appended to events.jsonl and mirrored to the log, so an
external process can follow a run by tailing one file.
"""

import logging
from datetime import UTC, datetime
from pathlib import Path

from confsync.models.event import Phase, PhaseEvent

logger = logging.getLogger(__name__)

_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class EventEmitter:
    """Writes PhaseEvents to a JSON Lines file.

    Attributes:
        path: Event file, or None to only log.
    """

    def __init__(self, path: Path | None) -> None:
        self._path = path
        self._events: list[PhaseEvent] = []

    @property
    def path(self) -> Path | None:
        """Event file, or None when events are only logged."""
        return self._path

    @property
    def events(self) -> list[PhaseEvent]:
        """Events emitted by this instance, oldest first."""
        return list(self._events)

    def emit(
        self,
        phase: Phase,
        message: str,
        level: str = "info",
        percent: int | None = None,
    ) -> PhaseEvent:
        """Emit one event.

        Failing to write the event file is logged and otherwise ignored;
        progress reporting never stops a run.

        Args:
            phase: Phase the event belongs to.
            message: Human-readable message.
            level: 'info', 'warning' or 'error'.
            percent: Progress hint; defaults to the phase's start percentage.

        Returns:
            The emitted event.
        """
        event = PhaseEvent(
            phase=phase,
            percent=phase.percent if percent is None else percent,
            message=message,
            level=level,
            timestamp=datetime.now(UTC).isoformat(),
        )
        self._events.append(event)
        logger.log(_LEVELS.get(level, logging.INFO), "[%s] %s", phase.value, message)

        if self._path is not None:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open(mode="a", encoding="utf-8") as f:
                    f.write(event.to_json_line() + "\n")
                    f.flush()
            except OSError as e:
                logger.warning("Cannot write event to %s: %s", self._path, e)

        return event
