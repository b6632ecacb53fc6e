"""Logging setup for the CLI.

Console output goes through Rich on stderr; every run is also appended
to the sync log in the engine's log directory.
"""

import logging
from pathlib import Path

from rich.logging import RichHandler

from confsync.utils.formatting import err_console

LOG_FORMAT = "[%(asctime)s] [%(levelname)-7s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attribute marking handlers installed here, so reconfiguring replaces them
_MARKER = "_confsync_handler"


def configure_logging(
    log_file: Path | None = None,
    *,
    verbose: bool = False,
    quiet: bool = False,
) -> None:
    """Configure the 'confsync' logger.

    Args:
        log_file: File to append log records to, if any.
        verbose: Show DEBUG records on the console and in the file.
        quiet: Only show WARNING and above on the console.
    """
    root = logging.getLogger("confsync")
    root.setLevel(logging.DEBUG)
    for handler in [h for h in root.handlers if getattr(h, _MARKER, False)]:
        root.removeHandler(handler)
        handler.close()

    console_level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    console_handler = RichHandler(
        console=err_console,
        level=console_level,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    setattr(console_handler, _MARKER, True)
    root.addHandler(console_handler)

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            root.warning("Cannot open log file %s: %s", log_file, e)
        else:
            file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
            setattr(file_handler, _MARKER, True)
            root.addHandler(file_handler)
