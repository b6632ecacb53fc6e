"""Filesystem locations used by confsync.

The engine runs as root inside the container, so it uses fixed system
paths rather than per-user XDG directories. Every location can be moved
with an environment variable, which the test-suite relies on.

Defaults:
- Config: /etc/confsync/config.toml
- State: /var/lib/confsync/
- Logs: /var/log/confsync/
- Lock: /run/confsync.lock
"""

import os
from dataclasses import dataclass
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "confsync"

DEFAULT_CONFIG_PATH = Path("/etc") / APP_NAME / "config.toml"
DEFAULT_STATE_DIR = Path("/var/lib") / APP_NAME
DEFAULT_LOG_DIR = Path("/var/log") / APP_NAME
DEFAULT_LOCK_FILE = Path("/run") / f"{APP_NAME}.lock"
DEFAULT_REPO_DIR = Path("/opt") / APP_NAME / "repo"


def _from_env(env_var: str, default: Path) -> Path:
    value = os.environ.get(env_var)
    return Path(value) if value else default


def get_config_path() -> Path:
    """Get the configuration file path.

    Returns:
        Path from CONFSYNC_CONFIG, or /etc/confsync/config.toml.
    """
    return _from_env("CONFSYNC_CONFIG", DEFAULT_CONFIG_PATH)


def get_state_dir() -> Path:
    """Get the default state directory.

    Returns:
        Path from CONFSYNC_STATE_DIR, or /var/lib/confsync.
    """
    return _from_env("CONFSYNC_STATE_DIR", DEFAULT_STATE_DIR)


def get_log_dir() -> Path:
    """Get the default log directory.

    Returns:
        Path from CONFSYNC_LOG_DIR, or /var/log/confsync.
    """
    return _from_env("CONFSYNC_LOG_DIR", DEFAULT_LOG_DIR)


def get_lock_path() -> Path:
    """Get the default lock file path.

    Returns:
        Path from CONFSYNC_LOCK_FILE, or /run/confsync.lock.
    """
    return _from_env("CONFSYNC_LOCK_FILE", DEFAULT_LOCK_FILE)


def ensure_dir(path: Path, name: str) -> Path:
    """Create directory if it doesn't exist.

    Args:
        path: Directory path to create.
        name: Human-readable name for error messages.

    Returns:
        The created/existing directory path.

    Raises:
        RuntimeError: If directory cannot be created.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        msg = f"Cannot create {name} directory {path}: Permission denied"
        raise RuntimeError(msg) from e
    except OSError as e:
        msg = f"Cannot create {name} directory {path}: {e}"
        raise RuntimeError(msg) from e
    return path


@dataclass(frozen=True, slots=True)
class StatePaths:
    """Files owned by the engine inside the state and log directories.

    Attributes:
        state_dir: Directory holding checksums, markers, history and backups.
        log_dir: Directory holding the sync log and event stream.
    """

    state_dir: Path
    log_dir: Path

    @property
    def checksums_prev(self) -> Path:
        """Checksums recorded at the end of the last successful sync."""
        return self.state_dir / "checksums.prev.json"

    @property
    def checksums_current(self) -> Path:
        """Checksums captured when the last conflict was detected."""
        return self.state_dir / "checksums.current.json"

    @property
    def conflict_marker(self) -> Path:
        """Open conflict marker."""
        return self.state_dir / "CONFLICT.toml"

    @property
    def last_sync(self) -> Path:
        """Timestamp of the last successful sync."""
        return self.state_dir / "last-sync"

    @property
    def runs(self) -> Path:
        """Run history (JSON Lines)."""
        return self.state_dir / "runs.jsonl"

    @property
    def snapshots_index(self) -> Path:
        """Inventory of snapshots taken by the engine."""
        return self.state_dir / "snapshots.json"

    @property
    def backups_dir(self) -> Path:
        """Root of the file snapshot backend."""
        return self.state_dir / "backups"

    @property
    def helpers(self) -> Path:
        """Shell helper library sourced by provisioning scripts."""
        return self.state_dir / "helpers.sh"

    @property
    def sync_log(self) -> Path:
        """Human-readable sync log."""
        return self.log_dir / "sync.log"

    @property
    def events(self) -> Path:
        """Phase event stream (JSON Lines)."""
        return self.log_dir / "events.jsonl"

    def resolved_archive(self, stamp: str) -> Path:
        """Archive path for a resolved conflict marker."""
        return self.state_dir / f"conflicts.resolved-{stamp}.toml"

    def ensure(self) -> None:
        """Create the state and log directories.

        Raises:
            RuntimeError: If a directory cannot be created.
        """
        ensure_dir(self.state_dir, "state")
        ensure_dir(self.log_dir, "log")
