"""Engine configuration and settings.

This module provides the configuration model and I/O functions for the
sync engine. Configuration is stored as TOML in /etc/confsync/config.toml
(or the path in CONFSYNC_CONFIG).
"""

import tomllib
from pathlib import Path
from typing import Annotated, Any, Literal

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from confsync.core.errors import ConfsyncError
from confsync.core.paths import (
    DEFAULT_REPO_DIR,
    StatePaths,
    get_config_path,
    get_lock_path,
    get_log_dir,
    get_state_dir,
)
from confsync.utils.fileio import atomic_write_bytes

SnapshotToggle = Literal["auto", "yes", "no"]
SnapshotBackendChoice = Literal["auto", "zfs", "lvm", "btrfs", "file"]


class RepositoryConfig(BaseModel):
    """Where the configuration repository lives.

    Attributes:
        url: Remote URL to clone from. Empty means use the local clone as-is.
        branch: Tracked branch.
        path: Local clone directory.
        configs_subdir: Directory inside the clone holding packages/, scripts/
            and files/. Empty means the clone root.
    """

    model_config = ConfigDict(extra="forbid")

    url: Annotated[str, Field(description="Remote repository URL")] = ""
    branch: Annotated[str, Field(min_length=1, description="Tracked branch")] = "main"
    path: Annotated[Path, Field(description="Local clone directory")] = DEFAULT_REPO_DIR
    configs_subdir: Annotated[
        str,
        Field(description="Sub-directory of the clone with packages/, scripts/, files/"),
    ] = ""


class ContainerConfig(BaseModel):
    """Container-level settings.

    Attributes:
        user: Operator account owning files under its home. Empty means detect.
    """

    model_config = ConfigDict(extra="forbid")

    user: Annotated[str, Field(description="Operator account (empty = auto-detect)")] = ""


class SnapshotConfig(BaseModel):
    """Pre-sync snapshot settings.

    Attributes:
        enabled: 'auto' and 'yes' take snapshots, 'no' disables them.
        backend: Backend to use, or 'auto' to probe zfs, lvm, btrfs, then file.
        retention_days: Snapshots older than this are pruned after a clean sync.
        lvm_size: Copy-on-write space reserved for LVM snapshots.
    """

    model_config = ConfigDict(extra="forbid")

    enabled: Annotated[SnapshotToggle, Field(description="Take pre-sync snapshots")] = "auto"
    backend: Annotated[SnapshotBackendChoice, Field(description="Snapshot backend")] = "auto"
    retention_days: Annotated[
        int,
        Field(ge=1, le=3650, description="Retention window in days"),
    ] = 7
    lvm_size: Annotated[
        str,
        Field(pattern=r"^\d+[KMGTkmgt]?$", description="LVM snapshot size (e.g. 1G)"),
    ] = "1G"

    @property
    def is_enabled(self) -> bool:
        """Check if snapshots should be taken."""
        return self.enabled != "no"


class EngineSettings(BaseModel):
    """Engine file locations.

    Attributes:
        state_dir: Directory for checksums, markers, history and backups.
        log_dir: Directory for the sync log and event stream.
        lock_file: Single-writer lock file.
    """

    model_config = ConfigDict(extra="forbid")

    state_dir: Annotated[
        Path,
        Field(default_factory=get_state_dir, description="State directory"),
    ]
    log_dir: Annotated[
        Path,
        Field(default_factory=get_log_dir, description="Log directory"),
    ]
    lock_file: Annotated[
        Path,
        Field(default_factory=get_lock_path, description="Lock file"),
    ]


class EngineConfig(BaseModel):
    """Top-level engine configuration."""

    model_config = ConfigDict(extra="forbid")

    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)
    container: ContainerConfig = Field(default_factory=ContainerConfig)
    snapshots: SnapshotConfig = Field(default_factory=SnapshotConfig)
    engine: EngineSettings = Field(default_factory=EngineSettings)

    @property
    def paths(self) -> StatePaths:
        """Return the engine's state file locations."""
        return StatePaths(state_dir=self.engine.state_dir, log_dir=self.engine.log_dir)

    @property
    def configs_dir(self) -> Path:
        """Return the directory holding packages/, scripts/ and files/."""
        if self.repository.configs_subdir:
            return self.repository.path / self.repository.configs_subdir
        return self.repository.path


class ConfigError(ConfsyncError):
    """Base exception for configuration errors."""


class ConfigNotFoundError(ConfigError):
    """Raised when the configuration file is not found."""


class ConfigParseError(ConfigError):
    """Raised when the configuration file cannot be parsed."""


class ConfigValidationError(ConfigError):
    """Raised when configuration content is invalid."""


def load_config(path: Path | None = None) -> EngineConfig:
    """Load and validate engine configuration from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Validated EngineConfig object.

    Raises:
        ConfigNotFoundError: If the config file doesn't exist.
        ConfigParseError: If the TOML syntax is invalid.
        ConfigValidationError: If the content doesn't match the schema.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        raise ConfigNotFoundError(f"Config not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        return EngineConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid config content: {e}") from e


def load_config_or_default(path: Path | None = None) -> EngineConfig:
    """Load configuration, falling back to defaults when no file exists.

    Used by read-only commands that only need state locations.

    Raises:
        ConfigParseError: If the TOML syntax is invalid.
        ConfigValidationError: If the content doesn't match the schema.
    """
    try:
        return load_config(path)
    except ConfigNotFoundError:
        return EngineConfig()


def save_config(config: EngineConfig, path: Path | None = None) -> Path:
    """Save engine configuration to a TOML file atomically.

    Args:
        config: The EngineConfig object to save.
        path: Path to save the config. If None, uses the default config path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()
    data = _config_to_dict(config)

    try:
        atomic_write_bytes(config_path, tomli_w.dumps(data).encode("utf-8"))
    except OSError as e:
        raise ConfigError(f"Failed to write config: {e}") from e

    return config_path


def _config_to_dict(config: EngineConfig) -> dict[str, Any]:
    """Convert EngineConfig to a dictionary for TOML serialization.

    Paths are written as strings since TOML has no path type.
    """
    return config.model_dump(mode="json")


def require_config(path: Path | None = None) -> EngineConfig:
    """Load configuration or exit with a helpful error message.

    Args:
        path: Optional custom config path.

    Returns:
        Loaded and validated EngineConfig.

    Raises:
        typer.Exit: If the config cannot be loaded.
    """
    import typer

    from confsync.utils.formatting import print_error, print_info

    config_path = path or get_config_path()
    try:
        return load_config(config_path)
    except ConfigNotFoundError as e:
        print_error(f"Config not found: {config_path}")
        print_info("Run 'confsync init --repo-url <url>' to create one.")
        raise typer.Exit(code=1) from e
    except ConfigError as e:
        print_error(f"Failed to load config: {e}")
        raise typer.Exit(code=1) from e
