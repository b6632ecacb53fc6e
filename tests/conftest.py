"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules. Every test
runs with the engine's system paths redirected into tmp_path.
"""

from collections.abc import Callable
from pathlib import Path

import pytest
from confsync.core.config import (
    EngineConfig,
    EngineSettings,
    RepositoryConfig,
    SnapshotConfig,
)
from confsync.core.environment import ContainerEnvironment, OperatorAccount
from confsync.core.paths import StatePaths
from confsync.models.package import PackageManager

AddFile = Callable[..., Path]


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point config, state, log and lock locations into tmp_path."""
    monkeypatch.setenv("CONFSYNC_CONFIG", str(tmp_path / "etc" / "config.toml"))
    monkeypatch.setenv("CONFSYNC_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("CONFSYNC_LOG_DIR", str(tmp_path / "log"))
    monkeypatch.setenv("CONFSYNC_LOCK_FILE", str(tmp_path / "run" / "confsync.lock"))


@pytest.fixture
def state_paths(tmp_path: Path) -> StatePaths:
    """State and log locations inside tmp_path."""
    return StatePaths(state_dir=tmp_path / "state", log_dir=tmp_path / "log")


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """An empty configuration repository layout."""
    repo = tmp_path / "repo"
    for sub in ("packages", "scripts", "files"):
        (repo / sub).mkdir(parents=True)
    return repo


@pytest.fixture
def target_root(tmp_path: Path) -> Path:
    """Stand-in for the container's filesystem root."""
    root = tmp_path / "root"
    root.mkdir()
    return root


@pytest.fixture
def add_file(repo_dir: Path) -> AddFile:
    """Return a helper that adds a managed file with its sidecars to the repository."""

    def _add(
        name: str,
        content: str | bytes,
        target_dir: Path | str | None,
        policy: str | None = "replace",
    ) -> Path:
        files = repo_dir / "files"
        source = files / name
        source.write_bytes(content.encode() if isinstance(content, str) else content)
        if target_dir is not None:
            (files / f"{name}.path").write_text(f"{target_dir}\n")
        if policy is not None:
            (files / f"{name}.policy").write_text(f"{policy}\n")
        return source

    return _add


@pytest.fixture
def engine_config(tmp_path: Path, repo_dir: Path, state_paths: StatePaths) -> EngineConfig:
    """Config using the local repository as-is and the file snapshot backend."""
    return EngineConfig(
        repository=RepositoryConfig(url="", path=repo_dir),
        snapshots=SnapshotConfig(backend="file"),
        engine=EngineSettings(
            state_dir=state_paths.state_dir,
            log_dir=state_paths.log_dir,
            lock_file=tmp_path / "run" / "confsync.lock",
        ),
    )


@pytest.fixture
def container_env(tmp_path: Path) -> ContainerEnvironment:
    """A detected-looking Debian container with an operator that has no account."""
    return ContainerEnvironment(
        os_id="debian",
        os_version="12",
        user=OperatorAccount(name="coder", uid=None, gid=None, home=tmp_path / "home" / "coder"),
        package_manager=PackageManager.APT,
    )
