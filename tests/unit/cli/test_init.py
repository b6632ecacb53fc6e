"""Unit tests for init command."""

from pathlib import Path

from confsync.cli.main import app
from confsync.core.config import load_config
from typer.testing import CliRunner

runner = CliRunner()


def _default_config(tmp_path: Path) -> Path:
    return tmp_path / "etc" / "config.toml"


class TestInitCommand:
    """Tests for confsync init."""

    def test_writes_defaults(self, tmp_path: Path) -> None:
        """Init writes a loadable config at the default path."""
        result = runner.invoke(app, ["init", "--repo-url", "https://git.example.com/infra.git"])

        assert result.exit_code == 0
        assert "Config written" in result.stdout
        config = load_config(_default_config(tmp_path))
        assert config.repository.url == "https://git.example.com/infra.git"
        assert config.repository.branch == "main"
        assert config.snapshots.backend == "auto"
        assert config.snapshots.retention_days == 7

    def test_all_options(self, tmp_path: Path) -> None:
        """Every option lands in the written config."""
        result = runner.invoke(
            app,
            [
                "init",
                "--repo-url",
                "git@example.com:ops/lxc.git",
                "-b",
                "stable",
                "--repo-path",
                str(tmp_path / "clone"),
                "--configs-subdir",
                "lxc/configs",
                "-u",
                "coder",
                "--snapshot-backend",
                "zfs",
                "--retention-days",
                "14",
            ],
        )

        assert result.exit_code == 0
        config = load_config(_default_config(tmp_path))
        assert config.repository.branch == "stable"
        assert config.repository.path == tmp_path / "clone"
        assert config.configs_dir == tmp_path / "clone" / "lxc" / "configs"
        assert config.container.user == "coder"
        assert config.snapshots.backend == "zfs"
        assert config.snapshots.retention_days == 14

    def test_no_snapshots(self, tmp_path: Path) -> None:
        """--no-snapshots disables snapshots."""
        result = runner.invoke(app, ["init", "--no-snapshots"])

        assert result.exit_code == 0
        config = load_config(_default_config(tmp_path))
        assert not config.snapshots.is_enabled

    def test_local_repository_hint(self) -> None:
        """Without a URL the local clone is used as-is."""
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert "No repository URL set" in result.stdout

    def test_refuses_overwrite(self, tmp_path: Path) -> None:
        """An existing config is kept unless --force is given."""
        path = _default_config(tmp_path)
        path.parent.mkdir(parents=True)
        path.write_text("# existing\n")

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 1
        assert "already exists" in (result.stdout + result.stderr)
        assert path.read_text() == "# existing\n"

    def test_force_overwrites(self, tmp_path: Path) -> None:
        """--force replaces an existing config."""
        path = _default_config(tmp_path)
        path.parent.mkdir(parents=True)
        path.write_text("# existing\n")

        result = runner.invoke(app, ["init", "--force", "-b", "dev"])

        assert result.exit_code == 0
        assert load_config(path).repository.branch == "dev"

    def test_explicit_config_path(self, tmp_path: Path) -> None:
        """The global --config option selects where init writes."""
        path = tmp_path / "custom" / "confsync.toml"

        result = runner.invoke(app, ["--config", str(path), "init"])

        assert result.exit_code == 0
        assert path.exists()
        assert not _default_config(tmp_path).exists()

    def test_unknown_backend(self, tmp_path: Path) -> None:
        """An unknown snapshot backend is rejected."""
        result = runner.invoke(app, ["init", "--snapshot-backend", "xfs"])

        assert result.exit_code == 1
        assert "Unknown snapshot backend" in (result.stdout + result.stderr)
        assert not _default_config(tmp_path).exists()
