"""Unit tests for the apk and dnf handlers."""

from unittest.mock import patch

import pytest
from confsync.handlers.apk import ApkHandler
from confsync.handlers.dnf import DnfHandler
from confsync.models.package import PackageManager, PackageSpec
from confsync.utils.shell import CommandResult

_OK = CommandResult(stdout="", stderr="", returncode=0)


class TestApkHandler:
    """Tests for ApkHandler class."""

    @pytest.fixture
    def handler(self) -> ApkHandler:
        """Create ApkHandler instance."""
        return ApkHandler()

    def test_is_installed(self, handler: ApkHandler) -> None:
        """apk info -e decides installed state."""
        spec = PackageSpec(name="bash", manager=PackageManager.APK)
        with patch("confsync.handlers.apk.run_command", return_value=_OK) as mock_run:
            assert handler.is_installed(spec) is True

        assert mock_run.call_args[0][0] == ["apk", "info", "-e", "bash"]

    def test_install(self, handler: ApkHandler) -> None:
        """Packages are added in one apk call."""
        specs = [PackageSpec(name="bash", manager=PackageManager.APK)]
        with patch("confsync.handlers.apk.run_command", return_value=_OK) as mock_run:
            handler.install_batch(specs)

        assert mock_run.call_args[0][0] == ["apk", "add", "--quiet", "bash"]

    def test_refresh_index(self, handler: ApkHandler) -> None:
        """refresh_index runs apk update."""
        with patch("confsync.handlers.apk.run_command", return_value=_OK) as mock_run:
            assert handler.refresh_index() is True

        assert mock_run.call_args[0][0] == ["apk", "update", "--quiet"]


class TestDnfHandler:
    """Tests for DnfHandler class."""

    @pytest.fixture
    def handler(self) -> DnfHandler:
        """Create DnfHandler instance."""
        return DnfHandler()

    def test_prefers_dnf(self, handler: DnfHandler) -> None:
        """dnf is used when present."""
        with patch("confsync.handlers.dnf.command_exists", return_value=True):
            assert handler.binary == "dnf"

    def test_falls_back_to_yum(self, handler: DnfHandler) -> None:
        """yum is used when dnf is missing."""
        with patch("confsync.handlers.dnf.command_exists", side_effect=lambda n: n == "yum"):
            assert handler.binary == "yum"
            assert handler.is_available() is True

    def test_is_installed_queries_rpm(self, handler: DnfHandler) -> None:
        """Installed state comes from the RPM database."""
        spec = PackageSpec(name="git", manager=PackageManager.DNF)
        with patch("confsync.handlers.dnf.run_command") as mock_run:
            mock_run.return_value = CommandResult(
                stdout="", stderr="package git is not installed", returncode=1
            )
            assert handler.is_installed(spec) is False

        assert mock_run.call_args[0][0] == ["rpm", "-q", "git"]

    def test_install_with_yum(self, handler: DnfHandler) -> None:
        """The install command uses the detected front-end."""
        specs = [PackageSpec(name="git", manager=PackageManager.DNF)]
        with (
            patch("confsync.handlers.dnf.command_exists", side_effect=lambda n: n == "yum"),
            patch("confsync.handlers.dnf.run_command", return_value=_OK) as mock_run,
        ):
            handler.install_batch(specs)

        assert mock_run.call_args[0][0] == ["yum", "install", "-y", "-q", "git"]
