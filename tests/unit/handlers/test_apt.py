"""Unit tests for AptHandler."""

from unittest.mock import patch

import pytest
from confsync.handlers.apt import AptHandler
from confsync.models.package import PackageManager, PackageSpec
from confsync.utils.shell import CommandResult


class TestAptHandler:
    """Tests for AptHandler class."""

    @pytest.fixture
    def handler(self) -> AptHandler:
        """Create AptHandler instance."""
        return AptHandler()

    def test_manager_is_apt(self, handler: AptHandler) -> None:
        """Handler reports APT and needs an index refresh."""
        assert handler.manager == PackageManager.APT
        assert handler.needs_index_refresh is True

    def test_is_available(self, handler: AptHandler) -> None:
        """is_available follows apt-get presence."""
        with patch("confsync.handlers.apt.command_exists", return_value=False):
            assert handler.is_available() is False
        with patch("confsync.handlers.apt.command_exists", return_value=True):
            assert handler.is_available() is True

    def test_is_installed_parses_status(self, handler: AptHandler) -> None:
        """A package is installed only when dpkg reports 'install ok installed'."""
        spec = PackageSpec(name="htop", manager=PackageManager.APT)
        with patch("confsync.handlers.apt.run_command") as mock_run:
            mock_run.return_value = CommandResult(
                stdout="install ok installed", stderr="", returncode=0
            )
            assert handler.is_installed(spec) is True

            mock_run.return_value = CommandResult(
                stdout="deinstall ok config-files", stderr="", returncode=0
            )
            assert handler.is_installed(spec) is False

            mock_run.return_value = CommandResult(
                stdout="", stderr="dpkg-query: no packages found", returncode=1
            )
            assert handler.is_installed(spec) is False

        args = mock_run.call_args[0][0]
        assert args[:2] == ["dpkg-query", "-W"]
        assert args[-1] == "htop"

    def test_refresh_index(self, handler: AptHandler) -> None:
        """refresh_index runs apt-get update non-interactively."""
        with patch("confsync.handlers.apt.run_command") as mock_run:
            mock_run.return_value = CommandResult(stdout="", stderr="", returncode=0)

            assert handler.refresh_index() is True

        assert mock_run.call_args[0][0] == ["apt-get", "update", "-qq"]
        assert mock_run.call_args.kwargs["env"] == {"DEBIAN_FRONTEND": "noninteractive"}

    def test_refresh_index_failure(self, handler: AptHandler) -> None:
        """A failed update is reported as False."""
        with patch("confsync.handlers.apt.run_command") as mock_run:
            mock_run.return_value = CommandResult(stdout="", stderr="network down", returncode=100)

            assert handler.refresh_index() is False

    def test_install_uses_raw_tokens(self, handler: AptHandler) -> None:
        """Version-pinned tokens are passed through unchanged."""
        specs = [
            PackageSpec(name="htop", manager=PackageManager.APT),
            PackageSpec(name="curl", manager=PackageManager.APT, version="7.88", raw="curl=7.88"),
        ]
        with patch("confsync.handlers.apt.run_command") as mock_run:
            mock_run.return_value = CommandResult(stdout="", stderr="", returncode=0)

            result = handler.install_batch(specs)

        mock_run.assert_called_once()
        args = mock_run.call_args[0][0]
        assert args == ["apt-get", "install", "-y", "-qq", "htop", "curl=7.88"]
        assert result.installed == ("htop", "curl")
