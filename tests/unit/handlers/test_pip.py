"""Unit tests for PipHandler."""

from unittest.mock import patch

import pytest
from confsync.handlers.pip import BREAK_SYSTEM_PACKAGES, PipHandler
from confsync.models.package import PackageManager, PackageSpec
from confsync.utils.shell import CommandResult

_OK = CommandResult(stdout="", stderr="", returncode=0)


class TestPipHandler:
    """Tests for PipHandler class."""

    @pytest.fixture
    def handler(self) -> PipHandler:
        """Create PipHandler instance."""
        return PipHandler()

    def test_prefers_pip3(self, handler: PipHandler) -> None:
        """pip3 is used when present."""
        with patch("confsync.handlers.pip.command_exists", return_value=True):
            assert handler.binary == "pip3"

    def test_override_flag_when_supported(
        self, handler: PipHandler, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Outside a venv, the override flag is added when pip knows it."""
        monkeypatch.delenv("VIRTUAL_ENV", raising=False)
        help_text = CommandResult(
            stdout=f"  {BREAK_SYSTEM_PACKAGES}  Allow pip to modify ...", stderr="", returncode=0
        )
        with (
            patch("confsync.handlers.pip.command_exists", return_value=True),
            patch("confsync.handlers.pip.run_command", return_value=help_text) as mock_run,
        ):
            assert handler.override_flags() == [BREAK_SYSTEM_PACKAGES]
            assert handler.override_flags() == [BREAK_SYSTEM_PACKAGES]

        mock_run.assert_called_once()

    def test_no_override_in_venv(
        self, handler: PipHandler, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Inside a virtual environment no flag is needed."""
        monkeypatch.setenv("VIRTUAL_ENV", "/opt/venv")
        with patch("confsync.handlers.pip.run_command") as mock_run:
            assert handler.override_flags() == []

        mock_run.assert_not_called()

    def test_no_override_for_old_pip(
        self, handler: PipHandler, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Older pip without the flag gets no override."""
        monkeypatch.delenv("VIRTUAL_ENV", raising=False)
        with (
            patch("confsync.handlers.pip.command_exists", return_value=True),
            patch("confsync.handlers.pip.run_command", return_value=_OK),
        ):
            assert handler.override_flags() == []

    def test_install_command(self, handler: PipHandler, monkeypatch: pytest.MonkeyPatch) -> None:
        """Install passes raw requirement strings after the flags."""
        monkeypatch.setenv("VIRTUAL_ENV", "/opt/venv")
        spec = PackageSpec(
            name="requests", manager=PackageManager.PIP, version=">=2.31", raw="requests>=2.31"
        )
        with (
            patch("confsync.handlers.pip.command_exists", return_value=True),
            patch("confsync.handlers.pip.run_command", return_value=_OK) as mock_run,
        ):
            handler.install_batch([spec])

        assert mock_run.call_args[0][0] == ["pip3", "install", "--quiet", "requests>=2.31"]
