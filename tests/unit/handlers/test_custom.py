"""Unit tests for CustomHandler."""

import subprocess
from unittest.mock import patch

import pytest
from confsync.handlers.base import BatchPackageHandler
from confsync.handlers.custom import CustomHandler
from confsync.models.package import PackageManager, PackageSpec
from confsync.utils.shell import CommandResult

_OK = CommandResult(stdout="", stderr="", returncode=0)
_FAIL = CommandResult(stdout="", stderr="", returncode=1)


def _spec(name: str = "uv", timeout: int = 120) -> PackageSpec:
    return PackageSpec(
        name=name,
        manager=PackageManager.CUSTOM,
        check_command=f"command -v {name}",
        install_command=f"pipx install {name}",
        timeout=timeout,
    )


class TestCustomHandler:
    """Tests for CustomHandler class."""

    @pytest.fixture
    def handler(self) -> CustomHandler:
        """Create CustomHandler instance."""
        return CustomHandler()

    def test_always_available(self, handler: CustomHandler) -> None:
        """Custom commands only need bash."""
        assert handler.is_available() is True

    def test_check_runs_in_bash(self, handler: CustomHandler) -> None:
        """The check command runs through bash -c."""
        with patch("confsync.handlers.custom.run_command", return_value=_OK) as mock_run:
            assert handler.is_installed(_spec()) is True

        assert mock_run.call_args[0][0] == ["bash", "-c", "command -v uv"]

    def test_check_timeout_means_missing(self, handler: CustomHandler) -> None:
        """A hanging check is treated as not installed."""
        with patch(
            "confsync.handlers.custom.run_command",
            side_effect=subprocess.TimeoutExpired("bash", 60),
        ):
            assert handler.is_installed(_spec()) is False

    def test_install_one_at_a_time(self, handler: CustomHandler) -> None:
        """Each spec installs with its own timeout and is checked afterwards."""
        with patch("confsync.handlers.custom.run_command", return_value=_OK) as mock_run:
            result = handler.install_batch([_spec("uv", 120), _spec("ruff", 30)])

        assert result.installed == ("uv", "ruff")
        install_calls = [c for c in mock_run.call_args_list if "pipx" in c[0][0][2]]
        assert [c.kwargs["timeout"] for c in install_calls] == [120, 30]

    def test_failed_install_continues(self, handler: CustomHandler) -> None:
        """One failing install does not stop the others."""
        failing = CommandResult(
            stdout="", stderr="curl: (6) Could not resolve host\n", returncode=6
        )
        with patch("confsync.handlers.custom.run_command") as mock_run:
            mock_run.side_effect = [failing, _OK, _OK]

            result = handler.install_batch([_spec("uv"), _spec("ruff")])

        assert result.installed == ("ruff",)
        assert result.failed == ("uv",)
        assert result.error == "uv: curl: (6) Could not resolve host"

    def test_install_timeout(self, handler: CustomHandler) -> None:
        """A timed out install is reported as failed."""
        with patch(
            "confsync.handlers.custom.run_command",
            side_effect=subprocess.TimeoutExpired("bash", 5),
        ):
            result = handler.install_batch([_spec("uv", 5)])

        assert result.failed == ("uv",)
        assert result.error == "uv: timed out after 5s"

    def test_check_still_failing_after_install(self, handler: CustomHandler) -> None:
        """An install that exits 0 but leaves the check failing is a failure."""
        with patch("confsync.handlers.custom.run_command", side_effect=[_OK, _FAIL]):
            result = handler.install_batch([_spec()])

        assert result.failed == ("uv",)
        assert result.error is not None
        assert "check command still fails" in result.error

    def test_dry_run(self) -> None:
        """Dry run plans custom installs without running them."""
        handler = CustomHandler(dry_run=True)
        with patch("confsync.handlers.custom.run_command") as mock_run:
            result = handler.install_batch([_spec()])

        assert result.planned == ("uv",)
        mock_run.assert_not_called()

    def test_not_a_batch_handler(self, handler: CustomHandler) -> None:
        """Custom installs do not go through the single-command batch path."""
        assert not isinstance(handler, BatchPackageHandler)
        assert not hasattr(handler, "_install")

    def test_rejects_non_custom_spec(self, handler: CustomHandler) -> None:
        """A spec without check/install commands is refused before running bash."""
        spec = PackageSpec(name="htop", manager=PackageManager.APT)
        with patch("confsync.handlers.custom.run_command") as mock_run:
            with pytest.raises(ValueError, match="not a custom check/install pair"):
                handler.is_installed(spec)
            with pytest.raises(ValueError, match="not a custom check/install pair"):
                handler.install_batch([spec])

        mock_run.assert_not_called()
