"""Unit tests for the provisioning script runner."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from confsync.core.scripts import (
    HELPERS_SH,
    ScriptFailedError,
    ScriptRunner,
    discover_scripts,
    script_order_key,
)


@pytest.fixture
def scripts_dir(tmp_path: Path) -> Path:
    """Scripts directory with three scripts in mixed name order."""
    scripts = tmp_path / "scripts"
    scripts.mkdir()
    for name in ("20-tools.sh", "10-base.sh", "100-late.sh"):
        (scripts / name).write_text("#!/bin/bash\ntrue\n")
    return scripts


class TestDiscoverScripts:
    """Tests for discover_scripts and script_order_key."""

    def test_numeric_prefix_order(self, scripts_dir: Path) -> None:
        """Scripts are ordered by numeric prefix, not by string."""
        names = [p.name for p in discover_scripts(scripts_dir)]
        assert names == ["10-base.sh", "20-tools.sh", "100-late.sh"]

    def test_unprefixed_sort_last(self, scripts_dir: Path) -> None:
        """Scripts without a numeric prefix run after prefixed ones."""
        (scripts_dir / "cleanup.sh").write_text("true\n")
        names = [p.name for p in discover_scripts(scripts_dir)]
        assert names[-1] == "cleanup.sh"

    def test_ignores_non_scripts(self, scripts_dir: Path) -> None:
        """Hidden files, directories and non-executable non-.sh files are ignored."""
        (scripts_dir / ".hidden.sh").write_text("true\n")
        (scripts_dir / "README.md").write_text("docs\n")
        (scripts_dir / "lib").mkdir()
        names = [p.name for p in discover_scripts(scripts_dir)]
        assert names == ["10-base.sh", "20-tools.sh", "100-late.sh"]

    def test_executable_without_suffix(self, scripts_dir: Path) -> None:
        """Executable files are scripts even without the .sh suffix."""
        tool = scripts_dir / "50-setup"
        tool.write_text("#!/bin/sh\ntrue\n")
        tool.chmod(0o755)
        assert "50-setup" in [p.name for p in discover_scripts(scripts_dir)]

    def test_missing_dir(self, tmp_path: Path) -> None:
        """A missing scripts directory yields nothing."""
        assert discover_scripts(tmp_path / "none") == []

    def test_order_key(self) -> None:
        """The key sorts on prefix value, then name."""
        assert script_order_key(Path("05-a.sh")) < script_order_key(Path("5-b.sh"))
        assert script_order_key(Path("99-z.sh")) < script_order_key(Path("a.sh"))


class TestScriptRunner:
    """Tests for ScriptRunner class."""

    def test_runs_in_order_with_env(self, scripts_dir: Path, tmp_path: Path) -> None:
        """Scripts run sequentially through bash with the given environment."""
        helpers = tmp_path / "state" / "helpers.sh"
        runner = ScriptRunner({"CONTAINER_USER": "coder"}, helpers)
        with patch("confsync.core.scripts.stream_command", return_value=0) as mock_stream:
            report = runner.run(discover_scripts(scripts_dir))

        assert report.executed == ("10-base.sh", "20-tools.sh", "100-late.sh")
        assert report.success is True
        first_args = mock_stream.call_args_list[0][0][0]
        assert first_args == ["bash", str(scripts_dir / "10-base.sh")]
        env = mock_stream.call_args_list[0].kwargs["env"]
        assert env["CONTAINER_USER"] == "coder"
        assert env["BASH_ENV"] == str(helpers)
        assert helpers.read_text() == HELPERS_SH

    def test_failure_aborts_sequence(self, scripts_dir: Path, tmp_path: Path) -> None:
        """The first non-zero exit stops the remaining scripts."""
        runner = ScriptRunner({}, tmp_path / "helpers.sh")
        with (
            patch("confsync.core.scripts.stream_command", side_effect=[0, 3]) as mock_stream,
            pytest.raises(ScriptFailedError) as exc_info,
        ):
            runner.run(discover_scripts(scripts_dir))

        error = exc_info.value
        assert error.script == "20-tools.sh"
        assert error.exit_code == 3
        assert error.report.executed == ("10-base.sh",)
        assert error.report.skipped == ("100-late.sh",)
        assert mock_stream.call_count == 2

    def test_unstartable_script(self, scripts_dir: Path, tmp_path: Path) -> None:
        """A script that cannot be started fails with exit code 126."""
        runner = ScriptRunner({}, tmp_path / "helpers.sh")
        with (
            patch("confsync.core.scripts.stream_command", side_effect=OSError("exec format")),
            pytest.raises(ScriptFailedError) as exc_info,
        ):
            runner.run(discover_scripts(scripts_dir))

        assert exc_info.value.exit_code == 126

    def test_dry_run_lists_only(self, scripts_dir: Path, tmp_path: Path) -> None:
        """Dry run reports scripts as skipped and runs nothing."""
        helpers = tmp_path / "helpers.sh"
        runner = ScriptRunner({}, helpers, dry_run=True)
        with patch("confsync.core.scripts.stream_command") as mock_stream:
            report = runner.run(discover_scripts(scripts_dir))

        assert report.skipped == ("10-base.sh", "20-tools.sh", "100-late.sh")
        mock_stream.assert_not_called()
        assert not helpers.exists()

    def test_no_scripts(self, tmp_path: Path) -> None:
        """An empty sequence succeeds without writing helpers."""
        helpers = tmp_path / "helpers.sh"
        report = ScriptRunner({}, helpers).run([])
        assert report.executed == ()
        assert not helpers.exists()

    def test_real_script_sees_helpers(self, tmp_path: Path) -> None:
        """Scripts run for real can call helper functions and read the env."""
        scripts = tmp_path / "scripts"
        scripts.mkdir()
        out = tmp_path / "out.txt"
        (scripts / "10-check.sh").write_text(
            f'log_info "user=$CONTAINER_USER"\necho "$CONTAINER_USER" > {out}\n'
        )

        report = ScriptRunner({"CONTAINER_USER": "coder"}, tmp_path / "helpers.sh").run(
            discover_scripts(scripts)
        )

        assert report.executed == ("10-check.sh",)
        assert out.read_text().strip() == "coder"

    def test_executable_runs_directly(self, tmp_path: Path) -> None:
        """Executables without .sh are started directly."""
        tool = tmp_path / "50-setup"
        tool.write_text("#!/bin/sh\ntrue\n")
        tool.chmod(0o755)
        runner = ScriptRunner({}, tmp_path / "helpers.sh")
        with patch("confsync.core.scripts.stream_command", return_value=0) as mock_stream:
            runner.run([tool])

        assert mock_stream.call_args[0][0] == [str(tool)]
        assert os.access(tool, os.X_OK)
