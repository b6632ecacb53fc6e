"""Provisioning script runner.

Scripts live directly in the repository's ``scripts/`` directory and run
in the order of their numeric name prefix (``10-base.sh`` before
``20-tools.sh``). Each runs under bash with a fixed environment and a
helper library pre-loaded through BASH_ENV. The first failure aborts the
remaining sequence.
"""

import logging
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path

from confsync.core.errors import ConfsyncError
from confsync.utils.fileio import atomic_write_bytes
from confsync.utils.shell import stream_command

logger = logging.getLogger(__name__)

_ORDER_PREFIX = re.compile(r"^(\d+)")

# Shell functions available to every script
HELPERS_SH = """\
# Generated by confsync; sourced by provisioning scripts through BASH_ENV.

log_info()  { printf '[INFO ] %s\\n' "$*"; }
log_warn()  { printf '[WARN ] %s\\n' "$*"; }
log_error() { printf '[ERROR] %s\\n' "$*" >&2; }

is_installed() {
    command -v "$1" >/dev/null 2>&1
}

ensure_installed() {
    local pkg="$1"
    is_installed "$pkg" && return 0
    log_info "ensure_installed: installing ${pkg} via ${CONFSYNC_PKG_MGR:-unknown}"
    case "${CONFSYNC_PKG_MGR:-}" in
        apt) DEBIAN_FRONTEND=noninteractive apt-get install -y -qq "$pkg" ;;
        apk) apk add --quiet "$pkg" ;;
        dnf) if command -v dnf >/dev/null 2>&1; then dnf install -y -q "$pkg"; \
else yum install -y -q "$pkg"; fi ;;
        *) log_error "ensure_installed: no supported package manager for ${pkg}"; return 1 ;;
    esac
}

run_as_user() {
    local home
    home="$(getent passwd "$CONTAINER_USER" | cut -d: -f6)"
    home="${home:-/home/$CONTAINER_USER}"
    if command -v runuser >/dev/null 2>&1; then
        runuser -u "$CONTAINER_USER" -- env HOME="$home" USER="$CONTAINER_USER" \
PATH="$home/.local/bin:/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin" "$@"
    else
        sudo -u "$CONTAINER_USER" env HOME="$home" USER="$CONTAINER_USER" \
PATH="$home/.local/bin:/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin" "$@"
    fi
}
"""


class ScriptFailedError(ConfsyncError):
    """Raised when a provisioning script exits non-zero."""

    def __init__(self, script: str, exit_code: int, report: "ScriptReport") -> None:
        self.script = script
        self.exit_code = exit_code
        self.report = report
        super().__init__(f"Script {script} failed with exit code {exit_code}")


@dataclass(frozen=True, slots=True)
class ScriptReport:
    """Result of running the script sequence.

    Attributes:
        executed: Scripts that completed successfully, in order.
        failed: Script that aborted the sequence, if any.
        exit_code: Exit code of the failed script (0 if none failed).
        skipped: Scripts not run (after a failure, or in dry-run mode).
    """

    executed: tuple[str, ...] = ()
    failed: str | None = None
    exit_code: int = 0
    skipped: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        """Check if every script completed."""
        return self.failed is None


def script_order_key(path: Path) -> tuple[int, int, str]:
    """Sort key: numeric prefix first, then name; unprefixed names sort last."""
    match = _ORDER_PREFIX.match(path.name)
    if match:
        return (0, int(match.group(1)), path.name)
    return (1, 0, path.name)


def discover_scripts(scripts_dir: Path) -> list[Path]:
    """Find the scripts to run, in execution order.

    Args:
        scripts_dir: The repository's scripts/ directory.

    Returns:
        Regular files directly inside scripts_dir that end in ``.sh`` or
        are executable, sorted with script_order_key. Hidden files are
        ignored. Empty if the directory does not exist.
    """
    if not scripts_dir.is_dir():
        return []
    scripts = [
        p
        for p in scripts_dir.iterdir()
        if p.is_file()
        and not p.name.startswith(".")
        and (p.suffix == ".sh" or os.access(p, os.X_OK))
    ]
    return sorted(scripts, key=script_order_key)


def _script_command(script: Path) -> list[str]:
    """Run ``*.sh`` files through bash; other executables by their shebang."""
    if script.suffix == ".sh" or not os.access(script, os.X_OK):
        return ["bash", str(script)]
    return [str(script)]


def write_helpers(path: Path) -> Path:
    """Write the shell helper library sourced by scripts."""
    return atomic_write_bytes(path, HELPERS_SH.encode("utf-8"))


class ScriptRunner:
    """Runs provisioning scripts sequentially.

    Output of each script is streamed into the log line by line, prefixed
    with the script name.

    Attributes:
        env: Variables exported to every script.
        helpers: Helper library loaded through BASH_ENV.
        dry_run: If True, scripts are listed but not run.
    """

    def __init__(self, env: dict[str, str], helpers: Path, dry_run: bool = False) -> None:
        self._env = dict(env)
        self._helpers = helpers
        self._dry_run = dry_run

    @property
    def env(self) -> dict[str, str]:
        """Environment exported to scripts (without BASH_ENV)."""
        return dict(self._env)

    def run(self, scripts: list[Path] | tuple[Path, ...]) -> ScriptReport:
        """Run scripts in the given order, stopping at the first failure.

        Args:
            scripts: Scripts in execution order (see discover_scripts).

        Returns:
            ScriptReport of the completed sequence.

        Raises:
            ScriptFailedError: If a script exits non-zero or cannot be started.
        """
        names = [script.name for script in scripts]
        if not scripts:
            logger.info("No scripts to run")
            return ScriptReport()

        if self._dry_run:
            for name in names:
                logger.info("Would run script %s", name)
            return ScriptReport(skipped=tuple(names))

        write_helpers(self._helpers)
        env = {**self._env, "BASH_ENV": str(self._helpers)}
        executed: list[str] = []

        for index, script in enumerate(scripts):
            logger.info("Running script %s", script.name)
            started = time.monotonic()
            try:
                exit_code = stream_command(
                    _script_command(script),
                    lambda line, name=script.name: logger.info("  [%s] %s", name, line),
                    cwd=str(script.parent),
                    env=env,
                )
            except OSError as e:
                logger.error("Cannot start script %s: %s", script.name, e)
                exit_code = 126

            elapsed = time.monotonic() - started
            if exit_code != 0:
                logger.error(
                    "Script %s failed with exit code %d; aborting remaining scripts",
                    script.name,
                    exit_code,
                )
                report = ScriptReport(
                    executed=tuple(executed),
                    failed=script.name,
                    exit_code=exit_code,
                    skipped=tuple(names[index + 1 :]),
                )
                raise ScriptFailedError(script.name, exit_code, report)

            logger.info("Completed script %s (%.1fs)", script.name, elapsed)
            executed.append(script.name)

        return ScriptReport(executed=tuple(executed))
