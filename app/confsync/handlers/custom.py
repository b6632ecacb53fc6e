"""Custom check/install handler.

Custom packages are declared as a pair of shell commands: one that exits
zero when the package is present, and one that installs it. They cover
tools that no package manager ships, such as curl-piped installers.
"""

import logging
import subprocess

from confsync.handlers.base import BatchResult, PackageHandler
from confsync.models.package import PackageManager, PackageSpec
from confsync.utils.shell import run_command

logger = logging.getLogger(__name__)


class CustomHandler(PackageHandler):
    """Handler for custom check/install command pairs.

    Custom installs cannot be batched; each spec runs on its own with its
    own timeout and is verified with its check command afterwards.
    """

    # Timeout for check commands
    _CHECK_TIMEOUT: float = 60.0

    @property
    def manager(self) -> PackageManager:
        """Return CUSTOM as the package manager."""
        return PackageManager.CUSTOM

    def is_available(self) -> bool:
        """Custom commands only need bash, which every container has."""
        return True

    def is_installed(self, spec: PackageSpec) -> bool:
        """Run the spec's check command."""
        check_command, _ = _commands(spec)
        try:
            result = run_command(["bash", "-c", check_command], timeout=self._CHECK_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning("[custom] Check for %s timed out", spec.name)
            return False
        return result.success

    def install_batch(self, specs: list[PackageSpec]) -> BatchResult:
        """Install each custom package in turn.

        Args:
            specs: Custom packages to install.

        Returns:
            BatchResult with per-package outcome; the error field holds the
            messages of all failed installs.
        """
        if not specs:
            return BatchResult(manager=self.manager)

        names = tuple(spec.name for spec in specs)
        if self.dry_run:
            logger.info("[custom] Would install: %s", ", ".join(names))
            return BatchResult(manager=self.manager, planned=names)

        installed: list[str] = []
        failed: list[str] = []
        errors: list[str] = []

        for spec in specs:
            error = self._install_one(spec)
            if error is None:
                installed.append(spec.name)
            else:
                failed.append(spec.name)
                errors.append(f"{spec.name}: {error}")

        return BatchResult(
            manager=self.manager,
            installed=tuple(installed),
            failed=tuple(failed),
            error="; ".join(errors) or None,
        )

    def _install_one(self, spec: PackageSpec) -> str | None:
        """Install one custom package.

        Returns:
            None on success, otherwise an error message.
        """
        _, install_command = _commands(spec)
        logger.info("[custom] Installing %s (timeout %ds)", spec.name, spec.timeout)
        try:
            result = run_command(["bash", "-c", install_command], timeout=spec.timeout)
        except subprocess.TimeoutExpired:
            logger.error("[custom] Install of %s timed out after %ds", spec.name, spec.timeout)
            return f"timed out after {spec.timeout}s"

        if not result.success:
            detail = result.stderr.strip().splitlines()[-1:] or [f"exit code {result.returncode}"]
            logger.error("[custom] Install of %s failed: %s", spec.name, detail[0])
            return detail[0]

        if not self.is_installed(spec):
            logger.error("[custom] %s installed but its check still fails", spec.name)
            return "check command still fails after install"

        return None


def _commands(spec: PackageSpec) -> tuple[str, str]:
    """Return the check and install commands of a custom spec.

    Raises:
        ValueError: If the spec is not a custom check/install pair.
    """
    if not spec.is_custom or spec.check_command is None or spec.install_command is None:
        msg = f"Package '{spec.name}' is not a custom check/install pair"
        raise ValueError(msg)
    return spec.check_command, spec.install_command
