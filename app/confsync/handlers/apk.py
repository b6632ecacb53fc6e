"""Alpine apk package handler."""

import logging

from confsync.handlers.base import BatchPackageHandler
from confsync.models.package import PackageManager, PackageSpec
from confsync.utils.shell import CommandResult, command_exists, run_command

logger = logging.getLogger(__name__)


class ApkHandler(BatchPackageHandler):
    """Handler for apk packages on Alpine containers."""

    needs_index_refresh = True

    @property
    def manager(self) -> PackageManager:
        """Return APK as the package manager."""
        return PackageManager.APK

    def is_available(self) -> bool:
        """Check if apk is available."""
        return command_exists("apk")

    def is_installed(self, spec: PackageSpec) -> bool:
        """Check if apk reports the package as installed."""
        return run_command(["apk", "info", "-e", spec.name], timeout=30.0).success

    def refresh_index(self) -> bool:
        """Run apk update."""
        logger.info("[apk] Updating package index")
        result = run_command(["apk", "update", "--quiet"], timeout=300.0)
        if not result.success:
            logger.error("[apk] apk update failed: %s", result.stderr.strip())
        return result.success

    def _install(self, specs: list[PackageSpec]) -> CommandResult:
        args = ["apk", "add", "--quiet", *(spec.raw for spec in specs)]
        return run_command(args, timeout=self._INSTALL_TIMEOUT)
