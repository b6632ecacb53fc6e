"""APT package handler.

Checks installed state with dpkg-query and installs with apt-get.
"""

import logging

from confsync.handlers.base import BatchPackageHandler
from confsync.models.package import PackageManager, PackageSpec
from confsync.utils.shell import CommandResult, command_exists, run_command

logger = logging.getLogger(__name__)

_NONINTERACTIVE = {"DEBIAN_FRONTEND": "noninteractive"}


class AptHandler(BatchPackageHandler):
    """Handler for APT/dpkg packages on Debian-family containers."""

    needs_index_refresh = True

    # Timeout for apt-get update (5 minutes)
    _UPDATE_TIMEOUT: float = 300.0

    @property
    def manager(self) -> PackageManager:
        """Return APT as the package manager."""
        return PackageManager.APT

    def is_available(self) -> bool:
        """Check if apt-get is available."""
        return command_exists("apt-get")

    def is_installed(self, spec: PackageSpec) -> bool:
        """Check the dpkg status of a package."""
        result = run_command(["dpkg-query", "-W", "-f=${Status}", spec.name], timeout=30.0)
        return result.success and "install ok installed" in result.stdout

    def refresh_index(self) -> bool:
        """Run apt-get update."""
        logger.info("[apt] Updating package index")
        result = run_command(
            ["apt-get", "update", "-qq"],
            timeout=self._UPDATE_TIMEOUT,
            env=_NONINTERACTIVE,
        )
        if not result.success:
            logger.error("[apt] apt-get update failed: %s", result.stderr.strip())
        return result.success

    def _install(self, specs: list[PackageSpec]) -> CommandResult:
        args = ["apt-get", "install", "-y", "-qq", *(spec.raw for spec in specs)]
        return run_command(args, timeout=self._INSTALL_TIMEOUT, env=_NONINTERACTIVE)
