"""DNF/YUM package handler for Red Hat family containers."""

import logging

from confsync.handlers.base import BatchPackageHandler
from confsync.models.package import PackageManager, PackageSpec
from confsync.utils.shell import CommandResult, command_exists, run_command

logger = logging.getLogger(__name__)


class DnfHandler(BatchPackageHandler):
    """Handler for RPM packages, using dnf and falling back to yum.

    Installed state is read from the RPM database so it does not depend
    on which front-end is present.
    """

    needs_index_refresh = True

    @property
    def manager(self) -> PackageManager:
        """Return DNF as the package manager."""
        return PackageManager.DNF

    @property
    def binary(self) -> str:
        """Return the front-end to invoke (dnf preferred over yum)."""
        return "dnf" if command_exists("dnf") else "yum"

    def is_available(self) -> bool:
        """Check if dnf or yum is available."""
        return command_exists("dnf") or command_exists("yum")

    def is_installed(self, spec: PackageSpec) -> bool:
        """Check if rpm knows the package."""
        return run_command(["rpm", "-q", spec.name], timeout=30.0).success

    def refresh_index(self) -> bool:
        """Rebuild the metadata cache."""
        binary = self.binary
        logger.info("[%s] Updating package metadata", binary)
        result = run_command([binary, "makecache", "-q"], timeout=600.0)
        if not result.success:
            logger.error("[%s] makecache failed: %s", binary, result.stderr.strip())
        return result.success

    def _install(self, specs: list[PackageSpec]) -> CommandResult:
        args = [self.binary, "install", "-y", "-q", *(spec.raw for spec in specs)]
        return run_command(args, timeout=self._INSTALL_TIMEOUT)
