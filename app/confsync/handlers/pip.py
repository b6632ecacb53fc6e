"""Global pip package handler.

System-wide pip installs are refused on distributions that mark their
interpreter as externally managed (PEP 668). Outside a virtual environment
the handler opts into the override flag when this pip supports it.
"""

import logging
import os

from confsync.handlers.base import BatchPackageHandler
from confsync.models.package import PackageManager, PackageSpec
from confsync.utils.shell import CommandResult, command_exists, run_command

logger = logging.getLogger(__name__)

BREAK_SYSTEM_PACKAGES = "--break-system-packages"


class PipHandler(BatchPackageHandler):
    """Handler for pip packages installed into the system interpreter."""

    def __init__(self, dry_run: bool = False) -> None:
        """Initialize the handler.

        Args:
            dry_run: If True, only report what would be installed.
        """
        super().__init__(dry_run=dry_run)
        self._override_flags: list[str] | None = None

    @property
    def manager(self) -> PackageManager:
        """Return PIP as the package manager."""
        return PackageManager.PIP

    @property
    def binary(self) -> str:
        """Return the pip executable (pip3 preferred over pip)."""
        return "pip3" if command_exists("pip3") else "pip"

    def is_available(self) -> bool:
        """Check if pip3 or pip is available."""
        return command_exists("pip3") or command_exists("pip")

    def is_installed(self, spec: PackageSpec) -> bool:
        """Check if pip show finds the distribution."""
        return run_command([self.binary, "show", spec.name], timeout=60.0).success

    def override_flags(self) -> list[str]:
        """Return the flags needed to permit a system-wide install.

        Returns:
            ['--break-system-packages'] when not inside a virtual environment
            and pip supports the flag, otherwise an empty list.
        """
        if self._override_flags is not None:
            return self._override_flags

        flags: list[str] = []
        if not os.environ.get("VIRTUAL_ENV"):
            help_text = run_command([self.binary, "install", "--help"], timeout=60.0)
            if BREAK_SYSTEM_PACKAGES in help_text.stdout:
                flags.append(BREAK_SYSTEM_PACKAGES)
                logger.debug("[pip] Using %s for system-wide install", BREAK_SYSTEM_PACKAGES)
        self._override_flags = flags
        return flags

    def _install(self, specs: list[PackageSpec]) -> CommandResult:
        args = [
            self.binary,
            "install",
            "--quiet",
            *self.override_flags(),
            *(spec.raw for spec in specs),
        ]
        return run_command(args, timeout=self._INSTALL_TIMEOUT)
