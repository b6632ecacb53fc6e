"""Global npm package handler."""

import json
import logging
from typing import Any, cast

from confsync.handlers.base import BatchPackageHandler, BatchResult
from confsync.models.package import PackageManager, PackageSpec
from confsync.utils.shell import CommandResult, command_exists, run_command

logger = logging.getLogger(__name__)


class NpmHandler(BatchPackageHandler):
    """Handler for globally installed npm packages.

    The global package list is read once and cached; the cache is dropped
    after every install so later checks see the new state.
    """

    def __init__(self, dry_run: bool = False) -> None:
        """Initialize the handler.

        Args:
            dry_run: If True, only report what would be installed.
        """
        super().__init__(dry_run=dry_run)
        self._global: set[str] | None = None

    @property
    def manager(self) -> PackageManager:
        """Return NPM as the package manager."""
        return PackageManager.NPM

    def is_available(self) -> bool:
        """Check if npm is available."""
        return command_exists("npm")

    def is_installed(self, spec: PackageSpec) -> bool:
        """Check the spec name against the global package list."""
        return spec.name in self._global_packages()

    def install_batch(self, specs: list[PackageSpec]) -> BatchResult:
        """Install packages and drop the cached global list."""
        try:
            return super().install_batch(specs)
        finally:
            self._global = None

    def _install(self, specs: list[PackageSpec]) -> CommandResult:
        args = ["npm", "install", "-g", "--quiet", *(spec.raw for spec in specs)]
        return run_command(args, timeout=self._INSTALL_TIMEOUT)

    def _global_packages(self) -> set[str]:
        """Read the names of globally installed packages.

        npm exits non-zero when the global tree has problems but still
        prints usable JSON, so the exit code is not checked.
        """
        if self._global is not None:
            return self._global

        result = run_command(["npm", "list", "-g", "--depth=0", "--json"], timeout=60.0)
        try:
            data: Any = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            logger.warning("[npm] Could not parse global package list: %s", e)
            data = {}

        dependencies: object = data.get("dependencies", {}) if isinstance(data, dict) else {}
        if isinstance(dependencies, dict):
            self._global = set(cast(dict[str, object], dependencies))
        else:
            self._global = set()
        return self._global
