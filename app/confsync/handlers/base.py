"""Abstract base class for package handlers.

This module defines the PackageHandler interface that every package
manager integration implements, and the result type of a batch install.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from confsync.models.package import PackageManager, PackageSpec
from confsync.utils.shell import CommandResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BatchResult:
    """Result of one batch install call.

    Attributes:
        manager: Package manager that ran the batch.
        installed: Names that are installed after the call.
        failed: Names that are still missing after the call.
        planned: Names that would have been installed (dry-run only).
        error: Error output of the failing command, if any.
    """

    manager: PackageManager
    installed: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    planned: tuple[str, ...] = ()
    error: str | None = None

    @property
    def success(self) -> bool:
        """Check if every package in the batch was installed."""
        return not self.failed


class PackageHandler(ABC):
    """Abstract base class for all package handlers.

    A handler wraps one package manager behind a fixed interface: it can
    tell whether the manager exists on this container, whether a package
    is installed, and install a batch of packages in one call.

    Attributes:
        dry_run: If True, install_batch reports what it would install.

    Example:
        >>> handler = AptHandler()
        >>> if handler.is_available():
        ...     pending = handler.pending(bucket.specs)
        ...     result = handler.install_batch(pending)
    """

    # Handlers whose index needs a privileged refresh before installs
    needs_index_refresh: bool = False

    # Timeout for install commands (10 minutes)
    _INSTALL_TIMEOUT: float = 600.0

    def __init__(self, dry_run: bool = False) -> None:
        """Initialize the handler.

        Args:
            dry_run: If True, only report what would be installed.
        """
        self._dry_run = dry_run

    @property
    def dry_run(self) -> bool:
        """Check if handler is in dry-run mode."""
        return self._dry_run

    @property
    @abstractmethod
    def manager(self) -> PackageManager:
        """Return the package manager this handler wraps."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this package manager is available on the system.

        Returns:
            True if the package manager can be used, False otherwise.
        """

    @abstractmethod
    def is_installed(self, spec: PackageSpec) -> bool:
        """Check if a package is already installed.

        Args:
            spec: Package to check.

        Returns:
            True if installed, False otherwise.
        """
    @abstractmethod
    def install_batch(self, specs: list[PackageSpec]) -> BatchResult:
        """Install packages that pending() reported as missing.

        Args:
            specs: Packages to install.

        Returns:
            BatchResult describing installed and failed packages.
        """

    def refresh_index(self) -> bool:
        """Refresh the package index.

        Returns:
            True on success. The default implementation has nothing to refresh.
        """
        return True

    def pending(self, specs: tuple[PackageSpec, ...] | list[PackageSpec]) -> list[PackageSpec]:
        """Return the specs that are not installed yet.

        Args:
            specs: Declared packages.

        Returns:
            Specs for which is_installed() returned False, in declaration order.
        """
        return [spec for spec in specs if not self.is_installed(spec)]


class BatchPackageHandler(PackageHandler):
    """Handler for managers that install many packages in one command.

    Subclasses provide _install(); the shared install_batch() wraps it
    with dry-run handling and a per-package recheck on failure.
    """

    @abstractmethod
    def _install(self, specs: list[PackageSpec]) -> CommandResult:
        """Run the manager's install command for a batch of packages."""

    def install_batch(self, specs: list[PackageSpec]) -> BatchResult:
        """Install a batch of packages with a single manager call.

        Callers are expected to pass only specs that pending() returned.
        When the batch command fails, each package is re-checked so that
        packages the manager did install are not reported as failures.

        Args:
            specs: Packages to install.

        Returns:
            BatchResult describing installed and failed packages.
        """
        names = tuple(spec.name for spec in specs)
        if not specs:
            return BatchResult(manager=self.manager)

        if self.dry_run:
            logger.info("[%s] Would install: %s", self.manager.value, ", ".join(names))
            return BatchResult(manager=self.manager, planned=names)

        logger.info("[%s] Installing: %s", self.manager.value, ", ".join(names))
        result = self._install(specs)
        if result.success:
            return BatchResult(manager=self.manager, installed=names)

        error = result.stderr.strip() or f"install exited with code {result.returncode}"
        installed = tuple(spec.name for spec in specs if self.is_installed(spec))
        failed = tuple(name for name in names if name not in installed)
        logger.error("[%s] Install failed for: %s", self.manager.value, ", ".join(failed))
        return BatchResult(
            manager=self.manager,
            installed=installed,
            failed=failed,
            error=error,
        )
