"""Registry mapping package managers to their handlers."""

from collections.abc import Iterator

from confsync.handlers.apk import ApkHandler
from confsync.handlers.apt import AptHandler
from confsync.handlers.base import PackageHandler
from confsync.handlers.custom import CustomHandler
from confsync.handlers.dnf import DnfHandler
from confsync.handlers.npm import NpmHandler
from confsync.handlers.pip import PipHandler
from confsync.models.package import EXTENSION_MAP, PackageManager


class HandlerRegistry:
    """Lookup table from manager identifier to handler instance.

    Adding a package manager means registering a new PackageHandler
    subclass; list files are routed by extension through EXTENSION_MAP.
    """

    def __init__(self, handlers: list[PackageHandler] | None = None) -> None:
        """Initialize the registry.

        Args:
            handlers: Handlers to register up front.
        """
        self._handlers: dict[PackageManager, PackageHandler] = {}
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: PackageHandler) -> None:
        """Register a handler, replacing any handler for the same manager."""
        self._handlers[handler.manager] = handler

    def get(self, manager: PackageManager) -> PackageHandler:
        """Return the handler for a manager.

        Raises:
            KeyError: If no handler is registered for the manager.
        """
        try:
            return self._handlers[manager]
        except KeyError:
            msg = f"No handler registered for {manager.value}"
            raise KeyError(msg) from None

    def __contains__(self, manager: object) -> bool:
        return manager in self._handlers

    def __iter__(self) -> Iterator[PackageHandler]:
        return iter(self._handlers.values())

    @staticmethod
    def manager_for_extension(extension: str) -> PackageManager | None:
        """Map a list file extension (with or without dot) to a manager."""
        return EXTENSION_MAP.get(extension.lstrip(".").lower())


def default_registry(dry_run: bool = False) -> HandlerRegistry:
    """Build a registry with every built-in handler.

    Args:
        dry_run: Passed to every handler.

    Returns:
        HandlerRegistry with apt, apk, dnf, npm, pip and custom handlers.
    """
    return HandlerRegistry(
        [
            AptHandler(dry_run=dry_run),
            ApkHandler(dry_run=dry_run),
            DnfHandler(dry_run=dry_run),
            NpmHandler(dry_run=dry_run),
            PipHandler(dry_run=dry_run),
            CustomHandler(dry_run=dry_run),
        ]
    )
