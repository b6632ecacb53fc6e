"""Unit tests for HandlerRegistry."""

import pytest
from confsync.handlers.apt import AptHandler
from confsync.handlers.npm import NpmHandler
from confsync.handlers.registry import HandlerRegistry, default_registry
from confsync.models.package import PackageManager


class TestHandlerRegistry:
    """Tests for HandlerRegistry class."""

    def test_get_registered(self) -> None:
        """Registered handlers are returned by manager."""
        apt = AptHandler()
        registry = HandlerRegistry([apt])

        assert registry.get(PackageManager.APT) is apt
        assert PackageManager.APT in registry
        assert PackageManager.NPM not in registry

    def test_get_missing_raises(self) -> None:
        """Unregistered managers raise KeyError."""
        with pytest.raises(KeyError, match="npm"):
            HandlerRegistry().get(PackageManager.NPM)

    def test_register_replaces(self) -> None:
        """Registering again replaces the earlier handler."""
        registry = HandlerRegistry([NpmHandler()])
        replacement = NpmHandler(dry_run=True)

        registry.register(replacement)

        assert registry.get(PackageManager.NPM) is replacement
        assert list(registry) == [replacement]

    @pytest.mark.parametrize(
        ("extension", "expected"),
        [
            ("apt", PackageManager.APT),
            (".yum", PackageManager.DNF),
            ("PIP", PackageManager.PIP),
            ("custom", PackageManager.CUSTOM),
            ("txt", None),
        ],
    )
    def test_manager_for_extension(self, extension: str, expected: PackageManager | None) -> None:
        """Extensions map to managers; unknown ones map to None."""
        assert HandlerRegistry.manager_for_extension(extension) == expected

    def test_default_registry(self) -> None:
        """The default registry covers every manager and passes dry_run on."""
        registry = default_registry(dry_run=True)

        assert {h.manager for h in registry} == set(PackageManager)
        assert all(h.dry_run for h in registry)
