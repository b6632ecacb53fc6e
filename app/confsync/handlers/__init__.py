"""Package handlers for installing declared packages.

This package provides the PackageHandler interface, its batch variant and implementations
for apt, apk, dnf/yum, global npm, global pip and custom command pairs.
"""

from confsync.handlers.apk import ApkHandler
from confsync.handlers.apt import AptHandler
from confsync.handlers.base import BatchPackageHandler, BatchResult, PackageHandler
from confsync.handlers.custom import CustomHandler
from confsync.handlers.dnf import DnfHandler
from confsync.handlers.npm import NpmHandler
from confsync.handlers.pip import PipHandler
from confsync.handlers.registry import HandlerRegistry, default_registry

__all__ = [
    "ApkHandler",
    "AptHandler",
    "BatchPackageHandler",
    "BatchResult",
    "CustomHandler",
    "DnfHandler",
    "HandlerRegistry",
    "NpmHandler",
    "PackageHandler",
    "PipHandler",
    "default_registry",
]
