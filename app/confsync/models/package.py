"""Package models for declarative package lists.

This module defines the data structures for packages declared in the
configuration repository's ``packages/`` directory, and the parsers for
the list file formats.
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

# Characters allowed in a package token (name plus optional version constraint)
_PACKAGE_TOKEN = re.compile(r"^[a-zA-Z0-9@/_.:~+=*<>-]+$")

# Version constraint operators used by pip requirement strings
_PIP_SPLIT = re.compile(r"[<>=!~\[;]")
_APK_SPLIT = re.compile(r"[<>=~]")

DEFAULT_CUSTOM_TIMEOUT = 300


class PackageManager(Enum):
    """Enumeration of supported package managers."""

    APT = "apt"
    APK = "apk"
    DNF = "dnf"
    NPM = "npm"
    PIP = "pip"
    CUSTOM = "custom"

    @property
    def is_native(self) -> bool:
        """Check if this is a distribution package manager."""
        return self in (PackageManager.APT, PackageManager.APK, PackageManager.DNF)


# List file extension -> manager. yum lists are served by the dnf handler.
EXTENSION_MAP: dict[str, PackageManager] = {
    "apt": PackageManager.APT,
    "apk": PackageManager.APK,
    "dnf": PackageManager.DNF,
    "yum": PackageManager.DNF,
    "npm": PackageManager.NPM,
    "pip": PackageManager.PIP,
    "custom": PackageManager.CUSTOM,
}


@dataclass(frozen=True, slots=True)
class PackageSpec:
    """A single package declaration.

    Attributes:
        name: Bare package name used for installed-state checks.
        manager: Package manager responsible for this package.
        version: Optional version constraint (e.g., '==1.2', '1.0-1').
        raw: Install token exactly as written in the list file.
        check_command: Shell command that exits 0 when installed (custom only).
        install_command: Shell command that installs the package (custom only).
        timeout: Install timeout in seconds (custom only).
    """

    name: str
    manager: PackageManager
    version: str | None = None
    raw: str = ""
    check_command: str | None = None
    install_command: str | None = None
    timeout: int = DEFAULT_CUSTOM_TIMEOUT

    def __post_init__(self) -> None:
        """Validate package data after initialization."""
        if not self.name:
            msg = "Package name cannot be empty"
            raise ValueError(msg)
        if self.manager == PackageManager.CUSTOM:
            if not self.check_command or not self.install_command:
                msg = f"Custom package '{self.name}' needs both a check and an install command"
                raise ValueError(msg)
            if self.timeout <= 0:
                msg = f"Custom package '{self.name}' has a non-positive timeout"
                raise ValueError(msg)
        if not self.raw:
            object.__setattr__(self, "raw", self.name)

    @property
    def is_custom(self) -> bool:
        """Check if this is a custom check/install pair."""
        return self.manager == PackageManager.CUSTOM


@dataclass(frozen=True, slots=True)
class PackageBucket:
    """Packages declared in one list file.

    Attributes:
        name: Bucket name (list file stem, e.g., 'base' for base.apt).
        manager: Package manager responsible for the bucket.
        source: Path of the list file.
        specs: Declared packages in file order.
    """

    name: str
    manager: PackageManager
    source: Path
    specs: tuple[PackageSpec, ...]

    @property
    def label(self) -> str:
        """Return the list file name, used in log lines."""
        return self.source.name


def strip_comment(line: str) -> str:
    """Remove an inline '#' comment and surrounding whitespace."""
    return line.split("#", 1)[0].strip()


def split_version(token: str, manager: PackageManager) -> tuple[str, str | None]:
    """Split an install token into bare name and version constraint.

    Args:
        token: Install token as written in the list file.
        manager: Manager whose syntax applies.

    Returns:
        Tuple of (name, version). Version is None when unconstrained.
    """
    if manager == PackageManager.APT:
        name, sep, version = token.partition("=")
        return name, version if sep else None
    if manager == PackageManager.NPM:
        # Scoped packages start with '@', so only a later '@' separates the version
        at = token.find("@", 1)
        if at == -1:
            return token, None
        return token[:at], token[at + 1 :]
    if manager in (PackageManager.PIP, PackageManager.APK):
        pattern = _PIP_SPLIT if manager == PackageManager.PIP else _APK_SPLIT
        match = pattern.search(token)
        if match is None:
            return token, None
        return token[: match.start()], token[match.start() :]
    # dnf accepts name-version tokens that cannot be split reliably
    return token, None


def parse_package_line(line: str, manager: PackageManager) -> PackageSpec | None:
    """Parse one line of a package list file.

    Args:
        line: Raw line from the list file.
        manager: Manager for the list file.

    Returns:
        PackageSpec, or None for blank and comment-only lines.

    Raises:
        ValueError: If the token contains characters not valid in a package name.
    """
    token = strip_comment(line)
    if not token:
        return None
    if not _PACKAGE_TOKEN.match(token):
        msg = f"Invalid package name '{token}'"
        raise ValueError(msg)
    name, version = split_version(token, manager)
    return PackageSpec(name=name, manager=manager, version=version, raw=token)


def parse_custom_line(line: str) -> PackageSpec | None:
    """Parse one line of a ``.custom`` list file.

    Format: ``name|check_command|install_command[|timeout_seconds]``.
    Lines are not comment-stripped inline since commands may contain '#'.

    Args:
        line: Raw line from the list file.

    Returns:
        PackageSpec for the custom manager, or None for blank and comment lines.

    Raises:
        ValueError: If the line does not have the expected fields.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None

    fields = [part.strip() for part in stripped.split("|")]
    if len(fields) not in (3, 4):
        msg = f"Expected 'name|check|install[|timeout]', got '{stripped}'"
        raise ValueError(msg)

    timeout = DEFAULT_CUSTOM_TIMEOUT
    if len(fields) == 4 and fields[3]:
        try:
            timeout = int(fields[3])
        except ValueError:
            msg = f"Invalid timeout '{fields[3]}' for custom package '{fields[0]}'"
            raise ValueError(msg) from None

    return PackageSpec(
        name=fields[0],
        manager=PackageManager.CUSTOM,
        raw=fields[0],
        check_command=fields[1],
        install_command=fields[2],
        timeout=timeout,
    )
