"""Container environment detection.

Detects the distribution, the non-root operator account and the native
package manager. The results are exported to provisioning scripts and
used to decide file ownership and which package buckets apply.
"""

import logging
import pwd
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from confsync.models.package import PackageManager
from confsync.utils.shell import command_exists

logger = logging.getLogger(__name__)

OS_RELEASE_PATH = Path("/etc/os-release")
FALLBACK_USER = "coder"

# Distribution IDs reported as-is; derivatives are mapped through ID_LIKE
_KNOWN_OS_IDS = frozenset(
    {"ubuntu", "debian", "alpine", "fedora", "centos", "rhel", "rocky", "almalinux"}
)

# Shells that mark a system account
_NOLOGIN_SHELLS = ("nologin", "false")


@dataclass(frozen=True, slots=True)
class OperatorAccount:
    """The non-root account that owns files under its home directory.

    Attributes:
        name: Login name.
        uid: User ID, or None if the account does not exist yet.
        gid: Primary group ID, or None if the account does not exist yet.
        home: Home directory.
    """

    name: str
    uid: int | None
    gid: int | None
    home: Path

    def owns(self, path: Path) -> bool:
        """Check if a path lies inside the account's home directory."""
        try:
            path.resolve().relative_to(self.home.resolve())
        except ValueError:
            return False
        return True


@dataclass(frozen=True, slots=True)
class ContainerEnvironment:
    """Detected facts about the running container.

    Attributes:
        os_id: Normalized distribution ID (e.g., 'debian', 'alpine').
        os_version: VERSION_ID from os-release.
        user: Operator account.
        package_manager: Native package manager, or None if none was found.
    """

    os_id: str
    os_version: str
    user: OperatorAccount
    package_manager: PackageManager | None


def parse_os_release(text: str) -> dict[str, str]:
    """Parse os-release KEY=VALUE lines, removing shell quoting."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip().strip("'\"")
    return values


def detect_os(path: Path = OS_RELEASE_PATH) -> tuple[str, str]:
    """Detect the distribution from os-release.

    Derivatives unknown by ID are mapped to 'debian' or 'fedora' through
    ID_LIKE.

    Args:
        path: os-release file to read.

    Returns:
        Tuple of (os_id, os_version). Both are 'unknown' if the file is missing.
    """
    try:
        values = parse_os_release(path.read_text(encoding="utf-8"))
    except OSError:
        logger.warning("Cannot detect OS: %s not readable", path)
        return "unknown", "unknown"

    os_id = values.get("ID", "unknown").lower()
    id_like = values.get("ID_LIKE", "").lower()
    version = values.get("VERSION_ID", "unknown")

    if os_id not in _KNOWN_OS_IDS:
        if "debian" in id_like:
            os_id = "debian"
        elif "rhel" in id_like or "fedora" in id_like:
            os_id = "fedora"

    return os_id, version


def _account_from_entry(entry: pwd.struct_passwd) -> OperatorAccount:
    return OperatorAccount(
        name=entry.pw_name,
        uid=entry.pw_uid,
        gid=entry.pw_gid,
        home=Path(entry.pw_dir),
    )


def lookup_account(name: str) -> OperatorAccount:
    """Look up an account by name.

    Returns:
        OperatorAccount; uid and gid are None when the account does not
        exist, with home defaulting to /home/<name>.
    """
    try:
        return _account_from_entry(pwd.getpwnam(name))
    except KeyError:
        return OperatorAccount(name=name, uid=None, gid=None, home=Path("/home") / name)


def detect_user(
    override: str = "",
    entries: Iterable[pwd.struct_passwd] | None = None,
    home_root: Path = Path("/home"),
) -> OperatorAccount:
    """Detect the operator account.

    Resolution order: configured override; first account with
    1000 <= uid < 65534 and a login shell; first directory under /home;
    'coder'.

    Args:
        override: Configured account name (empty = detect).
        entries: passwd entries to scan (defaults to pwd.getpwall()).
        home_root: Directory scanned for home directories.

    Returns:
        The operator account.
    """
    if override:
        return lookup_account(override)

    for entry in entries if entries is not None else pwd.getpwall():
        if 1000 <= entry.pw_uid < 65534 and not entry.pw_shell.endswith(_NOLOGIN_SHELLS):
            return _account_from_entry(entry)

    try:
        homes = sorted(p.name for p in home_root.iterdir() if p.is_dir())
    except OSError:
        homes = []
    if homes:
        return lookup_account(homes[0])

    return lookup_account(FALLBACK_USER)


def detect_package_manager() -> PackageManager | None:
    """Detect the native package manager (apt-get, apk, dnf, yum in that order)."""
    if command_exists("apt-get"):
        return PackageManager.APT
    if command_exists("apk"):
        return PackageManager.APK
    if command_exists("dnf") or command_exists("yum"):
        return PackageManager.DNF
    logger.warning("No supported package manager found (apt, apk, dnf, yum)")
    return None


def detect_environment(user_override: str = "") -> ContainerEnvironment:
    """Detect all container facts.

    Args:
        user_override: Configured operator account (empty = detect).

    Returns:
        ContainerEnvironment.
    """
    os_id, os_version = detect_os()
    user = detect_user(user_override)
    manager = detect_package_manager()
    logger.info("Detected OS: %s %s", os_id, os_version)
    logger.info("Operator account: %s", user.name)
    return ContainerEnvironment(
        os_id=os_id,
        os_version=os_version,
        user=user,
        package_manager=manager,
    )
