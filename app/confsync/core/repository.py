"""Configuration repository access.

Keeps the local clone in sync with the tracked branch and parses the
repository layout into first-class records:

- ``packages/<bucket>.<ext>``: one package per line
- ``scripts/``: provisioning scripts, ordered by numeric prefix
- ``files/<name>`` with ``<name>.path`` and optional ``<name>.policy`` sidecars
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from confsync.core.config import RepositoryConfig
from confsync.core.errors import ConfsyncError
from confsync.core.scripts import discover_scripts
from confsync.models.managed_file import FileIssue, FilePolicy, ManagedFile
from confsync.models.package import (
    EXTENSION_MAP,
    PackageBucket,
    PackageManager,
    PackageSpec,
    parse_custom_line,
    parse_package_line,
)
from confsync.utils.fileio import sha256_bytes
from confsync.utils.shell import CommandResult, run_command

logger = logging.getLogger(__name__)

PATH_SUFFIX = ".path"
POLICY_SUFFIX = ".policy"
DEFAULT_POLICY = FilePolicy.DEFAULT

# Timeout for git network operations (5 minutes)
_GIT_TIMEOUT: float = 300.0


class RepositoryError(ConfsyncError):
    """Raised when the configuration repository cannot be made available."""


@dataclass(frozen=True, slots=True)
class ConfigSource:
    """The configuration repository and its local clone.

    Attributes:
        url: Remote URL. Empty means the clone is managed externally.
        branch: Tracked branch.
        path: Local clone directory.
        configs_subdir: Directory inside the clone with the managed layout.
    """

    url: str
    branch: str
    path: Path
    configs_subdir: str = ""

    @property
    def configs_dir(self) -> Path:
        """Directory holding packages/, scripts/ and files/."""
        return self.path / self.configs_subdir if self.configs_subdir else self.path

    @classmethod
    def from_config(cls, config: RepositoryConfig) -> "ConfigSource":
        """Build a ConfigSource from the repository section of the config."""
        return cls(
            url=config.url,
            branch=config.branch,
            path=config.path,
            configs_subdir=config.configs_subdir,
        )


@dataclass(frozen=True, slots=True)
class PullResult:
    """Outcome of updating the local clone.

    Attributes:
        commit: HEAD commit after the update, if it could be read.
        cached: True if the remote was unreachable and the existing clone was used.
    """

    commit: str | None
    cached: bool = False


@dataclass(frozen=True, slots=True)
class RepositoryContents:
    """Everything the repository declares, parsed once per run.

    Attributes:
        files: Valid managed files.
        file_issues: Files skipped because of missing or invalid sidecars.
        buckets: Package buckets in list file order.
        package_issues: Invalid package lines and unknown list extensions.
        scripts: Provisioning scripts in execution order.
    """

    files: tuple[ManagedFile, ...] = ()
    file_issues: tuple[FileIssue, ...] = ()
    buckets: tuple[PackageBucket, ...] = ()
    package_issues: tuple[str, ...] = ()
    scripts: tuple[Path, ...] = ()


def _git(args: list[str], cwd: Path | None = None) -> CommandResult:
    """Run a git command, folding launch errors into a failed result."""
    try:
        return run_command(
            ["git", *args],
            timeout=_GIT_TIMEOUT,
            cwd=str(cwd) if cwd else None,
            env={"GIT_TERMINAL_PROMPT": "0"},
        )
    except subprocess.TimeoutExpired:
        return CommandResult(stdout="", stderr=f"git {args[0]} timed out", returncode=124)
    except FileNotFoundError:
        return CommandResult(stdout="", stderr="git is not installed", returncode=127)


def _head_commit(path: Path) -> str | None:
    result = _git(["rev-parse", "HEAD"], cwd=path)
    if not result.success:
        return None
    return result.stdout.strip() or None


def pull_repository(source: ConfigSource) -> PullResult:
    """Clone or update the local clone to the tip of the tracked branch.

    A shallow clone is made on first use. Later runs fetch the branch and
    hard-reset to it, discarding any local edits in the clone. When the
    fetch fails but a clone exists, the cached state is used.

    Args:
        source: Repository to sync.

    Returns:
        PullResult with the resulting HEAD commit.

    Raises:
        RepositoryError: If no usable clone exists afterwards.
    """
    has_clone = (source.path / ".git").exists()

    if not source.url:
        if not source.path.is_dir():
            msg = f"No repository URL configured and {source.path} does not exist"
            raise RepositoryError(msg)
        logger.info("No repository URL configured; using %s as-is", source.path)
        return PullResult(commit=_head_commit(source.path) if has_clone else None)

    if not has_clone:
        logger.info("Cloning %s (branch %s) into %s", source.url, source.branch, source.path)
        source.path.parent.mkdir(parents=True, exist_ok=True)
        result = _git(
            ["clone", "--depth", "1", "--branch", source.branch, source.url, str(source.path)]
        )
        if not result.success:
            msg = f"Failed to clone {source.url}: {result.stderr.strip()}"
            raise RepositoryError(msg)
        return PullResult(commit=_head_commit(source.path))

    logger.info("Fetching %s (branch %s)", source.url, source.branch)
    fetch = _git(["fetch", "--depth", "1", "origin", source.branch], cwd=source.path)
    if not fetch.success:
        logger.warning(
            "Fetch failed, continuing with cached clone at %s: %s",
            source.path,
            fetch.stderr.strip(),
        )
        return PullResult(commit=_head_commit(source.path), cached=True)

    reset = _git(["reset", "--hard", f"origin/{source.branch}"], cwd=source.path)
    if not reset.success:
        msg = f"Failed to reset clone to origin/{source.branch}: {reset.stderr.strip()}"
        raise RepositoryError(msg)

    commit = _head_commit(source.path)
    logger.info("Repository at %s", commit[:12] if commit else "unknown commit")
    return PullResult(commit=commit)


def _read_sidecar(path: Path) -> str | None:
    """Return the first line of a sidecar file, stripped, or None if absent."""
    if not path.is_file():
        return None
    lines = path.read_text(encoding="utf-8").splitlines()
    return lines[0].strip() if lines else ""


def parse_managed_file(source: Path) -> ManagedFile | FileIssue:
    """Parse one file and its sidecars.

    Args:
        source: File inside files/.

    Returns:
        ManagedFile, or FileIssue when the sidecar metadata is unusable.
    """
    name = source.name

    target_dir = _read_sidecar(source.with_name(name + PATH_SUFFIX))
    if target_dir is None:
        return FileIssue(name=name, reason=f"missing {name}{PATH_SUFFIX} sidecar")
    if not target_dir:
        return FileIssue(name=name, reason=f"empty {name}{PATH_SUFFIX} sidecar")
    if not target_dir.startswith("/"):
        return FileIssue(name=name, reason=f"target directory is not absolute: {target_dir}")

    raw_policy = _read_sidecar(source.with_name(name + POLICY_SUFFIX))
    if raw_policy is None or not raw_policy:
        logger.warning("No policy for %s, using '%s'", name, DEFAULT_POLICY.value)
        policy = DEFAULT_POLICY
    else:
        try:
            policy = FilePolicy(raw_policy.lower())
        except ValueError:
            return FileIssue(
                name=name,
                reason=f"invalid policy '{raw_policy}' (expected replace, default or backup)",
            )

    content = source.read_bytes()
    return ManagedFile(
        name=name,
        source=source,
        target=Path(target_dir) / name,
        policy=policy,
        content=content,
        digest=sha256_bytes(content),
    )


def load_managed_files(files_dir: Path) -> tuple[list[ManagedFile], list[FileIssue]]:
    """Parse every managed file in a files/ directory.

    Args:
        files_dir: The repository's files/ directory.

    Returns:
        Tuple of (valid files, issues), both in name order.
    """
    files: list[ManagedFile] = []
    issues: list[FileIssue] = []
    if not files_dir.is_dir():
        return files, issues

    targets: dict[Path, str] = {}
    for entry in sorted(files_dir.iterdir()):
        if not entry.is_file() or entry.name.endswith((PATH_SUFFIX, POLICY_SUFFIX)):
            continue

        try:
            parsed = parse_managed_file(entry)
        except (OSError, UnicodeDecodeError) as e:
            parsed = FileIssue(name=entry.name, reason=f"cannot read: {e}")

        if isinstance(parsed, ManagedFile) and parsed.target in targets:
            parsed = FileIssue(
                name=entry.name,
                reason=f"target {parsed.target} already managed by {targets[parsed.target]}",
            )

        if isinstance(parsed, FileIssue):
            logger.error("Skipping %s: %s", parsed.name, parsed.reason)
            issues.append(parsed)
        else:
            targets[parsed.target] = parsed.name
            files.append(parsed)

    return files, issues


def parse_bucket(list_file: Path, manager: PackageManager) -> tuple[PackageBucket, list[str]]:
    """Parse one package list file.

    Args:
        list_file: The list file.
        manager: Manager selected by the file extension.

    Returns:
        Tuple of (bucket, issues). Invalid lines are skipped and reported.
    """
    specs: list[PackageSpec] = []
    issues: list[str] = []
    text = list_file.read_text(encoding="utf-8")

    for line_num, line in enumerate(text.splitlines(), start=1):
        try:
            if manager == PackageManager.CUSTOM:
                spec = parse_custom_line(line)
            else:
                spec = parse_package_line(line, manager)
        except ValueError as e:
            issue = f"{list_file.name}:{line_num}: {e}"
            logger.warning("Skipping package line %s", issue)
            issues.append(issue)
            continue
        if spec is not None:
            specs.append(spec)

    bucket = PackageBucket(
        name=list_file.stem,
        manager=manager,
        source=list_file,
        specs=tuple(specs),
    )
    return bucket, issues


def load_package_buckets(packages_dir: Path) -> tuple[list[PackageBucket], list[str]]:
    """Parse every package list in a packages/ directory.

    Args:
        packages_dir: The repository's packages/ directory.

    Returns:
        Tuple of (buckets in file name order, issues).
    """
    buckets: list[PackageBucket] = []
    issues: list[str] = []
    if not packages_dir.is_dir():
        return buckets, issues

    for entry in sorted(packages_dir.iterdir()):
        if not entry.is_file() or entry.name.startswith("."):
            continue
        manager = EXTENSION_MAP.get(entry.suffix.lstrip(".").lower())
        if manager is None:
            logger.warning("Ignoring %s: unknown package list extension", entry.name)
            issues.append(f"{entry.name}: unknown package list extension")
            continue
        try:
            bucket, bucket_issues = parse_bucket(entry, manager)
        except (OSError, UnicodeDecodeError) as e:
            issues.append(f"{entry.name}: cannot read: {e}")
            continue
        buckets.append(bucket)
        issues.extend(bucket_issues)

    return buckets, issues


def load_repository(configs_dir: Path) -> RepositoryContents:
    """Parse the whole repository layout.

    Args:
        configs_dir: Directory holding packages/, scripts/ and files/.

    Returns:
        RepositoryContents.

    Raises:
        RepositoryError: If configs_dir does not exist.
    """
    if not configs_dir.is_dir():
        msg = f"Configuration directory not found: {configs_dir}"
        raise RepositoryError(msg)

    files, file_issues = load_managed_files(configs_dir / "files")
    buckets, package_issues = load_package_buckets(configs_dir / "packages")
    scripts = discover_scripts(configs_dir / "scripts")

    logger.info(
        "Repository declares %d file(s), %d package list(s), %d script(s)",
        len(files),
        len(buckets),
        len(scripts),
    )
    return RepositoryContents(
        files=tuple(files),
        file_issues=tuple(file_issues),
        buckets=tuple(buckets),
        package_issues=tuple(package_issues),
        scripts=tuple(scripts),
    )
