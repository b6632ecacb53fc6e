"""File deployment engine.

Copies managed files from the repository to their targets according to
each file's policy:

- replace: overwrite whenever the target differs from the source
- default: write only if the target does not exist
- backup: like replace, but first copy the old target to
  ``<target>.backup-YYYYMMDD-HHMMSS``
"""

import logging
import os
import shutil
from collections.abc import Callable, Collection
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from tempfile import NamedTemporaryFile

from confsync.core.environment import OperatorAccount
from confsync.models.managed_file import MISSING, FileIssue, FilePolicy, ManagedFile
from confsync.utils.fileio import file_digest

logger = logging.getLogger(__name__)

BACKUP_INFIX = ".backup-"

# Called with a target path right before it is created or overwritten
PreWriteHook = Callable[[Path], None]


@dataclass(frozen=True, slots=True)
class DeployReport:
    """Outcome of the deploy phase.

    Attributes:
        deployed: Targets written.
        skipped: Targets left alone (up to date, or existing under default).
        failed: Files that could not be deployed, with reasons.
        backups: Backup copies created by the backup policy.
        held: Targets not written because they are in conflict.
        planned: Targets that would be written (dry-run).
    """

    deployed: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
    failed: tuple[FileIssue, ...] = ()
    backups: tuple[str, ...] = ()
    held: tuple[str, ...] = ()
    planned: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        """Check if no file failed."""
        return not self.failed


def backup_path_for(target: Path, now: datetime) -> Path:
    """Return an unused timestamped backup path next to target."""
    base = f"{target.name}{BACKUP_INFIX}{now.strftime('%Y%m%d-%H%M%S')}"
    candidate = target.with_name(base)
    counter = 1
    while candidate.exists():
        candidate = target.with_name(f"{base}-{counter}")
        counter += 1
    return candidate


class FileDeployer:
    """Deploys managed files.

    Attributes:
        account: Operator account; targets inside its home are chowned to it.
        before_write: Hook run before any target is written (used by the
            file snapshot backend to preserve prior content).
        dry_run: If True, report what would be written without writing.
    """

    def __init__(
        self,
        account: OperatorAccount | None = None,
        before_write: PreWriteHook | None = None,
        dry_run: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._account = account
        self._before_write = before_write
        self._dry_run = dry_run
        self._clock = clock

    def deploy(
        self,
        files: list[ManagedFile] | tuple[ManagedFile, ...],
        issues: list[FileIssue] | tuple[FileIssue, ...] = (),
        hold: Collection[str] = (),
    ) -> DeployReport:
        """Deploy every managed file.

        Args:
            files: Valid managed files.
            issues: Files rejected at parse time; reported as failed.
            hold: Target paths that must not be written.

        Returns:
            DeployReport.
        """
        deployed: list[str] = []
        skipped: list[str] = []
        failed: list[FileIssue] = list(issues)
        backups: list[str] = []
        held: list[str] = []
        planned: list[str] = []

        for managed in files:
            target = str(managed.target)
            if target in hold:
                logger.warning("Holding %s: in conflict, local content kept", target)
                held.append(target)
                continue

            try:
                action, backup = self._deploy_one(managed)
            except OSError as e:
                logger.error("Failed to deploy %s -> %s: %s", managed.name, target, e)
                failed.append(FileIssue(name=managed.name, reason=str(e)))
                continue

            if action == "deployed":
                deployed.append(target)
            elif action == "planned":
                planned.append(target)
            else:
                skipped.append(target)
            if backup is not None:
                backups.append(str(backup))

        report = DeployReport(
            deployed=tuple(deployed),
            skipped=tuple(skipped),
            failed=tuple(failed),
            backups=tuple(backups),
            held=tuple(held),
            planned=tuple(planned),
        )
        logger.info(
            "Files: %d deployed, %d unchanged, %d failed, %d held",
            len(report.deployed),
            len(report.skipped),
            len(report.failed),
            len(report.held),
        )
        return report

    def _deploy_one(self, managed: ManagedFile) -> tuple[str, Path | None]:
        """Deploy one file.

        Returns:
            Tuple of (action, backup path). Action is 'deployed', 'skipped'
            or 'planned'.

        Raises:
            OSError: If the target cannot be written.
        """
        target = managed.target
        current = file_digest(target)

        if managed.policy == FilePolicy.DEFAULT and current != MISSING:
            logger.debug("[default] %s exists; left untouched", target)
            return "skipped", None
        if current == managed.digest:
            logger.debug("[%s] %s up to date", managed.policy.value, target)
            return "skipped", None

        if self._dry_run:
            logger.info("[%s] Would write %s", managed.policy.value, target)
            return "planned", None

        target.parent.mkdir(parents=True, exist_ok=True)
        if self._before_write is not None:
            self._before_write(target)

        backup: Path | None = None
        if managed.policy == FilePolicy.BACKUP and current != MISSING:
            backup = backup_path_for(target, self._clock())
            shutil.copy2(target, backup)
            logger.info("[backup] Saved %s -> %s", target, backup)

        self._write(managed, target)
        self._fix_ownership(target)
        logger.info("[%s] Deployed %s -> %s", managed.policy.value, managed.name, target)
        return "deployed", backup

    def _write(self, managed: ManagedFile, target: Path) -> None:
        """Replace the target atomically.

        An existing target keeps its mode and ownership; a new target takes
        the permission bits of the repository file.
        """
        try:
            old = target.stat()
        except FileNotFoundError:
            old = None

        mode = (old.st_mode if old is not None else managed.source.stat().st_mode) & 0o7777

        tmp_path: Path | None = None
        try:
            with NamedTemporaryFile(
                mode="wb",
                dir=target.parent,
                prefix=f".{target.name}.",
                delete=False,
            ) as f:
                tmp_path = Path(f.name)
                f.write(managed.content)
            os.chmod(tmp_path, mode)
            if old is not None and os.geteuid() == 0:
                os.chown(tmp_path, old.st_uid, old.st_gid)
            os.replace(tmp_path, target)
        except OSError:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise

    def _fix_ownership(self, target: Path) -> None:
        """Give targets inside the operator's home to the operator."""
        account = self._account
        if account is None or account.uid is None or account.gid is None:
            return
        if not account.owns(target):
            return
        try:
            os.chown(target, account.uid, account.gid)
        except PermissionError:
            logger.warning("Cannot chown %s to %s: permission denied", target, account.name)
