"""Sync orchestrator.

Sequences one sync run under the single-writer lock:

    repository -> snapshot -> discover -> scripts -> packages -> files
    -> conflicts -> commit

Phases are not transactional. A fatal error stops the pipeline and leaves
whatever earlier phases changed in place; recovery is an explicit
``restore`` of the pre-sync snapshot. Conflicts are a terminal outcome,
not an error: the conflicting targets are left as the operator edited
them, the marker is written and the snapshot is kept.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from confsync import __version__
from confsync.core.checksums import ChecksumStore, ConflictDetector, capture_state
from confsync.core.config import EngineConfig
from confsync.core.deploy import DeployReport, FileDeployer
from confsync.core.environment import ContainerEnvironment, detect_environment
from confsync.core.errors import ConfsyncError
from confsync.core.events import EventEmitter
from confsync.core.lock import SyncLock
from confsync.core.packages import PackageInstaller, PackageReport
from confsync.core.repository import ConfigSource, load_repository, pull_repository
from confsync.core.scripts import ScriptFailedError, ScriptReport, ScriptRunner
from confsync.core.state import EngineState, StatusReport
from confsync.handlers.registry import HandlerRegistry, default_registry
from confsync.models.checksum import ConflictMarker, ConflictRecord
from confsync.models.event import Phase
from confsync.models.run import ErrorCategory, SyncError, SyncOutcome, SyncRun
from confsync.models.snapshot import Snapshot
from confsync.snapshots.base import SnapshotError
from confsync.snapshots.manager import SnapshotManager

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds")


@dataclass(frozen=True, slots=True)
class SyncOptions:
    """Switches for one sync run.

    Attributes:
        dry_run: Discover and check only; change nothing on disk.
        pull: Update the local clone before reading it.
    """

    dry_run: bool = False
    pull: bool = True


@dataclass(frozen=True, slots=True)
class SyncResult:
    """Outcome of one sync run.

    Attributes:
        outcome: success, conflict or failed.
        run: The recorded run (also built for dry runs, which are not recorded).
        conflicts: Divergent files, if the outcome is conflict.
        errors: Fatal and soft errors reported by the phases.
        scripts: Script phase report, if the phase ran.
        packages: Package phase report, if the phase ran.
        files: Deploy phase report, if the phase ran.
        snapshot: Pre-sync snapshot, if one was taken.
        dry_run: True if nothing was changed on disk.
    """

    outcome: SyncOutcome
    run: SyncRun
    conflicts: tuple[ConflictRecord, ...] = ()
    errors: tuple[SyncError, ...] = ()
    scripts: ScriptReport | None = None
    packages: PackageReport | None = None
    files: DeployReport | None = None
    snapshot: Snapshot | None = None
    dry_run: bool = False

    @property
    def fatal_error(self) -> SyncError | None:
        """Return the error that stopped the run, if any."""
        for error in self.errors:
            if error.category == ErrorCategory.FATAL:
                return error
        return None


@dataclass(frozen=True, slots=True)
class EngineStatus:
    """Engine condition plus the snapshot inventory."""

    report: StatusReport
    snapshots: tuple[Snapshot, ...]


class _RunContext:
    """Mutable bookkeeping for one run; folded into a SyncResult at the end."""

    def __init__(self, run_id: int, dry_run: bool) -> None:
        self.run_id = run_id
        self.dry_run = dry_run
        self.started = _now()
        self.phase = Phase.LOCK
        self.first_run = False
        self.commit: str | None = None
        self.snapshot: Snapshot | None = None
        self.errors: list[SyncError] = []
        self.conflicts: list[ConflictRecord] = []
        self.scripts: ScriptReport | None = None
        self.packages: PackageReport | None = None
        self.files: DeployReport | None = None

    def soft(self, message: str) -> None:
        self.errors.append(SyncError(ErrorCategory.SOFT, self.phase.value, message))

    def fatal(self, message: str) -> None:
        self.errors.append(SyncError(ErrorCategory.FATAL, self.phase.value, message))

    def stats(self) -> dict[str, int]:
        stats: dict[str, int] = {}
        if self.scripts is not None:
            stats["scripts_executed"] = len(self.scripts.executed)
        if self.packages is not None:
            stats["packages_installed"] = self.packages.installed_count
            stats["packages_failed"] = self.packages.failed_count
        if self.files is not None:
            stats["files_deployed"] = len(self.files.deployed)
            stats["files_skipped"] = len(self.files.skipped)
            stats["files_failed"] = len(self.files.failed)
            stats["backups_created"] = len(self.files.backups)
        stats["conflicts"] = len(self.conflicts)
        return stats


class SyncEngine:
    """Runs the sync pipeline and the operator actions around it.

    Every mutating entry point (run_sync, restore, resolve) holds the
    single-writer lock for its whole duration.

    Example:
        >>> engine = SyncEngine(load_config())
        >>> result = engine.run_sync(SyncOptions(dry_run=True))
        >>> result.outcome
        <SyncOutcome.SUCCESS: 'success'>
    """

    def __init__(
        self,
        config: EngineConfig,
        registry: HandlerRegistry | None = None,
        environment: ContainerEnvironment | None = None,
        snapshots: SnapshotManager | None = None,
        events: EventEmitter | None = None,
    ) -> None:
        self._config = config
        self._paths = config.paths
        self._state = EngineState(self._paths)
        self._checksums = ChecksumStore(self._paths)
        self._registry = registry
        self._environment = environment
        self._snapshots = snapshots or SnapshotManager(config.snapshots, self._state)
        self._events = events or EventEmitter(self._paths.events)
        self._lock = SyncLock(config.engine.lock_file)
        self._source = ConfigSource.from_config(config.repository)

    @property
    def state(self) -> EngineState:
        """Persisted engine state."""
        return self._state

    @property
    def snapshots(self) -> SnapshotManager:
        """Snapshot manager used by this engine."""
        return self._snapshots

    # Sync

    def run_sync(self, options: SyncOptions | None = None) -> SyncResult:
        """Run the pipeline once.

        Args:
            options: Run switches (defaults to a full, pulling sync).

        Returns:
            SyncResult. Fatal pipeline errors are folded into a failed result.

        Raises:
            SyncAlreadyRunningError: If another run holds the lock.
        """
        options = options or SyncOptions()
        with self._lock:
            self._paths.ensure()
            ctx = _RunContext(self._state.next_run_id(), options.dry_run)
            self._emit(ctx, Phase.LOCK, f"Sync run {ctx.run_id} started")
            try:
                outcome = self._pipeline(ctx, options)
            except (ConfsyncError, OSError) as e:
                logger.error("Sync failed during %s: %s", ctx.phase.value, e)
                ctx.fatal(str(e))
                self._emit(ctx, ctx.phase, str(e), level="error")
                outcome = SyncOutcome.FAILED
            return self._finish(ctx, outcome)

    def _pipeline(self, ctx: _RunContext, options: SyncOptions) -> SyncOutcome:
        # Repository
        self._emit(ctx, Phase.REPOSITORY, f"Updating {self._source.path}")
        if options.pull and not options.dry_run:
            pulled = pull_repository(self._source)
            ctx.commit = pulled.commit
            if pulled.cached:
                ctx.soft("Remote unreachable; synced from cached clone")
        else:
            logger.info("Skipping repository update")

        ctx.first_run = not self._checksums.has_baseline()
        if ctx.first_run:
            logger.info("No checksum baseline found; this is a first run")

        environment = self._environment or detect_environment(self._config.container.user)

        # Snapshot
        if options.dry_run:
            self._emit(ctx, Phase.SNAPSHOT, "Dry run: no snapshot")
        else:
            self._emit(ctx, Phase.SNAPSHOT, "Taking pre-sync snapshot")
            ctx.snapshot = self._snapshots.create_snapshot()

        # Discover
        self._emit(ctx, Phase.DISCOVER, "Reading repository layout")
        contents = load_repository(self._source.configs_dir)
        for issue in contents.file_issues:
            ctx.soft(f"{issue.name}: {issue.reason}")
        for message in contents.package_issues:
            ctx.soft(message)

        previous = self._checksums.load_previous()
        current = capture_state(contents.files)
        ctx.conflicts = ConflictDetector().check(contents.files, previous, current)

        # Scripts
        self._emit(ctx, Phase.SCRIPTS, f"Running {len(contents.scripts)} script(s)")
        runner = ScriptRunner(
            self._script_env(ctx, environment),
            self._paths.helpers,
            dry_run=options.dry_run,
        )
        try:
            ctx.scripts = runner.run(contents.scripts)
        except ScriptFailedError as e:
            ctx.scripts = e.report
            raise

        # Packages
        self._emit(ctx, Phase.PACKAGES, f"Processing {len(contents.buckets)} package list(s)")
        registry = self._registry or default_registry(dry_run=options.dry_run)
        installer = PackageInstaller(registry, environment.package_manager, options.dry_run)
        ctx.packages = installer.install(contents.buckets)
        for message in ctx.packages.errors():
            ctx.soft(message)

        # Files
        self._emit(ctx, Phase.FILES, f"Deploying {len(contents.files)} file(s)")
        deployer = FileDeployer(
            account=environment.user,
            before_write=self._snapshots.preserve,
            dry_run=options.dry_run,
        )
        ctx.files = deployer.deploy(
            contents.files,
            contents.file_issues,
            hold={c.target for c in ctx.conflicts},
        )
        for issue in ctx.files.failed[len(contents.file_issues) :]:
            ctx.soft(f"{issue.name}: {issue.reason}")

        # Conflicts
        if ctx.conflicts:
            self._emit(
                ctx,
                Phase.CONFLICTS,
                f"{len(ctx.conflicts)} conflict(s) need operator review",
                level="warning",
            )
            if not options.dry_run:
                self._checksums.save_current(current)
                self._state.write_conflict(
                    ConflictMarker(
                        detected=_now(),
                        run_id=ctx.run_id,
                        snapshot=ctx.snapshot.name if ctx.snapshot else None,
                        conflicts=tuple(ctx.conflicts),
                    )
                )
            return SyncOutcome.CONFLICT
        self._emit(ctx, Phase.CONFLICTS, "No conflicts")

        # Commit
        if options.dry_run:
            self._emit(ctx, Phase.COMMIT, "Dry run: nothing committed")
            return SyncOutcome.SUCCESS

        self._emit(ctx, Phase.COMMIT, "Recording checksums")
        self._checksums.commit(contents.files)
        self._checksums.clear_current()
        self._state.write_last_sync(_now())
        try:
            self._snapshots.prune()
        except (SnapshotError, OSError) as e:
            ctx.soft(f"Snapshot pruning failed: {e}")
        return SyncOutcome.SUCCESS

    def _finish(self, ctx: _RunContext, outcome: SyncOutcome) -> SyncResult:
        run = SyncRun(
            run_id=ctx.run_id,
            started=ctx.started,
            finished=_now(),
            outcome=outcome,
            first_run=ctx.first_run,
            snapshot=ctx.snapshot.name if ctx.snapshot else None,
            commit=ctx.commit,
            stats=ctx.stats(),
            errors=tuple(ctx.errors),
        )
        if ctx.dry_run:
            logger.info("Dry run complete; run not recorded")
        else:
            try:
                self._state.record_run(run)
            except (OSError, RuntimeError) as e:
                logger.error("Cannot record run %d: %s", run.run_id, e)

        level = "info" if outcome == SyncOutcome.SUCCESS else "error"
        if outcome == SyncOutcome.CONFLICT:
            level = "warning"
        self._emit(ctx, Phase.DONE, f"Sync run {run.run_id} finished: {outcome.value}", level=level)

        return SyncResult(
            outcome=outcome,
            run=run,
            conflicts=tuple(ctx.conflicts),
            errors=tuple(ctx.errors),
            scripts=ctx.scripts,
            packages=ctx.packages,
            files=ctx.files,
            snapshot=ctx.snapshot,
            dry_run=ctx.dry_run,
        )

    def _emit(self, ctx: _RunContext, phase: Phase, message: str, level: str = "info") -> None:
        ctx.phase = phase
        self._events.emit(phase, message, level=level)

    def _script_env(self, ctx: _RunContext, environment: ContainerEnvironment) -> dict[str, str]:
        """Variables exported to every provisioning script."""
        manager = environment.package_manager
        return {
            "CONTAINER_OS": environment.os_id,
            "CONTAINER_OS_VERSION": environment.os_version,
            "CONTAINER_USER": environment.user.name,
            "CONFSYNC_FIRST_RUN": "true" if ctx.first_run else "false",
            "CONFSYNC_VERSION": __version__,
            "CONFSYNC_ROOT": str(self._source.configs_dir),
            "CONFSYNC_REPO": str(self._source.path),
            "CONFSYNC_LOG": str(self._paths.sync_log),
            "CONFSYNC_PKG_MGR": manager.value if manager else "",
            "CONFSYNC_HELPERS": str(self._paths.helpers),
        }

    # Operator actions

    def status(self) -> EngineStatus:
        """Report the engine condition from persisted state only.

        Raises:
            StateError: If the conflict marker is unreadable.
        """
        return EngineStatus(
            report=self._state.status(),
            snapshots=tuple(self._snapshots.list_snapshots()),
        )

    def restore(self, ref: str) -> Snapshot:
        """Roll back to a recorded snapshot and close any open conflict.

        Raises:
            SyncAlreadyRunningError: If another run holds the lock.
            SnapshotNotFoundError: If the reference matches no snapshot.
            SnapshotError: If the rollback fails.
        """
        with self._lock:
            return self._snapshots.restore(ref)

    def resolve(self) -> ConflictMarker | None:
        """Accept the on-disk state of all managed files as the new baseline.

        The repository is read from the local clone as it is; no pull.

        Returns:
            The resolved conflict marker, or None if none was open.

        Raises:
            SyncAlreadyRunningError: If another run holds the lock.
            RepositoryError: If the configuration directory is missing.
        """
        with self._lock:
            contents = load_repository(self._source.configs_dir)
            return self._snapshots.resolve(contents.files)
