"""Package phase driver.

Runs every declared bucket through its handler. Index refreshes happen at
most once per manager per run and only when something needs installing.
A failing bucket never stops the others: package failures are soft.
"""

import logging
import subprocess
from dataclasses import dataclass

from confsync.handlers.base import BatchResult
from confsync.handlers.registry import HandlerRegistry
from confsync.models.package import PackageBucket, PackageManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BucketReport:
    """Outcome of one bucket.

    Attributes:
        bucket: List file name (e.g., 'base.apt').
        manager: Package manager of the bucket.
        declared: Number of packages declared.
        already_installed: Number found installed before the batch.
        installed: Packages installed by this run.
        failed: Packages that could not be installed.
        planned: Packages that would be installed (dry-run).
        skipped_reason: Why the bucket was not processed, if it was not.
        error: Error message of a failed install or refresh.
    """

    bucket: str
    manager: PackageManager
    declared: int = 0
    already_installed: int = 0
    installed: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    planned: tuple[str, ...] = ()
    skipped_reason: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        """Check if no package in the bucket failed."""
        return not self.failed


@dataclass(frozen=True, slots=True)
class PackageReport:
    """Outcome of the package phase."""

    buckets: tuple[BucketReport, ...] = ()

    @property
    def installed_count(self) -> int:
        """Total packages installed."""
        return sum(len(b.installed) for b in self.buckets)

    @property
    def failed_count(self) -> int:
        """Total packages that failed."""
        return sum(len(b.failed) for b in self.buckets)

    @property
    def planned_count(self) -> int:
        """Total packages that would be installed (dry-run)."""
        return sum(len(b.planned) for b in self.buckets)

    def errors(self) -> list[str]:
        """Return one message per failed bucket."""
        return [
            f"{b.bucket}: {', '.join(b.failed)} ({b.error or 'install failed'})"
            for b in self.buckets
            if b.failed
        ]


class PackageInstaller:
    """Installs declared package buckets through the handler registry.

    Attributes:
        registry: Handlers by manager.
        native_manager: The container's distribution package manager.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        native_manager: PackageManager | None,
        dry_run: bool = False,
    ) -> None:
        self._registry = registry
        self._native = native_manager
        self._dry_run = dry_run
        self._refreshed: dict[PackageManager, bool] = {}

    def install(self, buckets: list[PackageBucket] | tuple[PackageBucket, ...]) -> PackageReport:
        """Process all buckets in order.

        Args:
            buckets: Buckets parsed from the repository.

        Returns:
            PackageReport with one entry per bucket.
        """
        reports = [self._install_bucket(bucket) for bucket in buckets]
        report = PackageReport(buckets=tuple(reports))
        logger.info(
            "Packages: %d installed, %d failed, %d bucket(s)",
            report.installed_count,
            report.failed_count,
            len(reports),
        )
        return report

    def _skip_reason(self, bucket: PackageBucket) -> str | None:
        if bucket.manager not in self._registry:
            return f"no handler for {bucket.manager.value}"
        if bucket.manager.is_native and bucket.manager != self._native:
            return f"{bucket.manager.value} is not this container's package manager"
        if not self._registry.get(bucket.manager).is_available():
            return f"{bucket.manager.value} is not available"
        return None

    def _install_bucket(self, bucket: PackageBucket) -> BucketReport:
        declared = len(bucket.specs)
        reason = self._skip_reason(bucket)
        if reason is not None:
            logger.info("Skipping %s: %s", bucket.label, reason)
            return BucketReport(
                bucket=bucket.label,
                manager=bucket.manager,
                declared=declared,
                skipped_reason=reason,
            )

        handler = self._registry.get(bucket.manager)
        names = tuple(spec.name for spec in bucket.specs)

        try:
            pending = handler.pending(bucket.specs)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error("Cannot check installed state for %s: %s", bucket.label, e)
            return BucketReport(
                bucket=bucket.label,
                manager=bucket.manager,
                declared=declared,
                failed=names,
                error=str(e),
            )

        already = declared - len(pending)
        if not pending:
            logger.debug("%s: all %d package(s) already installed", bucket.label, declared)
            return BucketReport(
                bucket=bucket.label,
                manager=bucket.manager,
                declared=declared,
                already_installed=already,
            )

        if handler.needs_index_refresh and not self._dry_run:
            if bucket.manager not in self._refreshed:
                try:
                    self._refreshed[bucket.manager] = handler.refresh_index()
                except (OSError, subprocess.TimeoutExpired) as e:
                    logger.error("Index refresh for %s failed: %s", bucket.manager.value, e)
                    self._refreshed[bucket.manager] = False
            if not self._refreshed[bucket.manager]:
                return BucketReport(
                    bucket=bucket.label,
                    manager=bucket.manager,
                    declared=declared,
                    already_installed=already,
                    failed=tuple(spec.name for spec in pending),
                    error=f"{bucket.manager.value} index refresh failed",
                )

        try:
            result = handler.install_batch(pending)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error("Install for %s failed: %s", bucket.label, e)
            result = BatchResult(
                manager=bucket.manager,
                failed=tuple(spec.name for spec in pending),
                error=str(e),
            )

        return BucketReport(
            bucket=bucket.label,
            manager=bucket.manager,
            declared=declared,
            already_installed=already,
            installed=result.installed,
            failed=result.failed,
            planned=result.planned,
            error=result.error,
        )
