"""Fan-out/fan-in driver for resolve, fetch and install."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Protocol

from filtersync.errors import FilterSyncError
from filtersync.install import Contribution, Installer
from filtersync.models import (
    FetchOutcome,
    ResolvedReference,
    SourceDescriptor,
    SourceResult,
    SourceStatus,
    SyncReport,
)
from filtersync.sources import BUILTIN_SOURCES, expand_builtin

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4
MAX_WORKERS_LIMIT = 8


class Resolver(Protocol):
    def resolve(self, descriptor: SourceDescriptor) -> ResolvedReference: ...


class Fetcher(Protocol):
    def fetch_filters(self, resolved: ResolvedReference) -> dict[str, bytes]: ...


@dataclass(frozen=True, slots=True)
class _Prepared:
    descriptor: SourceDescriptor
    outcome: FetchOutcome
    resolved: ResolvedReference | None = None


class SyncOrchestrator:
    """Drive every descriptor through resolve, fetch and install.

    Network work runs on a bounded thread pool. Results are gathered in
    command-line order, so merged destinations never depend on which download
    finished first.
    """

    def __init__(
        self,
        resolver: Resolver,
        fetcher: Fetcher,
        installer: Installer,
        *,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        self.resolver = resolver
        self.fetcher = fetcher
        self.installer = installer
        self.max_workers = max(1, min(max_workers, MAX_WORKERS_LIMIT))

    def run(self, descriptors: Sequence[SourceDescriptor]) -> SyncReport:
        if not descriptors:
            logger.info("no sources requested")
            return SyncReport()

        prepared = self._gather(_unique(descriptors))
        install_errors = self.installer.install(
            [
                Contribution(
                    key=item.descriptor.key,
                    version_id=item.resolved.version_id if item.resolved else None,
                    files=item.outcome.files if item.outcome.kind == "fresh" else None,
                )
                for item in prepared
            ]
        )

        report = SyncReport(results=[self._classify(item, install_errors) for item in prepared])
        for result in report.results:
            log_result(result)
        return report

    def _gather(self, descriptors: Sequence[SourceDescriptor]) -> list[_Prepared]:
        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(descriptors)),
            thread_name_prefix="filtersync",
        )
        try:
            futures = [executor.submit(self._prepare, descriptor) for descriptor in descriptors]
            prepared = [future.result() for future in futures]
        except BaseException:
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return prepared

    def _prepare(self, descriptor: SourceDescriptor) -> _Prepared:
        try:
            resolved = self.resolver.resolve(descriptor)
        except FilterSyncError as exc:
            return _Prepared(descriptor=descriptor, outcome=FetchOutcome.failed(exc))

        logger.info(
            "updating %s which has version %s...",
            descriptor.key,
            self.installer.installed_version(descriptor.key) or "none",
        )
        if self.installer.is_current(descriptor.key, resolved.version_id):
            logger.info("%s is up to date at %s", descriptor.key, resolved.version_id)
            return _Prepared(
                descriptor=descriptor,
                outcome=FetchOutcome.cached(),
                resolved=resolved,
            )

        try:
            files = self.fetcher.fetch_filters(resolved)
        except FilterSyncError as exc:
            return _Prepared(
                descriptor=descriptor,
                outcome=FetchOutcome.failed(exc),
                resolved=resolved,
            )
        return _Prepared(
            descriptor=descriptor,
            outcome=FetchOutcome.fresh(files),
            resolved=resolved,
        )

    def _classify(
        self,
        item: _Prepared,
        install_errors: Mapping[str, FilterSyncError],
    ) -> SourceResult:
        key = item.descriptor.key
        error = item.outcome.error or install_errors.get(key)
        version_id = item.resolved.version_id if item.resolved else None
        notes = item.resolved.notes if item.resolved else None
        if error is None:
            marker = self.installer.markers.get(key)
            return SourceResult(
                descriptor=item.descriptor,
                status=SourceStatus.SUCCESS,
                outcome=item.outcome.kind,
                version_id=version_id,
                files=marker.files if marker is not None else (),
                notes=notes,
            )

        status = (
            SourceStatus.SOFT_FAILURE
            if self.installer.has_installed(key)
            else SourceStatus.HARD_FAILURE
        )
        return SourceResult(
            descriptor=item.descriptor,
            status=status,
            outcome="failed",
            version_id=self.installer.installed_version(key),
            error=error,
        )


def failed_report(descriptors: Sequence[SourceDescriptor], error: FilterSyncError) -> SyncReport:
    """Report every descriptor as a hard failure when syncing cannot start at all."""
    report = SyncReport(
        results=[
            SourceResult(
                descriptor=descriptor,
                status=SourceStatus.HARD_FAILURE,
                outcome="failed",
                error=error,
            )
            for descriptor in descriptors
        ]
    )
    for result in report.results:
        log_result(result)
    return report


def log_result(result: SourceResult) -> None:
    name = result.descriptor.display
    if result.status == SourceStatus.SUCCESS:
        logger.info("%s: %s at %s", name, result.outcome, result.version_id)
    elif result.status == SourceStatus.SOFT_FAILURE:
        logger.warning(
            "%s: update failed, keeping installed version %s: %s",
            name,
            result.version_id,
            result.error,
        )
    else:
        logger.error(
            "%s: update failed and no previous version is installed; "
            "launching without this filter: %s",
            name,
            result.error,
        )


def _unique(descriptors: Sequence[SourceDescriptor]) -> list[SourceDescriptor]:
    unique: dict[str, SourceDescriptor] = {}
    for descriptor in descriptors:
        # unknown builtins stay as-is and fail in resolve()
        if descriptor.kind == "builtin" and descriptor.name in BUILTIN_SOURCES:
            descriptor = expand_builtin(descriptor)
        if descriptor.key in unique:
            logger.info("ignoring duplicate source %s", descriptor.display)
            continue
        unique[descriptor.key] = descriptor
    return list(unique.values())


__all__ = [
    "DEFAULT_MAX_WORKERS",
    "SyncOrchestrator",
    "failed_report",
    "log_result",
]
