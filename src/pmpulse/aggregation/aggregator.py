"""Multi-source aggregation pipeline."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TypeVar

from pmpulse.aggregation.progress import NullProgress, PipelineProgress
from pmpulse.contracts.config import PmPulseConfig, SourceConfig
from pmpulse.contracts.exceptions import (
    FeatureUnavailableError,
    ForbiddenError,
    NetworkError,
    ProviderError,
    UpstreamError,
)
from pmpulse.contracts.models import Epic, Issue, Milestone, ProjectInfo
from pmpulse.contracts.provider import Provider
from pmpulse.contracts.snapshot import (
    Snapshot,
    SnapshotStatistics,
    SourceErrorRecord,
    SourceMetadata,
    SourceStatus,
)
from pmpulse.linking.linker import link_cross_project_issues

_LOG = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that fail one source without aborting the run.
_SOURCE_ERRORS = (UpstreamError, NetworkError, ForbiddenError)
_SOURCES_PHASE = "Sources"


@dataclass
class _SourceResult:
    metadata: SourceMetadata
    project: ProjectInfo | None = None
    issues: list[Issue] = field(default_factory=list)
    milestones: list[Milestone] = field(default_factory=list)
    epics: list[Epic] = field(default_factory=list)
    error: SourceErrorRecord | None = None


class Aggregator:
    """Fetches every configured source and merges them into one :class:`Snapshot`.

    Sources are processed concurrently, bounded by ``max_concurrent_sources``;
    results are merged in configuration order so duplicate resolution does not
    depend on which request finished first.
    """

    def __init__(
        self,
        provider: Provider,
        config: PmPulseConfig,
        *,
        progress: PipelineProgress | None = None,
    ) -> None:
        self._provider = provider
        self._config = config
        self._progress = progress or NullProgress()
        self._semaphore = asyncio.Semaphore(config.max_concurrent_sources)

    async def fetch_all(self) -> Snapshot:
        sources = self._config.source_list()
        _LOG.info("Aggregating %d sources", len(sources))

        self._progress.phase_start(_SOURCES_PHASE, total=len(sources))
        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [tg.create_task(self._guarded(self._fetch_source(source))) for source in sources]
        except* ProviderError as provider_error_group:
            self._progress.phase_error(_SOURCES_PHASE, provider_error_group.exceptions[0])
            raise provider_error_group.exceptions[0] from None
        self._progress.phase_done(_SOURCES_PHASE)

        results = [task.result() for task in tasks]
        snapshot = self._merge(results)
        _LOG.info(
            "Aggregated %d issues, %d milestones, %d epics (%d/%d sources ok)",
            snapshot.statistics.total_issues,
            snapshot.statistics.total_milestones,
            snapshot.statistics.total_epics,
            snapshot.statistics.successful_sources,
            snapshot.statistics.source_count,
        )
        return snapshot

    async def discover_group_projects(self, group_path: str) -> list[ProjectInfo]:
        """List the projects of a group, subgroups included."""
        return await self._provider.list_group_projects(group_path)

    # ------------------------------------------------------------------
    # Per source
    # ------------------------------------------------------------------

    async def _fetch_source(self, source: SourceConfig) -> _SourceResult:
        result = _SourceResult(
            metadata=SourceMetadata(id=source.id, name=source.display_name, type=source.type),
        )
        try:
            if source.includes_project:
                await self._fetch_project_data(source, result)
            if source.includes_groups:
                await self._fetch_group_data(source, result)
        except _SOURCE_ERRORS as exc:
            _LOG.warning(
                "Source %s failed: %s",
                source.display_name,
                exc,
                extra={"source_id": source.id, "error_kind": type(exc).__name__},
            )
            result = _SourceResult(
                metadata=result.metadata.model_copy(
                    update={"status": SourceStatus.FAILED, "error": str(exc)},
                ),
                error=SourceErrorRecord(
                    source_id=source.id,
                    source_name=source.display_name,
                    kind=type(exc).__name__,
                    message=str(exc),
                ),
            )
        else:
            result.metadata = result.metadata.model_copy(
                update={
                    "issue_count": len(result.issues),
                    "milestone_count": len(result.milestones),
                    "epic_count": len(result.epics),
                }
            )

        self._progress.item_done(_SOURCES_PHASE)
        return result

    async def _fetch_project_data(self, source: SourceConfig, result: _SourceResult) -> None:
        project_id = source.project_id or ""
        project = await self._provider.get_project(project_id)

        try:
            async with asyncio.TaskGroup() as tg:
                issues_task = tg.create_task(self._provider.list_issues(project_id))
                milestones_task = tg.create_task(self._provider.list_milestones(project_id))
        except* ProviderError as provider_error_group:
            raise provider_error_group.exceptions[0] from None

        result.project = project
        result.issues = [_tag_issue(issue, source, project) for issue in issues_task.result()]
        result.milestones = [
            milestone.model_copy(update={"source": source.display_name}) for milestone in milestones_task.result()
        ]
        _LOG.debug(
            "Fetched %d issues and %d milestones from %s",
            len(result.issues),
            len(result.milestones),
            project.path_with_namespace or project_id,
            extra={"source_id": source.id},
        )

    async def _fetch_group_data(self, source: SourceConfig, result: _SourceResult) -> None:
        for group_path in source.group_paths:
            try:
                epics = await self._provider.list_group_epics(group_path)
            except FeatureUnavailableError:
                _LOG.warning(
                    "Epics are not available for group %s",
                    group_path,
                    extra={"source_id": source.id, "group_path": group_path},
                )
                continue
            result.epics.extend(epic.model_copy(update={"source": source.display_name}) for epic in epics)

    async def _guarded(self, op: Awaitable[T]) -> T:
        async with self._semaphore:
            return await op

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def _merge(self, results: list[_SourceResult]) -> Snapshot:
        cutoff = self._cutoff()
        issues = _unique(
            (issue for result in results for issue in result.issues),
            lambda issue: _retained(cutoff, issue.created_at, issue.updated_at, issue.due_date),
        )
        milestones = _unique(
            (milestone for result in results for milestone in result.milestones),
            lambda milestone: _retained(cutoff, milestone.start_date, milestone.due_date, milestone.created_at),
        )
        epics = _unique(
            (epic for result in results for epic in result.epics),
            lambda epic: _retained(cutoff, epic.start_date, epic.end_date, epic.created_at),
        )
        projects = _unique((result.project for result in results if result.project is not None), lambda _: True)

        link_result = link_cross_project_issues(issues, epics)
        linked_count = sum(len(group.issues) for group in link_result.epic_issue_map.values())
        epics_with_issues = sum(1 for group in link_result.epic_issue_map.values() if group.issues)

        statistics = SnapshotStatistics(
            total_issues=len(issues),
            total_epics=len(epics),
            total_milestones=len(milestones),
            issues_with_epics=linked_count,
            epics_with_issues=epics_with_issues,
            orphaned_issues=len(issues) - linked_count,
            empty_epics=len(epics) - epics_with_issues,
            project_count=link_result.statistics.project_count,
            source_count=len(results),
            successful_sources=sum(1 for result in results if result.metadata.status == SourceStatus.OK),
        )
        return Snapshot(
            issues=link_result.issues,
            milestones=milestones,
            epics=epics,
            projects=projects,
            cross_project_data=link_result,
            statistics=statistics,
            source_metadata=[result.metadata for result in results],
            errors=[result.error for result in results if result.error is not None],
        )

    def _cutoff(self) -> date | None:
        if self._config.filter_by_year is None:
            return None
        return date(self._config.filter_by_year, 1, 1)


def _tag_issue(issue: Issue, source: SourceConfig, project: ProjectInfo) -> Issue:
    update: dict[str, object] = {
        "source": source.display_name,
        "source_project_id": project.id,
        "source_project_path": project.path_with_namespace,
    }
    if issue.namespace_id is None:
        update["namespace_id"] = project.namespace_id
    return issue.model_copy(update=update)


def _retained(cutoff: date | None, *values: date | datetime | None) -> bool:
    """True when no cutoff is set or any of *values* falls on or after it."""
    if cutoff is None:
        return True
    for value in values:
        if value is None:
            continue
        day = value.date() if isinstance(value, datetime) else value
        if day >= cutoff:
            return True
    return False


def _unique(items: Iterable[T], keep: Callable[[T], bool]) -> list[T]:
    """Items passing *keep*, deduplicated by ``id``; the first occurrence wins."""
    seen: set[int] = set()
    unique: list[T] = []
    for item in items:
        item_id = item.id  # type: ignore[attr-defined]
        if item_id in seen or not keep(item):
            continue
        seen.add(item_id)
        unique.append(item)
    return unique
