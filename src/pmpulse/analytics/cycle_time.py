"""Cycle time reconstructed from label-event history."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from pmpulse.analytics.dates import ceil_days, round_half_up
from pmpulse.analytics.phases import DEFAULT_PHASE_PATTERNS, estimated_cycle_time, lead_time
from pmpulse.analytics.stats import mean, median
from pmpulse.contracts.exceptions import FeatureUnavailableError, ProviderError
from pmpulse.contracts.models import Issue, LabelAction, LabelEvent, Phase
from pmpulse.contracts.provider import Provider

_LOG = logging.getLogger(__name__)

WORK_START_PATTERNS: tuple[str, ...] = tuple(
    pattern
    for phase in (Phase.ANALYSIS, Phase.IN_PROGRESS, Phase.REVIEW, Phase.TESTING)
    for pattern in DEFAULT_PHASE_PATTERNS[phase]
)

LabelEventMap = dict[int, list[LabelEvent]]
ProgressCallback = Callable[[int, int], None]


class CycleTimeMethod(StrEnum):
    LABEL_EVENTS = "label_events"
    ESTIMATED = "estimated"
    NONE = "none"


class TimelineEntry(BaseModel):
    timestamp: datetime
    action: LabelAction
    label: str
    labels_after: list[str]


class AccurateCycleTime(BaseModel):
    cycle_time: int | None = None
    lead_time: int | None = None
    work_started_at: datetime | None = None
    work_ended_at: datetime | None = None
    timeline: list[TimelineEntry] = Field(default_factory=list)
    method: CycleTimeMethod = CycleTimeMethod.NONE


class EnhancedCycleTimeStats(BaseModel):
    count: int = 0
    avg_cycle_time: int = 0
    median_cycle_time: int = 0
    min_cycle_time: int = 0
    max_cycle_time: int = 0
    cycle_times: list[int] = Field(default_factory=list)
    avg_lead_time: int = 0
    median_lead_time: int = 0
    lead_times: list[int] = Field(default_factory=list)
    avg_wait_time: int = 0
    accurate_count: int = 0
    estimated_count: int = 0
    method: CycleTimeMethod = CycleTimeMethod.NONE
    data_quality: str = "estimated"


class LabelEventCache:
    """Label events of the last batch refresh, valid for ``ttl_seconds``.

    The cached map and its timestamp are replaced together in one assignment,
    so overlapping refreshes never interleave: the last one to finish wins.
    """

    def __init__(self, ttl_seconds: float = 300.0, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entry: tuple[float, LabelEventMap] | None = None

    def current(self) -> LabelEventMap | None:
        entry = self._entry
        if entry is None:
            return None
        stored_at, events = entry
        if self._clock() - stored_at >= self._ttl:
            return None
        return events

    def store(self, events: LabelEventMap) -> LabelEventMap:
        self._entry = (self._clock(), events)
        return events

    def clear(self) -> None:
        self._entry = None


def calculate_accurate_cycle_time(issue: Issue, label_events: Sequence[LabelEvent] | None) -> AccurateCycleTime:
    """Replay label events to find when work started and derive the cycle time."""
    if issue.closed_at is None or not label_events:
        return AccurateCycleTime(
            lead_time=lead_time(issue) if issue.closed_at is not None else None,
            work_ended_at=issue.closed_at,
        )

    current_labels: dict[str, None] = dict.fromkeys(label.lower() for label in issue.labels)
    timeline: list[TimelineEntry] = []
    work_started_at: datetime | None = None

    for event in sorted(label_events, key=lambda event: event.created_at):
        lowered = event.label_name.lower()
        if event.action == LabelAction.ADD:
            current_labels.setdefault(lowered, None)
            if work_started_at is None and any(pattern in lowered for pattern in WORK_START_PATTERNS):
                work_started_at = event.created_at
        else:
            current_labels.pop(lowered, None)
        timeline.append(
            TimelineEntry(
                timestamp=event.created_at,
                action=event.action,
                label=event.label_name,
                labels_after=list(current_labels),
            )
        )

    if work_started_at is None:
        work_started_at = issue.created_at

    return AccurateCycleTime(
        cycle_time=ceil_days(work_started_at, issue.closed_at),
        lead_time=lead_time(issue),
        work_started_at=work_started_at,
        work_ended_at=issue.closed_at,
        timeline=timeline,
        method=CycleTimeMethod.LABEL_EVENTS,
    )


async def fetch_batch_label_events(
    provider: Provider,
    issues: Iterable[Issue],
    *,
    max_concurrent: int = 10,
    on_progress: ProgressCallback | None = None,
) -> LabelEventMap:
    """Fetch label events of closed issues, keyed by issue id.

    A failure on one issue is logged and that issue is left out of the result.
    """
    closed = [issue for issue in issues if issue.is_closed]
    semaphore = asyncio.Semaphore(max_concurrent)
    results: LabelEventMap = {}
    done = 0

    async def fetch_one(issue: Issue) -> None:
        nonlocal done
        async with semaphore:
            try:
                results[issue.id] = await provider.list_label_events(issue.project_id, issue.iid)
            except FeatureUnavailableError:
                _LOG.debug("Label events unavailable for issue %s#%s", issue.project_id, issue.iid)
            except ProviderError as exc:
                _LOG.warning(
                    "Failed to fetch label events for issue %s#%s: %s",
                    issue.project_id,
                    issue.iid,
                    exc,
                    extra={"issue_id": issue.id},
                )
            finally:
                done += 1
                if on_progress is not None:
                    on_progress(done, len(closed))

    async with asyncio.TaskGroup() as group:
        for issue in closed:
            group.create_task(fetch_one(issue))

    _LOG.info("Fetched label events for %d of %d closed issues", len(results), len(closed))
    return results


async def get_or_fetch_label_events(
    provider: Provider,
    issues: Iterable[Issue],
    cache: LabelEventCache,
    *,
    max_concurrent: int = 10,
    on_progress: ProgressCallback | None = None,
) -> LabelEventMap:
    cached = cache.current()
    if cached is not None:
        _LOG.debug("Using cached label events")
        return cached
    events = await fetch_batch_label_events(provider, issues, max_concurrent=max_concurrent, on_progress=on_progress)
    return cache.store(events)


def get_enhanced_cycle_time_stats(issues: Iterable[Issue], label_events: Mapping[int, Sequence[LabelEvent]]) -> EnhancedCycleTimeStats:
    """Cycle time statistics preferring label history, estimating where none exists."""
    closed = [issue for issue in issues if issue.is_closed]
    if not closed:
        return EnhancedCycleTimeStats()

    cycle_times: list[int] = []
    accurate = 0
    estimated = 0
    for issue in closed:
        result = calculate_accurate_cycle_time(issue, label_events.get(issue.id))
        if result.cycle_time is not None:
            cycle_times.append(result.cycle_time)
            accurate += 1
            continue
        fallback = estimated_cycle_time(issue)
        if fallback is not None:
            cycle_times.append(fallback)
            estimated += 1

    lead_times = sorted(lead_time(issue) for issue in closed)
    avg_lead = round_half_up(mean(lead_times))
    stats = EnhancedCycleTimeStats(
        count=len(closed),
        avg_lead_time=avg_lead,
        median_lead_time=median(lead_times),
        lead_times=lead_times,
        accurate_count=accurate,
        estimated_count=estimated,
        method=CycleTimeMethod.LABEL_EVENTS if accurate else CycleTimeMethod.ESTIMATED,
    )
    if cycle_times:
        cycle_times.sort()
        avg_cycle = round_half_up(mean(cycle_times))
        stats.avg_cycle_time = avg_cycle
        stats.median_cycle_time = median(cycle_times)
        stats.min_cycle_time = cycle_times[0]
        stats.max_cycle_time = cycle_times[-1]
        stats.cycle_times = cycle_times
        stats.avg_wait_time = max(0, avg_lead - avg_cycle)
        if accurate:
            stats.data_quality = f"{round_half_up(accurate / len(cycle_times) * 100)}% accurate"
    return stats
