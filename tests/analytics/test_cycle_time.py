import pytest

from pmpulse.analytics.cycle_time import (
    CycleTimeMethod,
    LabelEventCache,
    calculate_accurate_cycle_time,
    fetch_batch_label_events,
    get_enhanced_cycle_time_stats,
    get_or_fetch_label_events,
)
from pmpulse.contracts.exceptions import UpstreamError
from pmpulse.contracts.models import LabelAction
from tests.fakes.builders import label_event, make_issue, ts
from tests.fakes.provider import FakeProvider


def _closed_issue(iid: int = 1, **overrides: object):
    payload: dict[str, object] = {
        "state": "closed",
        "created_at": ts("2025-01-01T08:00"),
        "updated_at": ts("2025-01-20T09:00"),
        "closed_at": ts("2025-01-20T09:00"),
        "labels": ["Done"],
    }
    payload.update(overrides)
    return make_issue(iid, **payload)


class _Clock:
    def __init__(self) -> None:
        self.value = 0.0

    def __call__(self) -> float:
        return self.value


# ---------------------------------------------------------------------------
# Per-issue replay
# ---------------------------------------------------------------------------


def test_work_starts_at_first_work_label() -> None:
    events = [
        label_event(2, "2025-01-12T10:00", "add", "Review"),
        label_event(1, "2025-01-10T10:00", "add", "In Progress"),
    ]

    result = calculate_accurate_cycle_time(_closed_issue(), events)

    assert result.method == CycleTimeMethod.LABEL_EVENTS
    assert result.work_started_at == ts("2025-01-10T10:00")
    assert result.cycle_time == 10
    assert result.lead_time == 20
    assert [entry.label for entry in result.timeline] == ["In Progress", "Review"]


def test_timeline_tracks_labels_after_each_event() -> None:
    events = [
        label_event(1, "2025-01-05", "add", "Doing"),
        label_event(2, "2025-01-06", "remove", "done"),
    ]

    result = calculate_accurate_cycle_time(_closed_issue(), events)

    assert result.timeline[0].labels_after == ["done", "doing"]
    assert result.timeline[1].action == LabelAction.REMOVE
    assert result.timeline[1].labels_after == ["doing"]


def test_work_start_falls_back_to_creation() -> None:
    result = calculate_accurate_cycle_time(_closed_issue(), [label_event(1, "2025-01-05", "add", "frontend")])

    assert result.work_started_at == ts("2025-01-01T08:00")
    assert result.cycle_time == 20


def test_closed_issue_without_events_has_no_cycle_time() -> None:
    result = calculate_accurate_cycle_time(_closed_issue(), [])

    assert result.method == CycleTimeMethod.NONE
    assert result.cycle_time is None
    assert result.lead_time == 20


def test_open_issue_has_no_times() -> None:
    result = calculate_accurate_cycle_time(make_issue(), [label_event(1, "2025-01-05", "add", "Doing")])

    assert result.cycle_time is None
    assert result.lead_time is None


# ---------------------------------------------------------------------------
# Batch fetch and cache
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_batch_fetch_skips_open_and_failing_issues() -> None:
    provider = FakeProvider()
    good = _closed_issue(1, project_id=5)
    failing = _closed_issue(2, project_id=5)
    unavailable = _closed_issue(3, project_id=5)
    provider.label_events[(5, 1)] = [label_event(1, "2025-01-10", "add", "Doing")]
    provider.label_events[(5, 2)] = []
    provider.failures[("list_label_events", (5, 2))] = UpstreamError("boom", status_code=500)
    progress: list[tuple[int, int]] = []

    events = await fetch_batch_label_events(
        provider,
        [good, failing, unavailable, make_issue(4, project_id=5)],
        max_concurrent=2,
        on_progress=lambda done, total: progress.append((done, total)),
    )

    assert list(events) == [good.id]
    assert sorted(provider.calls["list_label_events"]) == [(5, 1), (5, 2), (5, 3)]
    assert progress[-1] == (3, 3)
    assert len(progress) == 3


@pytest.mark.asyncio
async def test_cache_serves_until_ttl_expires() -> None:
    provider = FakeProvider()
    issue = _closed_issue(1)
    provider.label_events[(issue.project_id, issue.iid)] = []
    clock = _Clock()
    cache = LabelEventCache(300, clock=clock)

    first = await get_or_fetch_label_events(provider, [issue], cache)
    clock.value = 299
    second = await get_or_fetch_label_events(provider, [issue], cache)

    assert second is first
    assert len(provider.calls["list_label_events"]) == 1

    clock.value = 300
    await get_or_fetch_label_events(provider, [issue], cache)

    assert len(provider.calls["list_label_events"]) == 2


def test_cache_clear() -> None:
    cache = LabelEventCache()
    cache.store({1: []})

    cache.clear()

    assert cache.current() is None


# ---------------------------------------------------------------------------
# Enhanced statistics
# ---------------------------------------------------------------------------


def test_enhanced_stats_mix_accurate_and_estimated() -> None:
    tracked = _closed_issue(1)
    untracked = _closed_issue(
        2,
        created_at=ts("2025-01-01"),
        updated_at=ts("2025-01-11"),
        closed_at=ts("2025-01-11"),
    )
    events = {tracked.id: [label_event(1, "2025-01-10T10:00", "add", "In Progress")]}

    stats = get_enhanced_cycle_time_stats([tracked, untracked, make_issue(3)], events)

    assert stats.count == 2
    assert stats.accurate_count == 1
    assert stats.estimated_count == 1
    assert stats.cycle_times == [8, 10]
    assert stats.lead_times == [10, 20]
    assert stats.avg_wait_time == 6
    assert stats.method == CycleTimeMethod.LABEL_EVENTS
    assert stats.data_quality == "50% accurate"


def test_enhanced_stats_without_history_are_estimated() -> None:
    stats = get_enhanced_cycle_time_stats([_closed_issue(1)], {})

    assert stats.method == CycleTimeMethod.ESTIMATED
    assert stats.data_quality == "estimated"
    assert stats.accurate_count == 0
