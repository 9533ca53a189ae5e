"""Issue lifecycle phases, lead/cycle time estimates and bottleneck detection."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, Field

from pmpulse.analytics.dates import as_datetime, ceil_days, days_between, round_half_up, utc_now
from pmpulse.analytics.stats import mean, median, nearest_rank, population_stddev
from pmpulse.contracts.models import Issue, Phase

PhasePatterns = Mapping[Phase, Sequence[str]]

DEFAULT_PHASE_PATTERNS: dict[Phase, tuple[str, ...]] = {
    Phase.BACKLOG: ("backlog", "new", "open", "todo", "to do"),
    Phase.ANALYSIS: (
        "analysis",
        "analyzing",
        "refinement",
        "planning",
        "design",
        "in analysis",
        "in discovery",
        "ready for work",
        "awaiting refinement",
    ),
    Phase.IN_PROGRESS: ("in progress", "in-progress", "in_progress", "doing", "wip", "development", "started", "active"),
    Phase.REVIEW: ("review", "code review", "peer review", "reviewing", "in review"),
    Phase.TESTING: ("in testing", "testing", "qa", "test", "validation", "verification"),
    Phase.AWAITING_TESTING: ("awaiting testing", "awaiting qa", "ready for testing", "to test"),
    Phase.AWAITING_RELEASE: ("awaiting release", "ready for release", "to release", "pending release"),
    Phase.RELEASED: ("released", "deployed", "in production"),
    Phase.CANCELLED: ("cancelled", "canceled", "rejected", "wont fix", "won't fix"),
    Phase.DONE: ("done", "completed", "closed", "resolved", "finished"),
    Phase.BLOCKED: ("blocked", "blocker", "on hold", "paused", "blocked(do not use)"),
}

# First match wins.
PHASE_PRIORITY: tuple[Phase, ...] = (
    Phase.CANCELLED,
    Phase.RELEASED,
    Phase.BLOCKED,
    Phase.AWAITING_RELEASE,
    Phase.AWAITING_TESTING,
    Phase.TESTING,
    Phase.REVIEW,
    Phase.IN_PROGRESS,
    Phase.ANALYSIS,
    Phase.DONE,
    Phase.BACKLOG,
)

PHASE_LABELS: dict[Phase, str] = {
    Phase.BACKLOG: "Backlog",
    Phase.ANALYSIS: "Analysis",
    Phase.IN_PROGRESS: "In Progress",
    Phase.REVIEW: "Review",
    Phase.TESTING: "In Testing",
    Phase.AWAITING_TESTING: "Awaiting Testing",
    Phase.AWAITING_RELEASE: "Awaiting Release",
    Phase.RELEASED: "Released",
    Phase.CANCELLED: "Cancelled",
    Phase.DONE: "Done",
    Phase.BLOCKED: "Blocked",
}

HISTOGRAM_BUCKETS: tuple[tuple[str, int | None], ...] = (
    ("0-7 days", 7),
    ("8-14 days", 14),
    ("15-30 days", 30),
    ("31-60 days", 60),
    ("61-90 days", 90),
    ("90+ days", None),
)

# Share of the average lead time attributed to each phase.
_PHASE_TIME_SHARES: dict[Phase, float] = {
    Phase.BACKLOG: 0.2,
    Phase.ANALYSIS: 0.15,
    Phase.IN_PROGRESS: 0.4,
    Phase.REVIEW: 0.1,
    Phase.TESTING: 0.15,
}

_ESTIMATED_WAIT_SHARE = 0.2


class BottleneckSeverity(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CycleTimeStats(BaseModel):
    count: int = 0
    avg_lead_time: int = 0
    median_lead_time: int = 0
    min_lead_time: int = 0
    max_lead_time: int = 0
    lead_times: list[int] = Field(default_factory=list)
    avg_cycle_time: int = 0
    median_cycle_time: int = 0
    min_cycle_time: int = 0
    max_cycle_time: int = 0
    cycle_times: list[int] = Field(default_factory=list)
    avg_wait_time: int = 0


class Bottleneck(BaseModel):
    phase: Phase
    count: int
    avg_time_in_phase: int
    severity: BottleneckSeverity
    reason: str
    root_causes: list[str] = Field(default_factory=list)
    recommended_actions: list[str] = Field(default_factory=list)


class ControlChartPoint(BaseModel):
    date: datetime
    value: int
    issue_iid: int
    title: str
    web_url: str


class ControlChart(BaseModel):
    data_points: list[ControlChartPoint] = Field(default_factory=list)
    average: int = 0
    median: int = 0
    percentile_85: int = 0
    percentile_95: int = 0
    std_dev: int = 0
    upper_control_limit: int = 0
    lower_control_limit: int = 0


class DetectedLabels(BaseModel):
    status: list[str] = Field(default_factory=list)
    phase: list[str] = Field(default_factory=list)
    workflow: list[str] = Field(default_factory=list)
    other: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def label_matches_phase(label: str, phase: Phase, patterns: PhasePatterns = DEFAULT_PHASE_PATTERNS) -> bool:
    lowered = label.lower()
    return any(pattern in lowered for pattern in patterns.get(phase, ()))


def classify_labels(
    labels: Iterable[str],
    *,
    closed: bool,
    patterns: PhasePatterns = DEFAULT_PHASE_PATTERNS,
) -> Phase:
    lowered = [label.lower() for label in labels]
    for phase in PHASE_PRIORITY:
        phase_patterns = patterns.get(phase, ())
        if any(pattern in label for label in lowered for pattern in phase_patterns):
            return phase
    return Phase.DONE if closed else Phase.BACKLOG


def detect_issue_phase(issue: Issue, patterns: PhasePatterns = DEFAULT_PHASE_PATTERNS) -> Phase:
    return classify_labels(issue.labels, closed=issue.is_closed, patterns=patterns)


def phase_label(phase: Phase) -> str:
    return PHASE_LABELS.get(phase, str(phase))


def get_phase_distribution(
    issues: Iterable[Issue],
    patterns: PhasePatterns = DEFAULT_PHASE_PATTERNS,
) -> dict[Phase, list[Issue]]:
    distribution: dict[Phase, list[Issue]] = {phase: [] for phase in Phase}
    for issue in issues:
        distribution[detect_issue_phase(issue, patterns)].append(issue)
    return distribution


# ---------------------------------------------------------------------------
# Per-issue metrics
# ---------------------------------------------------------------------------


def lead_time(issue: Issue, now: datetime | None = None) -> int:
    end = issue.closed_at or now or utc_now()
    return abs(ceil_days(issue.created_at, end))


def time_in_current_phase(issue: Issue, now: datetime | None = None) -> int:
    return abs(ceil_days(issue.updated_at, now or utc_now()))


def estimated_work_start(issue: Issue) -> datetime | None:
    """Best guess of when work started on a closed issue, without label history."""
    if issue.closed_at is None:
        return None
    created = issue.created_at
    closed = issue.closed_at

    if issue.milestone is not None and issue.milestone.start_date is not None:
        milestone_start = as_datetime(issue.milestone.start_date)
        if created < milestone_start < closed:
            return milestone_start

    if issue.updated_at > created:
        update_offset = days_between(created, issue.updated_at)
        if 1 < update_offset < days_between(created, closed) / 2:
            return issue.updated_at

    return created + timedelta(seconds=(closed - created).total_seconds() * _ESTIMATED_WAIT_SHARE)


def estimated_cycle_time(issue: Issue) -> int | None:
    started = estimated_work_start(issue)
    if started is None or issue.closed_at is None:
        return None
    return min(abs(ceil_days(started, issue.closed_at)), ceil_days(issue.created_at, issue.closed_at))


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


def get_cycle_time_stats(issues: Iterable[Issue]) -> CycleTimeStats:
    closed = [issue for issue in issues if issue.is_closed]
    if not closed:
        return CycleTimeStats()

    lead_times = sorted(lead_time(issue) for issue in closed)
    avg_lead = round_half_up(mean(lead_times))
    stats = CycleTimeStats(
        count=len(closed),
        avg_lead_time=avg_lead,
        median_lead_time=median(lead_times),
        min_lead_time=lead_times[0],
        max_lead_time=lead_times[-1],
        lead_times=lead_times,
    )

    cycle_times = sorted(value for value in (estimated_cycle_time(issue) for issue in closed) if value is not None)
    if cycle_times:
        avg_cycle = round_half_up(mean(cycle_times))
        stats.avg_cycle_time = avg_cycle
        stats.median_cycle_time = median(cycle_times)
        stats.min_cycle_time = cycle_times[0]
        stats.max_cycle_time = cycle_times[-1]
        stats.cycle_times = cycle_times
        stats.avg_wait_time = max(0, avg_lead - avg_cycle)
    return stats


def get_average_time_per_phase(issues: Iterable[Issue]) -> dict[str, int]:
    closed = [issue for issue in issues if issue.is_closed]
    if not closed:
        return {**{str(phase): 0 for phase in _PHASE_TIME_SHARES}, "total": 0}
    avg_lead = mean([lead_time(issue) for issue in closed])
    result = {str(phase): round_half_up(avg_lead * share) for phase, share in _PHASE_TIME_SHARES.items()}
    result["total"] = round_half_up(avg_lead)
    return result


def build_histogram(values: Iterable[int]) -> dict[str, int]:
    """Bucket day counts; bucket upper bounds are inclusive."""
    buckets = {name: 0 for name, _ in HISTOGRAM_BUCKETS}
    for value in values:
        for name, upper in HISTOGRAM_BUCKETS:
            if upper is None or value <= upper:
                buckets[name] += 1
                break
    return buckets


def get_lead_time_distribution(issues: Iterable[Issue]) -> dict[str, int]:
    return build_histogram(lead_time(issue) for issue in issues if issue.is_closed)


def get_control_chart(issues: Iterable[Issue], metric: str = "lead_time") -> ControlChart:
    """Run-chart data for closed issues plus mean, percentiles and 3-sigma limits.

    ``metric`` is ``"lead_time"`` or ``"cycle_time"``. Zero or undefined values
    are left out of the chart.
    """
    if metric not in ("lead_time", "cycle_time"):
        raise ValueError(f"unknown control chart metric: {metric!r}")

    closed = sorted((issue for issue in issues if issue.closed_at is not None), key=lambda issue: issue.closed_at)
    points: list[ControlChartPoint] = []
    for issue in closed:
        value = estimated_cycle_time(issue) if metric == "cycle_time" else lead_time(issue)
        if not value or value <= 0:
            continue
        points.append(
            ControlChartPoint(
                date=issue.closed_at,
                value=value,
                issue_iid=issue.iid,
                title=issue.title,
                web_url=issue.web_url,
            )
        )
    if not points:
        return ControlChart()

    values = sorted(point.value for point in points)
    average = round_half_up(mean(values))
    std_dev = population_stddev(values, average)
    return ControlChart(
        data_points=points,
        average=average,
        median=nearest_rank(values, 0.5),
        percentile_85=nearest_rank(values, 0.85),
        percentile_95=nearest_rank(values, 0.95),
        std_dev=round_half_up(std_dev),
        upper_control_limit=round_half_up(average + 3 * std_dev),
        lower_control_limit=max(0, round_half_up(average - 3 * std_dev)),
    )


def get_detected_labels(issues: Iterable[Issue], patterns: PhasePatterns = DEFAULT_PHASE_PATTERNS) -> DetectedLabels:
    seen: dict[str, None] = {}
    for issue in issues:
        for label in issue.labels:
            seen.setdefault(label, None)

    all_patterns = [pattern for phase_patterns in patterns.values() for pattern in phase_patterns]
    detected = DetectedLabels()
    for label in seen:
        lowered = label.lower()
        if "status" in lowered:
            detected.status.append(label)
        elif any(pattern in lowered for pattern in all_patterns):
            detected.phase.append(label)
        elif "work" in lowered:
            detected.workflow.append(label)
        else:
            detected.other.append(label)
    return detected


# ---------------------------------------------------------------------------
# Bottlenecks
# ---------------------------------------------------------------------------


def identify_bottlenecks(issues: Iterable[Issue], now: datetime | None = None) -> list[Bottleneck]:
    """Rank phases of open issues by load and explain the likely causes."""
    now = now or utc_now()
    distribution = get_phase_distribution(issue for issue in issues if not issue.is_closed)

    loads = []
    for phase in Phase:
        members = distribution[phase]
        if not members:
            continue
        avg_time = round_half_up(mean([time_in_current_phase(issue, now) for issue in members]))
        loads.append((phase, len(members), avg_time))
    loads.sort(key=lambda load: load[1], reverse=True)

    bottlenecks: list[Bottleneck] = []
    for index, (phase, count, avg_time) in enumerate(loads):
        if index == 0 and count > 5:
            severity = BottleneckSeverity.HIGH
            reason = f"Highest concentration of issues ({count})"
        elif avg_time > 14:
            severity = BottleneckSeverity.MEDIUM
            reason = f"Long average time in phase ({avg_time} days)"
        elif count > 3:
            severity = BottleneckSeverity.LOW
            reason = f"{count} issues currently in this phase"
        else:
            continue

        causes, actions = _root_causes(phase, count, avg_time)
        bottlenecks.append(
            Bottleneck(
                phase=phase,
                count=count,
                avg_time_in_phase=avg_time,
                severity=severity,
                reason=reason,
                root_causes=causes,
                recommended_actions=actions,
            )
        )
    return bottlenecks


def _root_causes(phase: Phase, count: int, avg_time: int) -> tuple[list[str], list[str]]:
    causes: list[str] = []
    actions: list[str] = []

    if phase in (Phase.TESTING, Phase.AWAITING_TESTING):
        if avg_time > 7:
            causes.append("Security or QA team backlog")
            actions.append("Request additional QA resources or auto-approve low-risk changes")
        if count > 5:
            causes.append(f"{count} issues waiting for testing")
            actions.append("Prioritize testing queue, enable parallel testing")
    elif phase == Phase.AWAITING_RELEASE:
        if avg_time > 5:
            causes.append("Infrequent deployment schedule")
            actions.append("Enable more frequent deployments or continuous delivery")
        if count > 3:
            causes.append(f"{count} issues ready but waiting for release window")
            actions.append("Deploy batches more frequently (daily vs weekly)")
    elif phase == Phase.REVIEW:
        if avg_time > 3:
            causes.append("Code review backlog or slow review process")
            actions.append("Assign dedicated reviewers, set SLA for reviews (24-48 hours)")
    elif phase == Phase.BLOCKED:
        causes.append("External dependencies or blockers")
        actions.append("Escalate blockers to management, find workarounds")
    elif phase == Phase.IN_PROGRESS:
        if count > 8:
            causes.append("Too much work in progress (WIP)")
            actions.append("Implement WIP limits, focus on completing vs starting")
        if avg_time > 10:
            causes.append("Issues are more complex than estimated")
            actions.append("Break down large issues, improve estimation process")

    if not causes and count > 5:
        causes.append(f"High volume of issues in {phase_label(phase)}")
        actions.append("Increase throughput or reduce incoming work to this phase")
    if not causes and avg_time > 10:
        causes.append("Issues spending excessive time in this phase")
        actions.append("Investigate process inefficiencies or resource constraints")
    return causes, actions
