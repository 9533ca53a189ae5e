"""Epic Red/Amber/Green health with contributing factors and actions.

Factors are collected in a fixed order and then stable-sorted by severity, so
when several critical conditions fire together they all remain, in the order
they were detected. The same holds for actions and their priorities.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, Field

from pmpulse.analytics.dates import DAY, as_datetime, ceil_days, days_between, round_half_up, utc_now
from pmpulse.analytics.labels import get_issue_weight, get_sprint_from_labels, is_blocked
from pmpulse.analytics.workload import ITERATION_DAYS, calculate_team_workload
from pmpulse.contracts.models import Epic, Issue

ITERATION_WEEKS = 2
OLD_BLOCKER_DAYS = 15
OVERALLOCATION_RATIO = 1.2


class RagStatus(StrEnum):
    RED = "red"
    AMBER = "amber"
    GREEN = "green"


class RagSeverity(StrEnum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class FactorSeverity(StrEnum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class ActionPriority(StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


_SEVERITY_ORDER = {severity: index for index, severity in enumerate(FactorSeverity)}
_PRIORITY_ORDER = {priority: index for index, priority in enumerate(ActionPriority)}


class Factor(BaseModel):
    severity: FactorSeverity
    category: str
    title: str
    description: str
    impact: str


class Action(BaseModel):
    priority: ActionPriority
    title: str
    description: str
    estimated_effort: str
    impact: str


class HistoricalData(BaseModel):
    avg_cycle_time: int = 7
    median_cycle_time: int = 5


class RagMetrics(BaseModel):
    progress_percent: float
    remaining_issues: int
    closed_issues: int
    total_issues: int
    remaining_iterations: int | None
    current_velocity: float
    required_velocity: float
    velocity_ratio: float
    blocked_count: int
    old_blocked_count: int
    total_weight: int
    weight_variance: float
    days_until_due: float | None
    overallocated_members: int


class Projection(BaseModel):
    date: datetime
    iterations_needed: int
    weeks_needed: int
    days_variance: float | None
    on_time: bool


class RagResult(BaseModel):
    status: RagStatus
    reason: str
    severity: RagSeverity
    factors: list[Factor] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)
    metrics: RagMetrics | None = None
    projection: Projection | None = None


# ---------------------------------------------------------------------------
# Derived metrics
# ---------------------------------------------------------------------------


def get_historical_data(closed_issues: Iterable[Issue]) -> HistoricalData:
    """Average and median creation-to-close days, ignoring spans outside (0, 365)."""
    durations = sorted(
        days
        for days in (days_between(issue.created_at, issue.closed_at) for issue in closed_issues if issue.closed_at)
        if 0 < days < 365
    )
    if not durations:
        return HistoricalData()
    return HistoricalData(
        avg_cycle_time=round_half_up(sum(durations) / len(durations)),
        median_cycle_time=round_half_up(durations[len(durations) // 2]),
    )


def calculate_remaining_iterations(epic: Epic, issues: Iterable[Issue], now: datetime | None = None) -> int | None:
    """Distinct future iterations before the epic ends, else two-week slots left."""
    if epic.end_date is None:
        return None
    now = now or utc_now()
    end = as_datetime(epic.end_date)

    starts: dict[str, date] = {}
    for issue in issues:
        if issue.iteration is None or issue.iteration.start_date is None:
            continue
        name = get_sprint_from_labels(issue.labels, issue.iteration)
        if name:
            starts.setdefault(name, issue.iteration.start_date)

    future = [start for start in starts.values() if now < as_datetime(start) <= end]
    if future:
        return len(future)
    days_remaining = max(0.0, (end - now) / DAY)
    return int(days_remaining // (ITERATION_WEEKS * 7))


def calculate_current_velocity(issues: Iterable[Issue]) -> float:
    """Issues closed per iteration over the last three iterations."""
    closed = [issue for issue in issues if issue.is_closed and issue.closed_at is not None]
    if not closed:
        return 0.0

    counts: dict[str, list] = {}
    for issue in closed:
        name = get_sprint_from_labels(issue.labels, issue.iteration)
        if not name:
            continue
        start = issue.iteration.start_date if issue.iteration is not None else None
        entry = counts.setdefault(name, [start, 0])
        entry[1] += 1

    dated = sorted((entry for entry in counts.values() if entry[0] is not None), key=lambda e: e[0], reverse=True)[:3]
    if not dated:
        # Without iteration data every closure counts as one iteration.
        return float(len(closed))
    return sum(count for _, count in dated) / len(dated)


def get_days_blocked(issue: Issue, now: datetime | None = None) -> int:
    if not is_blocked(issue.labels):
        return 0
    return max(0, ceil_days(issue.updated_at, now or utc_now()))


def count_overallocated_members(issues: Iterable[Issue]) -> int:
    return sum(
        1
        for member in calculate_team_workload(issues)
        if member.username is not None and member.total_weight / ITERATION_DAYS > OVERALLOCATION_RATIO
    )


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def calculate_epic_rag(
    epic: Epic,
    issues: Sequence[Issue],
    historical: HistoricalData | None = None,
    *,
    now: datetime | None = None,
) -> RagResult:
    """Evaluate the health of *epic* from its issues."""
    if not issues:
        return RagResult(status=RagStatus.GREEN, reason="No issues in epic", severity=RagSeverity.HEALTHY)

    now = now or utc_now()
    open_issues = [issue for issue in issues if not issue.is_closed]
    closed_issues = [issue for issue in issues if issue.is_closed]
    total = len(issues)
    remaining = len(open_issues)

    progress = len(closed_issues) / total * 100
    remaining_iterations = calculate_remaining_iterations(epic, issues, now)
    current_velocity = calculate_current_velocity(issues)
    required_velocity = remaining / remaining_iterations if remaining_iterations else float(remaining)
    velocity_ratio = current_velocity / required_velocity if required_velocity > 0 else 1.0

    blocked = [issue for issue in open_issues if is_blocked(issue.labels)]
    blocked_count = len(blocked)
    old_blocked_count = sum(1 for issue in blocked if get_days_blocked(issue, now) > OLD_BLOCKER_DAYS)

    total_weight = sum(get_issue_weight(issue) for issue in open_issues)
    weight_variance = 0.0
    if historical is not None and historical.avg_cycle_time:
        estimate = historical.avg_cycle_time * remaining
        if estimate > 0:
            weight_variance = (total_weight - estimate) / estimate * 100

    end = as_datetime(epic.end_date) if epic.end_date is not None else None
    days_until_due = (end - now) / DAY if end is not None else None
    is_overdue = days_until_due is not None and days_until_due < 0
    overallocated = count_overallocated_members(issues)

    factors: list[Factor] = []
    actions: list[Action] = []

    def add(factor: Factor, action: Action) -> None:
        factors.append(factor)
        actions.append(action)

    due_text = epic.end_date.isoformat() if epic.end_date is not None else ""

    # Critical conditions
    if is_overdue and remaining > 0:
        add(
            Factor(
                severity=FactorSeverity.CRITICAL,
                category="timeline",
                title="Epic is overdue",
                description=f"Due date {due_text} has passed with {remaining} issue{'s' if remaining > 1 else ''} still open",
                impact="Cannot deliver on committed timeline",
            ),
            Action(
                priority=ActionPriority.CRITICAL,
                title="Negotiate timeline extension",
                description="Schedule stakeholder meeting to extend deadline",
                estimated_effort="1 day",
                impact="Align expectations with reality",
            ),
        )
    elif is_overdue and end is not None and any(issue.closed_at is None or issue.closed_at > end for issue in closed_issues):
        add(
            Factor(
                severity=FactorSeverity.WARNING,
                category="timeline",
                title="Epic completed late",
                description=f"All issues closed but some finished after due date {due_text}",
                impact="Delivered late but complete",
            ),
            Action(
                priority=ActionPriority.MEDIUM,
                title="Review timeline planning",
                description="Analyze why epic took longer than expected to improve future estimates",
                estimated_effort="1 day",
                impact="Better planning for future epics",
            ),
        )

    if velocity_ratio < 0.7 and required_velocity > 0:
        shortfall = abs((remaining_iterations or 0) * (required_velocity - current_velocity))
        add(
            Factor(
                severity=FactorSeverity.CRITICAL,
                category="velocity",
                title="Velocity crisis",
                description=(
                    f"Need {required_velocity:.1f} issues/iter, currently {current_velocity:.1f} issues/iter "
                    f"({velocity_ratio * 100:.0f}% of required)"
                ),
                impact=f"{shortfall:.0f} issues short at current pace",
            ),
            Action(
                priority=ActionPriority.CRITICAL,
                title="Increase team capacity or reduce scope",
                description=(
                    f"Option A: Add {math.ceil((required_velocity - current_velocity) / 2)} developers. "
                    f"Option B: Reduce scope by {math.ceil(remaining * (1 - velocity_ratio))} issues"
                ),
                estimated_effort="1 week",
                impact=f"Achieve required velocity of {required_velocity:.1f} issues/iter",
            ),
        )

    if old_blocked_count > 0 or blocked_count >= 4:
        refs = ", ".join(f"#{issue.iid}" for issue in blocked[:3])
        add(
            Factor(
                severity=FactorSeverity.CRITICAL,
                category="blockers",
                title=f"{blocked_count} blocked issues",
                description=(
                    f"{old_blocked_count} blocked for >{OLD_BLOCKER_DAYS} days, {blocked_count} total blocked"
                    if old_blocked_count
                    else f"{blocked_count} issues currently blocked"
                ),
                impact=f"{blocked_count / total * 100:.0f}% of epic work is blocked",
            ),
            Action(
                priority=ActionPriority.CRITICAL,
                title="Executive escalation for blockers",
                description=f"Escalate to CTO/VP level: {refs}",
                estimated_effort="2 days",
                impact=(
                    f"Unblock {blocked_count} issues, potential "
                    f"+{blocked_count / (remaining_iterations or 1):.1f} issues/iter"
                ),
            ),
        )

    if weight_variance < -40:
        add(
            Factor(
                severity=FactorSeverity.CRITICAL,
                category="estimation",
                title="Severe underestimation",
                description=(
                    f"Team estimated {total_weight} days, historical data suggests "
                    f"{total_weight / (1 + weight_variance / 100):.0f} days ({abs(weight_variance):.0f}% variance)"
                ),
                impact="Estimates not grounded in reality",
            ),
            Action(
                priority=ActionPriority.HIGH,
                title="Re-estimate with senior team",
                description="Conduct estimation workshop with team leads and historical data",
                estimated_effort="1 day",
                impact="Realistic timeline and scope expectations",
            ),
        )

    if remaining_iterations is not None and remaining_iterations < 1 and remaining > 3:
        must_have = math.ceil(current_velocity)
        add(
            Factor(
                severity=FactorSeverity.CRITICAL,
                category="timeline",
                title="Insufficient time remaining",
                description=f"{remaining} issues remaining, less than 1 iteration left",
                impact="Mathematically impossible to complete",
            ),
            Action(
                priority=ActionPriority.CRITICAL,
                title="Emergency scope reduction",
                description=f"Reduce to {must_have} must-have issues, defer {remaining - must_have} to next release",
                estimated_effort="2 days",
                impact="Deliver core value on time",
            ),
        )

    if progress < 30 and remaining_iterations is not None and remaining_iterations < 3:
        add(
            Factor(
                severity=FactorSeverity.CRITICAL,
                category="progress",
                title="Critically behind schedule",
                description=f"Only {progress:.0f}% complete with {remaining_iterations} iterations left",
                impact="Epic has barely started with deadline approaching",
            ),
            Action(
                priority=ActionPriority.CRITICAL,
                title="Scope reduction or timeline extension",
                description="Stakeholder decision needed: reduce scope by 60% OR extend deadline by 8 weeks",
                estimated_effort="1 day",
                impact="Align scope with reality",
            ),
        )

    # Warning conditions
    if 0.7 <= velocity_ratio < 1.0 and required_velocity > 0:
        gap = required_velocity - current_velocity
        add(
            Factor(
                severity=FactorSeverity.WARNING,
                category="velocity",
                title="Velocity gap",
                description=(
                    f"Need {required_velocity:.1f} issues/iter, currently {current_velocity:.1f} issues/iter "
                    f"({velocity_ratio * 100:.0f}% of required)"
                ),
                impact=f"{gap:.1f} issues/iter shortfall",
            ),
            Action(
                priority=ActionPriority.HIGH,
                title="Focus team and remove distractions",
                description="Eliminate non-essential meetings, defer low-priority work on other epics",
                estimated_effort="1 day",
                impact=f"Close velocity gap of {gap:.1f} issues/iter",
            ),
        )

    if 2 <= blocked_count < 4:
        add(
            Factor(
                severity=FactorSeverity.WARNING,
                category="blockers",
                title=f"{blocked_count} blocked issues",
                description="Issues: " + ", ".join(f"#{issue.iid}" for issue in blocked[:2]),
                impact="Slowing team progress",
            ),
            Action(
                priority=ActionPriority.MEDIUM,
                title="Escalate blockers to team leads",
                description="Work with dependent teams to unblock: "
                + ", ".join(f"#{issue.iid} {issue.title[:30]}" for issue in blocked[:2]),
                estimated_effort="2 days",
                impact=f"Unblock {blocked_count} issues",
            ),
        )

    if -40 <= weight_variance < -20:
        add(
            Factor(
                severity=FactorSeverity.WARNING,
                category="estimation",
                title="Optimistic estimates",
                description=(
                    f"Team estimated {total_weight} days, historical average suggests "
                    f"{total_weight / (1 + weight_variance / 100):.0f} days "
                    f"({abs(weight_variance):.0f}% lower than history)"
                ),
                impact="May need more time than planned",
            ),
            Action(
                priority=ActionPriority.MEDIUM,
                title="Add buffer to timeline",
                description="Add 3-5 day buffer per remaining issue based on historical data",
                estimated_effort="1 day",
                impact="Realistic expectations",
            ),
        )

    if remaining_iterations is not None and remaining_iterations <= 1.5 and remaining > 0:
        add(
            Factor(
                severity=FactorSeverity.WARNING,
                category="timeline",
                title="No schedule buffer",
                description="Will finish in last iteration, no room for delays",
                impact="Any setback will cause delay",
            ),
            Action(
                priority=ActionPriority.MEDIUM,
                title="Prevent scope creep",
                description="Lock scope, defer all new requests to next release, close issues faster than starting new ones",
                estimated_effort="Ongoing",
                impact="Protect timeline",
            ),
        )

    if progress < 50 and remaining_iterations is not None and 3 <= remaining_iterations < 4:
        add(
            Factor(
                severity=FactorSeverity.WARNING,
                category="progress",
                title="Behind schedule",
                description=f"{progress:.0f}% complete with {remaining_iterations} iterations left",
                impact="Need to accelerate",
            ),
            Action(
                priority=ActionPriority.HIGH,
                title="Accelerate closures",
                description="Focus on closing in-progress issues before starting new work, identify quick wins",
                estimated_effort="Ongoing",
                impact="Increase completion rate",
            ),
        )

    if overallocated >= 1:
        add(
            Factor(
                severity=FactorSeverity.WARNING,
                category="capacity",
                title=f"{overallocated} team member(s) overallocated",
                description=f"Team members at >{OVERALLOCATION_RATIO * 100:.0f}% capacity",
                impact="Burnout risk, quality issues",
            ),
            Action(
                priority=ActionPriority.MEDIUM,
                title="Re-balance workload",
                description="Move issues from overallocated to underutilized team members",
                estimated_effort="1 day",
                impact="Sustainable pace, better quality",
            ),
        )

    factors.sort(key=lambda factor: _SEVERITY_ORDER[factor.severity])
    actions.sort(key=lambda action: _PRIORITY_ORDER[action.priority])

    if any(factor.severity == FactorSeverity.CRITICAL for factor in factors):
        status, severity, reason = RagStatus.RED, RagSeverity.CRITICAL, factors[0].title
    elif any(factor.severity == FactorSeverity.WARNING for factor in factors):
        status, severity, reason = RagStatus.AMBER, RagSeverity.WARNING, factors[0].title
    else:
        status, severity = RagStatus.GREEN, RagSeverity.HEALTHY
        reason = f"On track: {current_velocity:.1f} issues/iter"
        if required_velocity > 0:
            reason += f" (need {required_velocity:.1f})"

    return RagResult(
        status=status,
        reason=reason,
        severity=severity,
        factors=factors,
        actions=actions,
        metrics=RagMetrics(
            progress_percent=progress,
            remaining_issues=remaining,
            closed_issues=len(closed_issues),
            total_issues=total,
            remaining_iterations=remaining_iterations,
            current_velocity=current_velocity,
            required_velocity=required_velocity,
            velocity_ratio=velocity_ratio,
            blocked_count=blocked_count,
            old_blocked_count=old_blocked_count,
            total_weight=total_weight,
            weight_variance=weight_variance,
            days_until_due=days_until_due,
            overallocated_members=overallocated,
        ),
        projection=project_completion(remaining, remaining_iterations, current_velocity, end, now),
    )


def project_completion(
    remaining_issues: int,
    remaining_iterations: int | None,
    current_velocity: float,
    end: datetime | None,
    now: datetime,
) -> Projection | None:
    """Completion date at the current pace, assuming two-week iterations."""
    if remaining_iterations is None or current_velocity <= 0:
        return None
    iterations_needed = math.ceil(remaining_issues / current_velocity)
    weeks_needed = iterations_needed * ITERATION_WEEKS
    projected = now + timedelta(weeks=weeks_needed)
    variance = (projected - end) / DAY if end is not None else None
    return Projection(
        date=projected,
        iterations_needed=iterations_needed,
        weeks_needed=weeks_needed,
        days_variance=variance,
        on_time=variance is not None and variance <= 0,
    )
