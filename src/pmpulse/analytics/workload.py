"""Team workload balancing over open issue effort."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import StrEnum

from pydantic import BaseModel, Field

from pmpulse.analytics.dates import round_half_up
from pmpulse.analytics.labels import get_issue_weight
from pmpulse.contracts.models import Issue

ITERATION_DAYS = 10
UNASSIGNED = "Unassigned"


class WorkloadStatus(StrEnum):
    CRITICAL = "critical"
    OVERALLOCATED = "overallocated"
    FULL = "full"
    OK = "ok"
    UNDERUTILIZED = "underutilized"
    UNASSIGNED = "unassigned"


_STATUS_ORDER = {status: index for index, status in enumerate(WorkloadStatus)}


class RecommendationType(StrEnum):
    REBALANCE = "rebalance"
    ASSIGN = "assign"
    WARNING = "warning"
    INFO = "info"


class RecommendationPriority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


_PRIORITY_ORDER = {priority: index for index, priority in enumerate(RecommendationPriority)}


class WeightedIssue(BaseModel):
    issue: Issue
    weight: float


class MemberLoad(BaseModel):
    username: str | None
    name: str
    total_weight: float = 0.0
    capacity: float = ITERATION_DAYS
    utilization: int = 0
    status: WorkloadStatus = WorkloadStatus.OK
    issues: list[WeightedIssue] = Field(default_factory=list)

    @property
    def free_capacity(self) -> float:
        return self.capacity - self.total_weight


class Recommendation(BaseModel):
    type: RecommendationType
    priority: RecommendationPriority
    reason: str
    from_member: str | None = None
    to_member: str | None = None
    issues: list[Issue] = Field(default_factory=list)
    days: float = 0.0


def classify_utilization(utilization: float) -> WorkloadStatus:
    if utilization > 120:
        return WorkloadStatus.CRITICAL
    if utilization > 100:
        return WorkloadStatus.OVERALLOCATED
    if utilization > 80:
        return WorkloadStatus.FULL
    if utilization < 50:
        return WorkloadStatus.UNDERUTILIZED
    return WorkloadStatus.OK


def _utilization(total_weight: float, capacity: float) -> int:
    return round_half_up(total_weight / capacity * 100) if capacity > 0 else 0


def calculate_team_workload(issues: Iterable[Issue], iteration_days: int = ITERATION_DAYS) -> list[MemberLoad]:
    """Split open issue effort across assignees and classify each member's utilization.

    Unassigned effort is collected under a single ``Unassigned`` entry.
    """
    members: dict[str, MemberLoad] = {}
    unassigned = MemberLoad(username=None, name=UNASSIGNED, capacity=0, status=WorkloadStatus.UNASSIGNED)

    for issue in issues:
        if issue.is_closed:
            continue
        weight = get_issue_weight(issue)
        if not issue.assignees:
            unassigned.total_weight += weight
            unassigned.issues.append(WeightedIssue(issue=issue, weight=weight))
            continue
        share = weight / len(issue.assignees)
        for assignee in issue.assignees:
            member = members.setdefault(
                assignee.username,
                MemberLoad(username=assignee.username, name=assignee.name or assignee.username, capacity=iteration_days),
            )
            member.total_weight += share
            member.issues.append(WeightedIssue(issue=issue, weight=share))

    result = list(members.values())
    for member in result:
        member.utilization = _utilization(member.total_weight, member.capacity)
        member.status = classify_utilization(member.utilization)
    if unassigned.issues:
        result.append(unassigned)

    result.sort(key=lambda member: (_STATUS_ORDER[member.status], -member.utilization))
    return result


def generate_recommendations(workload: Sequence[MemberLoad]) -> list[Recommendation]:
    """Rebalancing, assignment and capacity recommendations ordered by priority."""
    recommendations: list[Recommendation] = []
    assignable = [member.model_copy(deep=True) for member in workload if member.username is not None]

    overloaded = [m for m in assignable if m.status in (WorkloadStatus.CRITICAL, WorkloadStatus.OVERALLOCATED)]
    for member in overloaded:
        excess = member.total_weight - member.capacity
        targets = [
            candidate
            for candidate in assignable
            if candidate.status == WorkloadStatus.UNDERUTILIZED and candidate.free_capacity >= 2
        ]
        if not targets:
            recommendations.append(
                Recommendation(
                    type=RecommendationType.WARNING,
                    priority=RecommendationPriority.HIGH,
                    from_member=member.username,
                    days=excess,
                    reason=(
                        f"{member.name} is overallocated by {round_half_up(excess)} days "
                        f"({member.utilization}% capacity). Consider reducing scope or extending timeline."
                    ),
                )
            )
            continue

        target = targets[0]
        limit = min(excess, target.free_capacity)
        moved = 0.0
        selected: list[Issue] = []
        for entry in sorted(member.issues, key=lambda entry: entry.weight):
            if moved + entry.weight <= limit:
                selected.append(entry.issue)
                moved += entry.weight
            if moved >= excess * 0.5:
                break
        if selected:
            recommendations.append(
                Recommendation(
                    type=RecommendationType.REBALANCE,
                    priority=RecommendationPriority.HIGH,
                    from_member=member.username,
                    to_member=target.username,
                    issues=selected,
                    days=moved,
                    reason=(
                        f"{member.name} is {member.utilization}% utilized ({round_half_up(excess)} days over). "
                        f"Move {_days(moved)} days to {target.name} ({target.utilization}% utilized)."
                    ),
                )
            )

    unassigned = [entry for member in workload if member.username is None for entry in member.issues]
    if unassigned:
        available = sorted((m for m in assignable if m.utilization < 90), key=lambda m: m.utilization)
        if not available:
            total = sum(entry.weight for entry in unassigned)
            recommendations.append(
                Recommendation(
                    type=RecommendationType.WARNING,
                    priority=RecommendationPriority.MEDIUM,
                    issues=[entry.issue for entry in unassigned],
                    days=total,
                    reason=f"{_days(total)} days of unassigned work. All team members are at capacity.",
                )
            )
        else:
            for entry in unassigned:
                target = next((m for m in available if m.free_capacity >= entry.weight), available[0])
                recommendations.append(
                    Recommendation(
                        type=RecommendationType.ASSIGN,
                        priority=RecommendationPriority.MEDIUM,
                        to_member=target.username,
                        issues=[entry.issue],
                        days=entry.weight,
                        reason=(
                            f'Assign unassigned issue "{entry.issue.title}" ({_days(entry.weight)} days) '
                            f"to {target.name} ({target.utilization}% utilized)."
                        ),
                    )
                )
                target.total_weight += entry.weight
                target.utilization = _utilization(target.total_weight, target.capacity)

    for member in workload:
        if member.username is not None and member.utilization < 30:
            recommendations.append(
                Recommendation(
                    type=RecommendationType.INFO,
                    priority=RecommendationPriority.LOW,
                    to_member=member.username,
                    days=member.free_capacity,
                    reason=(
                        f"{member.name} has {round_half_up(member.free_capacity)} days available "
                        f"({member.utilization}% utilized). Consider assigning more work."
                    ),
                )
            )

    recommendations.sort(key=lambda recommendation: _PRIORITY_ORDER[recommendation.priority])
    return recommendations


def _days(value: float) -> str:
    return f"{value:g}"
