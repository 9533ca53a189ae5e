"""Per-member and team velocity expressed as hours per story point."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date
from enum import StrEnum

from pydantic import BaseModel, Field

from pmpulse.analytics.capacity import AbsenceCalendar, TeamRoster
from pmpulse.analytics.dates import calculate_working_days, round_half_up
from pmpulse.analytics.labels import get_sprint_from_labels, get_story_points
from pmpulse.analytics.stats import mean
from pmpulse.contracts.config import CapacitySettings
from pmpulse.contracts.models import Issue
from pmpulse.contracts.team import TeamMember

_LOG = logging.getLogger(__name__)

MIN_ITERATIONS = 2


class VelocityMetric(StrEnum):
    POINTS = "points"
    ISSUES = "issues"


class VelocitySource(StrEnum):
    INDIVIDUAL = "individual"
    TEAM_AVERAGE = "team-average"
    STATIC = "static"


class IterationVelocity(BaseModel):
    name: str
    start_date: date
    end_date: date
    story_points: int = 0
    issue_count: int = 0
    capacity: float = 0.0
    absence_hours: float = 0.0
    available_hours: float = 0.0


class MemberVelocity(BaseModel):
    username: str
    metric: VelocityMetric = VelocityMetric.POINTS
    hours_per_story_point: float | None = None
    hours_per_issue: float | None = None
    iterations_analyzed: int = 0
    total_story_points: int = 0
    total_issue_count: int = 0
    total_hours_available: int = 0
    data_quality: str = "insufficient"
    iterations: list[IterationVelocity] = Field(default_factory=list)

    @property
    def hours_per_unit(self) -> float | None:
        if self.metric == VelocityMetric.ISSUES:
            return self.hours_per_issue
        return self.hours_per_story_point


class TeamVelocity(BaseModel):
    metric: VelocityMetric = VelocityMetric.POINTS
    hours_per_story_point: float | None = None
    hours_per_issue: float | None = None
    members_analyzed: int = 0
    data_quality: str = "insufficient"

    @property
    def hours_per_unit(self) -> float | None:
        if self.metric == VelocityMetric.ISSUES:
            return self.hours_per_issue
        return self.hours_per_story_point


class HoursPerStoryPoint(BaseModel):
    hours: float
    source: VelocitySource
    quality: str
    details: str
    metric: VelocityMetric = VelocityMetric.POINTS


class HistoricalVelocity(BaseModel):
    hours_per_story_point: float = 8.0
    sample_size: int = 0
    total_hours: float = 0.0
    total_points: int = 0
    confidence: str = "low"


def _per_unit(metric: VelocityMetric, value: float | None) -> dict[str, float | None]:
    if metric == VelocityMetric.ISSUES:
        return {"hours_per_issue": value, "hours_per_story_point": None}
    return {"hours_per_story_point": value, "hours_per_issue": None}


def calculate_member_velocity(
    username: str,
    issues: Sequence[Issue],
    weekly_hours: float = 40.0,
    lookback: int = 3,
    *,
    absences: AbsenceCalendar | None = None,
    metric: VelocityMetric = VelocityMetric.POINTS,
) -> MemberVelocity:
    """Hours available per completed unit over the member's last *lookback* iterations.

    Only closed issues assigned to *username* whose iteration has both dates count.
    In points mode, issues without story points are ignored.
    """
    if not username or not issues:
        return MemberVelocity(username=username, metric=metric, data_quality="insufficient")

    member_issues = [
        issue
        for issue in issues
        if issue.is_closed
        and username in issue.assignee_usernames
        and issue.iteration is not None
        and issue.iteration.start_date is not None
        and issue.iteration.due_date is not None
    ]
    if not member_issues:
        return MemberVelocity(username=username, metric=metric, data_quality="no-history")

    grouped: dict[str, IterationVelocity] = {}
    for issue in member_issues:
        name = get_sprint_from_labels(issue.labels, issue.iteration)
        points = get_story_points(issue)
        if not name or (metric == VelocityMetric.POINTS and points <= 0):
            continue
        iteration = issue.iteration
        entry = grouped.setdefault(
            name,
            IterationVelocity(name=name, start_date=iteration.start_date, end_date=iteration.due_date),
        )
        entry.story_points += points
        entry.issue_count += 1

    iterations = sorted(grouped.values(), key=lambda entry: entry.end_date, reverse=True)[:lookback]
    if not iterations:
        return MemberVelocity(username=username, metric=metric, data_quality="no-completed-work")

    total_hours = 0.0
    for entry in iterations:
        entry.capacity = calculate_working_days(entry.start_date, entry.end_date) * weekly_hours / 5
        if absences is not None:
            entry.absence_hours = absences.calculate_absence_impact(
                username, entry.start_date, entry.end_date, weekly_hours
            )
        entry.available_hours = max(0.0, entry.capacity - entry.absence_hours)
        total_hours += entry.available_hours

    total_points = sum(entry.story_points for entry in iterations)
    total_count = sum(entry.issue_count for entry in iterations)
    units = total_count if metric == VelocityMetric.ISSUES else total_points
    per_unit = round_half_up(total_hours / units, 1) if units > 0 and total_hours > 0 else None

    if len(iterations) >= 3:
        quality = "excellent"
    elif len(iterations) == 2:
        quality = "moderate"
    else:
        quality = "low"

    _LOG.debug(
        "Velocity of %s: %s h/%s over %d iterations",
        username,
        per_unit,
        metric,
        len(iterations),
        extra={"username": username},
    )
    return MemberVelocity(
        username=username,
        metric=metric,
        iterations_analyzed=len(iterations),
        total_story_points=total_points,
        total_issue_count=total_count,
        total_hours_available=round_half_up(total_hours),
        data_quality=quality,
        iterations=iterations,
        **_per_unit(metric, per_unit),
    )


def calculate_team_average_velocity(
    members: Iterable[TeamMember],
    issues: Sequence[Issue],
    lookback: int = 3,
    *,
    absences: AbsenceCalendar | None = None,
    metric: VelocityMetric = VelocityMetric.POINTS,
) -> TeamVelocity:
    """Mean of member velocities backed by at least two iterations."""
    values = []
    for member in members:
        velocity = calculate_member_velocity(
            member.username,
            issues,
            member.default_capacity,
            lookback,
            absences=absences,
            metric=metric,
        )
        if velocity.hours_per_unit is not None and velocity.iterations_analyzed >= MIN_ITERATIONS:
            values.append(velocity.hours_per_unit)

    if not values:
        return TeamVelocity(metric=metric)
    return TeamVelocity(
        metric=metric,
        members_analyzed=len(values),
        data_quality="good" if len(values) >= 3 else "moderate",
        **_per_unit(metric, round_half_up(mean(values), 1)),
    )


def get_hours_per_story_point(
    username: str,
    issues: Sequence[Issue],
    weekly_hours: float,
    team_average: TeamVelocity | None = None,
    *,
    static_hours_per_story_point: float = 6.0,
    static_hours_per_issue: float = 8.0,
    absences: AbsenceCalendar | None = None,
    metric: VelocityMetric = VelocityMetric.POINTS,
) -> HoursPerStoryPoint:
    """Individual velocity when backed by two iterations, else team average, else the static value."""
    velocity = calculate_member_velocity(username, issues, weekly_hours, absences=absences, metric=metric)
    if velocity.hours_per_unit and velocity.iterations_analyzed >= MIN_ITERATIONS:
        return HoursPerStoryPoint(
            hours=velocity.hours_per_unit,
            source=VelocitySource.INDIVIDUAL,
            quality=velocity.data_quality,
            details=f"Based on {velocity.iterations_analyzed} iterations",
            metric=metric,
        )

    if team_average is not None and team_average.hours_per_unit:
        return HoursPerStoryPoint(
            hours=team_average.hours_per_unit,
            source=VelocitySource.TEAM_AVERAGE,
            quality=team_average.data_quality,
            details=f"Team average ({team_average.members_analyzed} members)",
            metric=metric,
        )

    static = static_hours_per_issue if metric == VelocityMetric.ISSUES else static_hours_per_story_point
    return HoursPerStoryPoint(
        hours=static,
        source=VelocitySource.STATIC,
        quality="configured",
        details=f"No historical data (needs at least {MIN_ITERATIONS} iterations with completed work)",
        metric=metric,
    )


def calculate_historical_velocity(issues: Iterable[Issue]) -> HistoricalVelocity:
    """Project-level hours per story point from recorded time spent."""
    samples = [
        issue
        for issue in issues
        if issue.is_closed
        and (issue.weight or 0) > 0
        and issue.time_stats is not None
        and issue.time_stats.total_time_spent > 0
    ]
    if not samples:
        return HistoricalVelocity()

    total_hours = sum(issue.time_stats.total_time_spent / 3600 for issue in samples)
    total_points = sum(issue.weight or 0 for issue in samples)
    if len(samples) >= 50:
        confidence = "high"
    elif len(samples) >= 20:
        confidence = "medium"
    else:
        confidence = "low"
    return HistoricalVelocity(
        hours_per_story_point=round_half_up(total_hours / total_points, 2),
        sample_size=len(samples),
        total_hours=round_half_up(total_hours, 1),
        total_points=total_points,
        confidence=confidence,
    )


def update_capacity_settings_from_history(roster: TeamRoster, issues: Iterable[Issue]) -> CapacitySettings:
    """Store the historical hours per story point as the active conversion rate."""
    historical = calculate_historical_velocity(issues)
    settings = roster.capacity_settings().model_copy(
        update={"hours_per_story_point": historical.hours_per_story_point}
    )
    roster.save_capacity_settings(settings)
    return settings
