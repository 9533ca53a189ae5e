"""Team configuration, absences and sprint capacity."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import date, datetime

from pydantic import BaseModel, Field

from pmpulse.analytics.dates import as_date, calculate_working_days, round_half_up, utc_now
from pmpulse.contracts.config import CapacitySettings
from pmpulse.contracts.models import Issue, IterationRef
from pmpulse.contracts.team import (
    ROLE_COMPATIBILITY_GROUPS,
    Absence,
    AbsenceType,
    MemberCapacity,
    SprintCapacityRecord,
    TeamConfig,
    TeamMember,
)
from pmpulse.store.scoped import ScopedStore

_LOG = logging.getLogger(__name__)

_CUSTOM_ROLE = "Custom"


class SprintAbsenceImpact(BaseModel):
    total_working_days: int
    base_capacity: float
    hours_lost: float
    working_days_lost: int
    adjusted_capacity: float
    absences: list[Absence] = Field(default_factory=list)


class TeamAbsenceStats(BaseModel):
    total_absences: int = 0
    by_member: dict[str, float] = Field(default_factory=dict)
    by_type: dict[AbsenceType, int] = Field(default_factory=lambda: dict.fromkeys(AbsenceType, 0))
    total_days_off: int = 0
    total_hours_impact: float = 0.0


class MemberCapacityDetail(BaseModel):
    username: str
    name: str = ""
    role: str = ""
    available_hours: float
    reason: str = ""


class SprintCapacitySummary(BaseModel):
    sprint_id: str
    sprint_name: str = ""
    total_capacity: float
    member_details: list[MemberCapacityDetail] = Field(default_factory=list)


class MemberWorkload(BaseModel):
    issue_count: int
    total_estimated_hours: float
    total_weight: int
    issues: list[Issue] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Roles and estimates
# ---------------------------------------------------------------------------


def are_roles_compatible(first: str, second: str) -> bool:
    """Whether work may move between members of these roles without manual review."""
    if first == second:
        return True
    if _CUSTOM_ROLE in (first, second):
        return False
    return any(first in group and second in group for group in ROLE_COMPATIBILITY_GROUPS.values())


def get_compatible_roles(role: str) -> list[str]:
    if role == _CUSTOM_ROLE:
        return []
    for group in ROLE_COMPATIBILITY_GROUPS.values():
        if role in group:
            return [other for other in group if other != role]
    return []


def get_estimated_hours(
    issue: Issue,
    settings: CapacitySettings,
    manual_estimates: Mapping[int, float] | None = None,
) -> float:
    """Manual estimate, else weight times hours per point, else the per-issue default."""
    manual = (manual_estimates or {}).get(issue.id)
    if manual:
        return manual
    if issue.weight and issue.weight > 0:
        return issue.weight * settings.hours_per_story_point
    return settings.default_hours_per_issue


def team_members_from_issues(issues: Iterable[Issue]) -> list[TeamMember]:
    """Distinct assignees of *issues* as team members with default settings."""
    seen: dict[str, TeamMember] = {}
    for issue in issues:
        for assignee in issue.assignees:
            seen.setdefault(assignee.username, TeamMember(username=assignee.username, name=assignee.name or ""))
    return list(seen.values())


# ---------------------------------------------------------------------------
# Absences
# ---------------------------------------------------------------------------


class AbsenceCalendar:
    """Absence records of the active context."""

    def __init__(self, store: ScopedStore, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    def all(self) -> list[Absence]:
        return self._store.absences()

    def add_absence(
        self,
        username: str,
        start: date | datetime,
        end: date | datetime,
        reason: str = "",
        type: AbsenceType = AbsenceType.VACATION,
    ) -> Absence:
        """Record an absence, replacing any overlapping absence of the same user."""
        start_day, end_day = as_date(start), as_date(end)
        absence = Absence(
            id=f"{username}-{start_day.isoformat()}-{end_day.isoformat()}",
            username=username,
            start_date=start_day,
            end_date=end_day,
            reason=reason,
            type=type,
            created_at=self._clock(),
        )
        kept = [
            existing
            for existing in self._store.absences()
            if existing.username != username or not existing.overlaps(start_day, end_day)
        ]
        kept.append(absence)
        self._store.save_absences(kept)
        _LOG.debug("Recorded absence %s", absence.id)
        return absence

    def remove_absence(self, absence_id: str) -> None:
        self._store.save_absences([absence for absence in self._store.absences() if absence.id != absence_id])

    def get_user_absences(
        self,
        username: str,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> list[Absence]:
        absences = [absence for absence in self._store.absences() if absence.username == username]
        if start is not None:
            absences = [absence for absence in absences if absence.end_date >= as_date(start)]
        if end is not None:
            absences = [absence for absence in absences if absence.start_date <= as_date(end)]
        return sorted(absences, key=lambda absence: absence.start_date)

    def get_absences_in_range(self, start: date | datetime, end: date | datetime) -> list[Absence]:
        start_day, end_day = as_date(start), as_date(end)
        return sorted(
            (absence for absence in self._store.absences() if absence.overlaps(start_day, end_day)),
            key=lambda absence: absence.start_date,
        )

    def working_days_off(self, username: str, start: date | datetime, end: date | datetime) -> int:
        start_day, end_day = as_date(start), as_date(end)
        return sum(
            calculate_working_days(max(absence.start_date, start_day), min(absence.end_date, end_day))
            for absence in self.get_user_absences(username, start_day, end_day)
        )

    def calculate_absence_impact(
        self,
        username: str,
        start: date | datetime,
        end: date | datetime,
        weekly_hours: float,
    ) -> float:
        """Hours lost to absences of *username* in the inclusive range."""
        return round_half_up(self.working_days_off(username, start, end) * weekly_hours / 5, 1)

    def calculate_sprint_capacity_with_absences(
        self,
        username: str,
        sprint: IterationRef,
        weekly_hours: float,
    ) -> SprintAbsenceImpact:
        if sprint.start_date is None or sprint.due_date is None:
            return SprintAbsenceImpact(
                total_working_days=0,
                base_capacity=weekly_hours,
                hours_lost=0.0,
                working_days_lost=0,
                adjusted_capacity=weekly_hours,
            )
        working_days = calculate_working_days(sprint.start_date, sprint.due_date)
        base = working_days / 5 * weekly_hours
        hours_lost = self.calculate_absence_impact(username, sprint.start_date, sprint.due_date, weekly_hours)
        return SprintAbsenceImpact(
            total_working_days=working_days,
            base_capacity=round_half_up(base, 1),
            hours_lost=hours_lost,
            working_days_lost=self.working_days_off(username, sprint.start_date, sprint.due_date),
            adjusted_capacity=round_half_up(max(0.0, base - hours_lost), 1),
            absences=self.get_user_absences(username, sprint.start_date, sprint.due_date),
        )

    def get_team_absence_stats(
        self,
        members: Iterable[TeamMember],
        start: date | datetime,
        end: date | datetime,
    ) -> TeamAbsenceStats:
        stats = TeamAbsenceStats(total_absences=len(self.get_absences_in_range(start, end)))
        for member in members:
            hours = self.calculate_absence_impact(member.username, start, end, member.default_capacity)
            stats.by_member[member.username] = hours
            stats.total_hours_impact += hours
            stats.total_days_off += self.working_days_off(member.username, start, end)
            for absence in self.get_user_absences(member.username, start, end):
                stats.by_type[absence.type] += 1
        stats.total_hours_impact = round_half_up(stats.total_hours_impact, 1)
        return stats


# ---------------------------------------------------------------------------
# Team roster and sprint capacity
# ---------------------------------------------------------------------------


class TeamRoster:
    """Team configuration, per-sprint capacity overrides and capacity settings."""

    def __init__(self, store: ScopedStore, absences: AbsenceCalendar | None = None) -> None:
        self._store = store
        self._absences = absences or AbsenceCalendar(store)

    @property
    def absences(self) -> AbsenceCalendar:
        return self._absences

    def team_config(self) -> TeamConfig:
        return self._store.team_config()

    def save_team_config(self, config: TeamConfig) -> None:
        self._store.save_team_config(config)

    def save_team_member(self, member: TeamMember) -> TeamConfig:
        """Insert or replace the member with the same username."""
        config = self._store.team_config()
        members = [existing for existing in config.members if existing.username != member.username]
        position = next(
            (index for index, existing in enumerate(config.members) if existing.username == member.username),
            len(members),
        )
        members.insert(position, member)
        updated = TeamConfig(members=members)
        self._store.save_team_config(updated)
        return updated

    def remove_team_member(self, username: str) -> TeamConfig:
        config = self._store.team_config()
        updated = TeamConfig(members=[member for member in config.members if member.username != username])
        self._store.save_team_config(updated)
        return updated

    def capacity_settings(self) -> CapacitySettings:
        return self._store.capacity_settings()

    def save_capacity_settings(self, settings: CapacitySettings) -> None:
        self._store.save_capacity_settings(settings)

    def sprint_record(self, sprint_id: str) -> SprintCapacityRecord | None:
        return self._store.sprint_capacity().get(sprint_id)

    def update_sprint_member_capacity(
        self,
        sprint_id: str,
        sprint_name: str,
        username: str,
        available_hours: float,
        reason: str = "",
    ) -> SprintCapacityRecord:
        records = self._store.sprint_capacity()
        record = records.get(sprint_id) or SprintCapacityRecord(sprint_id=sprint_id, sprint_name=sprint_name)
        entries = [entry for entry in record.member_capacity if entry.username != username]
        entries.append(MemberCapacity(username=username, available_hours=available_hours, reason=reason or None))
        record = record.model_copy(update={"member_capacity": entries})
        records[sprint_id] = record
        self._store.save_sprint_capacity(records)
        return record

    def get_sprint_member_capacity(
        self,
        sprint_id: str,
        username: str,
        default_hours: float = 40.0,
        sprint: IterationRef | None = None,
    ) -> float:
        """Manual override, else absence-adjusted capacity, else *default_hours*."""
        record = self.sprint_record(sprint_id)
        override = record.for_member(username) if record is not None else None
        if override is not None:
            return override.available_hours
        if sprint is not None and sprint.start_date is not None and sprint.due_date is not None:
            impact = self._absences.calculate_sprint_capacity_with_absences(username, sprint, default_hours)
            if impact.hours_lost > 0:
                return impact.adjusted_capacity
        return default_hours

    def calculate_sprint_capacity(
        self,
        sprint_id: str,
        sprint_name: str = "",
        members: Iterable[TeamMember] | None = None,
        sprint: IterationRef | None = None,
    ) -> SprintCapacitySummary:
        roster = list(members) if members is not None else self.team_config().members
        record = self.sprint_record(sprint_id)
        details: list[MemberCapacityDetail] = []
        for member in roster:
            override = record.for_member(member.username) if record is not None else None
            hours = self.get_sprint_member_capacity(sprint_id, member.username, member.default_capacity, sprint)
            details.append(
                MemberCapacityDetail(
                    username=member.username,
                    name=member.name,
                    role=member.role,
                    available_hours=hours,
                    reason=(override.reason or "") if override is not None else "",
                )
            )
        return SprintCapacitySummary(
            sprint_id=sprint_id,
            sprint_name=sprint_name or (record.sprint_name if record is not None else ""),
            total_capacity=sum(detail.available_hours for detail in details),
            member_details=details,
        )

    def calculate_member_workload(
        self,
        username: str,
        sprint_id: int,
        issues: Iterable[Issue],
        manual_estimates: Mapping[int, float] | None = None,
    ) -> MemberWorkload:
        """Open issues of *username* in the iteration *sprint_id* with their estimates."""
        settings = self.capacity_settings()
        sprint_issues = [
            issue
            for issue in issues
            if not issue.is_closed
            and issue.iteration is not None
            and issue.iteration.id == sprint_id
            and username in issue.assignee_usernames
        ]
        return MemberWorkload(
            issue_count=len(sprint_issues),
            total_estimated_hours=round_half_up(
                sum(get_estimated_hours(issue, settings, manual_estimates) for issue in sprint_issues), 1
            ),
            total_weight=sum(issue.weight or 0 for issue in sprint_issues),
            issues=sprint_issues,
        )
