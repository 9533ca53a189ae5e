from datetime import date

import pytest

from pmpulse.analytics.capacity import (
    AbsenceCalendar,
    TeamRoster,
    are_roles_compatible,
    get_compatible_roles,
    get_estimated_hours,
    team_members_from_issues,
)
from pmpulse.contracts.config import CapacitySettings
from pmpulse.contracts.models import IterationRef
from pmpulse.contracts.team import AbsenceType, TeamConfig, TeamMember
from pmpulse.store.scoped import ScopedStore
from tests.fakes.builders import make_issue

SPRINT = IterationRef(id=7, title="Sprint 7", start_date=date(2025, 6, 2), due_date=date(2025, 6, 13))


@pytest.fixture
def calendar(store: ScopedStore, now) -> AbsenceCalendar:
    return AbsenceCalendar(store, clock=lambda: now)


@pytest.fixture
def roster(store: ScopedStore, calendar: AbsenceCalendar) -> TeamRoster:
    return TeamRoster(store, calendar)


# ---------------------------------------------------------------------------
# Roles and estimates
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("first", "second", "expected"),
    [
        ("Developer", "SRE", True),
        ("Developer", "Business Analyst", False),
        ("Custom", "Custom", True),
        ("Custom", "Developer", False),
        ("Scrum Master", "Scrum Master", True),
    ],
)
def test_are_roles_compatible(first: str, second: str, expected: bool) -> None:
    assert are_roles_compatible(first, second) is expected


def test_get_compatible_roles() -> None:
    assert get_compatible_roles("Business Analyst") == ["Product Owner", "Initiative Manager"]
    assert get_compatible_roles("Scrum Master") == []
    assert get_compatible_roles("Custom") == []


def test_get_estimated_hours() -> None:
    settings = CapacitySettings()
    weighted = make_issue(weight=3)

    assert get_estimated_hours(weighted, settings, {weighted.id: 12}) == 12
    assert get_estimated_hours(weighted, settings) == 24
    assert get_estimated_hours(make_issue(2), settings) == 4


def test_team_members_from_issues_deduplicates() -> None:
    issues = [
        make_issue(1, assignees=[{"username": "ana", "name": "Ana"}]),
        make_issue(2, assignees=[{"username": "ana"}, {"username": "bo"}]),
    ]

    members = team_members_from_issues(issues)

    assert [(member.username, member.name) for member in members] == [("ana", "Ana"), ("bo", "")]


# ---------------------------------------------------------------------------
# Absences
# ---------------------------------------------------------------------------


def test_add_absence_replaces_overlapping_absence(calendar: AbsenceCalendar, now) -> None:
    calendar.add_absence("ana", date(2025, 6, 2), date(2025, 6, 4))
    calendar.add_absence("bo", date(2025, 6, 3), date(2025, 6, 3))
    replacement = calendar.add_absence("ana", date(2025, 6, 4), date(2025, 6, 6), "Trip", AbsenceType.TRAINING)

    assert replacement.id == "ana-2025-06-04-2025-06-06"
    assert replacement.created_at == now
    assert [absence.id for absence in calendar.get_user_absences("ana")] == [replacement.id]
    assert len(calendar.all()) == 2


def test_remove_absence(calendar: AbsenceCalendar) -> None:
    absence = calendar.add_absence("ana", date(2025, 6, 2), date(2025, 6, 4))

    calendar.remove_absence(absence.id)

    assert calendar.all() == []


def test_absence_queries_by_range(calendar: AbsenceCalendar) -> None:
    calendar.add_absence("ana", date(2025, 6, 2), date(2025, 6, 4))
    calendar.add_absence("ana", date(2025, 7, 1), date(2025, 7, 2))

    assert len(calendar.get_user_absences("ana", date(2025, 6, 4), date(2025, 6, 30))) == 1
    assert len(calendar.get_absences_in_range(date(2025, 1, 1), date(2025, 12, 31))) == 2


def test_absence_impact_counts_working_days_in_range(calendar: AbsenceCalendar) -> None:
    calendar.add_absence("ana", date(2025, 6, 5), date(2025, 6, 10))

    assert calendar.working_days_off("ana", SPRINT.start_date, SPRINT.due_date) == 4
    assert calendar.working_days_off("ana", date(2025, 6, 9), date(2025, 6, 13)) == 2
    assert calendar.calculate_absence_impact("ana", SPRINT.start_date, SPRINT.due_date, 40) == 32


def test_sprint_capacity_with_absences(calendar: AbsenceCalendar) -> None:
    calendar.add_absence("ana", date(2025, 6, 2), date(2025, 6, 6))

    impact = calendar.calculate_sprint_capacity_with_absences("ana", SPRINT, 40)

    assert impact.total_working_days == 10
    assert impact.base_capacity == 80
    assert impact.hours_lost == 40
    assert impact.working_days_lost == 5
    assert impact.adjusted_capacity == 40
    assert len(impact.absences) == 1


def test_sprint_capacity_without_dates(calendar: AbsenceCalendar) -> None:
    impact = calendar.calculate_sprint_capacity_with_absences("ana", IterationRef(id=1), 30)

    assert impact.adjusted_capacity == 30
    assert impact.total_working_days == 0


def test_team_absence_stats(calendar: AbsenceCalendar) -> None:
    calendar.add_absence("ana", date(2025, 6, 2), date(2025, 6, 3), type=AbsenceType.SICK)
    members = [TeamMember(username="ana", default_capacity=40), TeamMember(username="bo")]

    stats = calendar.get_team_absence_stats(members, SPRINT.start_date, SPRINT.due_date)

    assert stats.total_absences == 1
    assert stats.by_member == {"ana": 16, "bo": 0}
    assert stats.by_type[AbsenceType.SICK] == 1
    assert stats.total_days_off == 2
    assert stats.total_hours_impact == 16


# ---------------------------------------------------------------------------
# Roster and sprint capacity
# ---------------------------------------------------------------------------


def test_save_team_member_replaces_in_place(roster: TeamRoster) -> None:
    roster.save_team_config(TeamConfig(members=[TeamMember(username="ana"), TeamMember(username="bo")]))

    updated = roster.save_team_member(TeamMember(username="ana", role="SRE"))
    roster.save_team_member(TeamMember(username="cy"))

    assert [member.username for member in updated.members] == ["ana", "bo"]
    assert roster.team_config().member("ana").role == "SRE"
    assert [member.username for member in roster.team_config().members] == ["ana", "bo", "cy"]

    roster.remove_team_member("bo")

    assert [member.username for member in roster.team_config().members] == ["ana", "cy"]


def test_member_capacity_precedence(roster: TeamRoster) -> None:
    roster.absences.add_absence("ana", date(2025, 6, 2), date(2025, 6, 3))
    roster.update_sprint_member_capacity("7", "Sprint 7", "bo", 12, "Part time")

    assert roster.get_sprint_member_capacity("7", "bo", 40, SPRINT) == 12
    assert roster.get_sprint_member_capacity("7", "ana", 40, SPRINT) == 64
    assert roster.get_sprint_member_capacity("7", "cy", 40, SPRINT) == 40
    assert roster.get_sprint_member_capacity("7", "cy", 40) == 40


def test_update_sprint_member_capacity_replaces_entry(roster: TeamRoster) -> None:
    roster.update_sprint_member_capacity("7", "Sprint 7", "bo", 12)
    record = roster.update_sprint_member_capacity("7", "ignored", "bo", 20, "Back full time")

    assert record.sprint_name == "Sprint 7"
    assert [(entry.username, entry.available_hours) for entry in record.member_capacity] == [("bo", 20)]
    assert roster.sprint_record("7").for_member("bo").reason == "Back full time"


def test_calculate_sprint_capacity(roster: TeamRoster) -> None:
    roster.save_team_config(
        TeamConfig(members=[TeamMember(username="ana", default_capacity=40), TeamMember(username="bo", default_capacity=20)])
    )
    roster.update_sprint_member_capacity("7", "Sprint 7", "bo", 10, "Conference")

    summary = roster.calculate_sprint_capacity("7")

    assert summary.sprint_name == "Sprint 7"
    assert summary.total_capacity == 50
    assert [(d.username, d.available_hours, d.reason) for d in summary.member_details] == [
        ("ana", 40, ""),
        ("bo", 10, "Conference"),
    ]


def test_calculate_member_workload(roster: TeamRoster) -> None:
    sprint = {"id": 7, "title": "Sprint 7"}
    issues = [
        make_issue(1, iteration=sprint, weight=2, assignees=[{"username": "ana"}]),
        make_issue(2, iteration=sprint, assignees=[{"username": "ana"}]),
        make_issue(3, iteration=sprint, assignees=[{"username": "ana"}], state="closed"),
        make_issue(4, iteration={"id": 8}, assignees=[{"username": "ana"}]),
        make_issue(5, iteration=sprint, assignees=[{"username": "bo"}]),
    ]

    workload = roster.calculate_member_workload("ana", 7, issues)

    assert workload.issue_count == 2
    assert workload.total_estimated_hours == 20
    assert workload.total_weight == 2
