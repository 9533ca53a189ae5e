from datetime import date

import pytest

from pmpulse.analytics.capacity import AbsenceCalendar, TeamRoster
from pmpulse.analytics.velocity import (
    VelocityMetric,
    VelocitySource,
    calculate_historical_velocity,
    calculate_member_velocity,
    calculate_team_average_velocity,
    get_hours_per_story_point,
    update_capacity_settings_from_history,
)
from pmpulse.contracts.team import TeamMember
from pmpulse.store.scoped import ScopedStore
from tests.fakes.builders import make_issue

# Four two-week iterations with ten working days each, newest first.
ITERATIONS = {
    "Sprint 4": ("2025-06-02", "2025-06-13"),
    "Sprint 3": ("2025-05-19", "2025-05-30"),
    "Sprint 2": ("2025-05-05", "2025-05-16"),
    "Sprint 1": ("2025-04-21", "2025-05-02"),
}


def _done(username: str, sprint: str, points: int | None, **overrides: object):
    start, due = ITERATIONS[sprint]
    labels = [f"sp::{points}"] if points is not None else []
    return make_issue(
        state="closed",
        assignees=[{"username": username}],
        iteration={"id": int(sprint[-1]), "title": sprint, "start_date": start, "due_date": due},
        labels=labels,
        **overrides,
    )


@pytest.fixture
def history() -> list:
    return [
        _done("ana", "Sprint 4", 3),
        _done("ana", "Sprint 4", 2),
        _done("ana", "Sprint 3", 5),
        _done("ana", "Sprint 2", 4),
        _done("ana", "Sprint 1", 1),
        _done("ana", "Sprint 1", None),
        _done("bo", "Sprint 4", 3),
        _done("bo", "Sprint 3", 3),
        _done("cy", "Sprint 4", 2),
        make_issue(assignees=[{"username": "ana"}], labels=["sp::8"]),
    ]


# ---------------------------------------------------------------------------
# Member velocity
# ---------------------------------------------------------------------------


def test_member_velocity_uses_latest_iterations(history: list) -> None:
    velocity = calculate_member_velocity("ana", history, 40)

    assert [entry.name for entry in velocity.iterations] == ["Sprint 4", "Sprint 3", "Sprint 2"]
    assert velocity.iterations[0].story_points == 5
    assert velocity.iterations[0].capacity == 80
    assert velocity.total_story_points == 14
    assert velocity.total_hours_available == 240
    assert velocity.hours_per_story_point == 17.1
    assert velocity.hours_per_issue is None
    assert velocity.data_quality == "excellent"


def test_member_velocity_subtracts_absences(history: list, store: ScopedStore) -> None:
    calendar = AbsenceCalendar(store)
    calendar.add_absence("ana", date(2025, 6, 2), date(2025, 6, 3))

    velocity = calculate_member_velocity("ana", history, 40, absences=calendar)

    assert velocity.iterations[0].absence_hours == 16
    assert velocity.iterations[0].available_hours == 64
    assert velocity.hours_per_story_point == 16.0


def test_member_velocity_in_issue_mode(history: list) -> None:
    velocity = calculate_member_velocity("ana", history, 40, metric=VelocityMetric.ISSUES)

    assert velocity.total_issue_count == 4
    assert velocity.hours_per_issue == 60.0
    assert velocity.hours_per_story_point is None
    assert velocity.hours_per_unit == 60.0


@pytest.mark.parametrize(
    ("username", "issues", "quality"),
    [
        ("", [make_issue()], "insufficient"),
        ("ana", [], "insufficient"),
        ("ana", [make_issue(assignees=[{"username": "ana"}], state="closed")], "no-history"),
        ("ana", [_done("ana", "Sprint 1", None), _done("ana", "Sprint 2", 0)], "no-completed-work"),
    ],
)
def test_member_velocity_without_completed_iterations(username: str, issues: list, quality: str) -> None:
    velocity = calculate_member_velocity(username, issues, 40)

    assert velocity.hours_per_story_point is None
    assert velocity.data_quality == quality


def test_member_velocity_quality_by_iteration_count(history: list) -> None:
    assert calculate_member_velocity("bo", history, 40).data_quality == "moderate"
    assert calculate_member_velocity("cy", history, 40).data_quality == "low"


# ---------------------------------------------------------------------------
# Team average and lookup
# ---------------------------------------------------------------------------


def test_team_average_requires_two_iterations(history: list) -> None:
    members = [TeamMember(username=name, default_capacity=40) for name in ("ana", "bo", "cy")]

    team = calculate_team_average_velocity(members, history)

    assert team.members_analyzed == 2
    assert team.hours_per_story_point == 21.9
    assert team.data_quality == "moderate"


def test_team_average_without_history() -> None:
    team = calculate_team_average_velocity([TeamMember(username="ana")], [])

    assert team.hours_per_story_point is None
    assert team.data_quality == "insufficient"


def test_hours_per_story_point_sources(history: list) -> None:
    members = [TeamMember(username=name, default_capacity=40) for name in ("ana", "bo", "cy")]
    team = calculate_team_average_velocity(members, history)

    individual = get_hours_per_story_point("ana", history, 40, team)
    team_average = get_hours_per_story_point("cy", history, 40, team)
    static = get_hours_per_story_point("cy", history, 40)
    static_issues = get_hours_per_story_point("cy", history, 40, metric=VelocityMetric.ISSUES)

    assert (individual.source, individual.hours) == (VelocitySource.INDIVIDUAL, 17.1)
    assert individual.details == "Based on 3 iterations"
    assert (team_average.source, team_average.hours) == (VelocitySource.TEAM_AVERAGE, 21.9)
    assert (static.source, static.hours, static.quality) == (VelocitySource.STATIC, 6.0, "configured")
    assert static_issues.hours == 8.0


# ---------------------------------------------------------------------------
# Historical velocity
# ---------------------------------------------------------------------------


def test_historical_velocity_from_time_spent() -> None:
    issues = [
        make_issue(1, state="closed", weight=2, time_stats={"total_time_spent": 36000}),
        make_issue(2, state="closed", weight=3, time_stats={"total_time_spent": 18000}),
        make_issue(3, state="closed", weight=3),
        make_issue(4, weight=3, time_stats={"total_time_spent": 3600}),
    ]

    historical = calculate_historical_velocity(issues)

    assert historical.hours_per_story_point == 3.0
    assert historical.sample_size == 2
    assert historical.total_hours == 15.0
    assert historical.confidence == "low"


def test_historical_velocity_defaults_without_samples() -> None:
    assert calculate_historical_velocity([make_issue()]).hours_per_story_point == 8.0


def test_update_capacity_settings_from_history(store: ScopedStore) -> None:
    roster = TeamRoster(store)
    issues = [make_issue(1, state="closed", weight=4, time_stats={"total_time_spent": 4 * 5 * 3600})]

    settings = update_capacity_settings_from_history(roster, issues)

    assert settings.hours_per_story_point == 5.0
    assert roster.capacity_settings().hours_per_story_point == 5.0
    assert roster.capacity_settings().default_hours_per_issue == 4.0
