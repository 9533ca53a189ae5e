import random

import pytest

from pmpulse.contracts.linking import Complexity
from pmpulse.linking.linker import (
    build_epic_hierarchy,
    complexity_for,
    enhance_epics_with_cross_project_data,
    find_orphaned_issues,
    generate_cross_project_report,
    link_cross_project_issues,
    suggest_epic_assignments,
)
from tests.fakes.builders import make_epic, make_issue


def _epic_ref(epic_id: int) -> dict[str, object]:
    return {"id": epic_id, "title": f"Epic {epic_id}"}


# ---------------------------------------------------------------------------
# Linking
# ---------------------------------------------------------------------------


def test_issues_are_grouped_under_their_epic() -> None:
    epic = make_epic(1, title="Checkout", group_id=10)
    local = make_issue(1, epic=_epic_ref(1), namespace_id=10, project_id=1)
    remote = make_issue(2, epic=_epic_ref(1), namespace_id=20, project_id=2)
    loose = make_issue(3)

    result = link_cross_project_issues([local, remote, loose], [epic])

    group = result.epic_issue_map[1]
    assert [issue.iid for issue in group.issues] == [1, 2]
    assert group.projects == {1, 2}
    assert [issue.iid for issue in group.cross_project_issues] == [2]
    assert result.cross_project_links[0].issue_id == remote.id
    assert result.cross_project_links[0].epic_group_id == 10
    assert result.project_epic_map == {1: {1}, 2: {1}}
    assert [issue.iid for issue in result.issues] == [1, 2, 3]


def test_linked_issue_carries_full_epic_without_mutating_input() -> None:
    epic = make_epic(1, title="Checkout", labels=["payments"])
    issue = make_issue(1, epic=_epic_ref(1))

    result = link_cross_project_issues([issue], [epic])

    assert result.issues[0].epic == epic
    assert issue.epic.title == "Epic 1"


def test_statistics() -> None:
    epics = [make_epic(1), make_epic(2), make_epic(3)]
    issues = [
        make_issue(1, epic=_epic_ref(1), project_id=1),
        make_issue(2, epic=_epic_ref(1), project_id=2, namespace_id=20),
        make_issue(3, epic=_epic_ref(2), project_id=1),
    ]

    stats = link_cross_project_issues(issues, epics).statistics

    assert stats.total_epics == 3
    assert stats.epics_with_issues == 2
    assert stats.epics_with_cross_project_issues == 1
    assert stats.total_cross_project_links == 1
    assert stats.project_count == 2
    assert stats.avg_projects_per_epic == 1.0


def test_issue_pointing_at_unknown_epic_is_orphaned() -> None:
    issue = make_issue(1, epic=_epic_ref(99))

    result = link_cross_project_issues([issue], [make_epic(1)])

    assert result.orphaned_issues == [issue]
    assert result.epic_issue_map[1].issues == []


def test_epic_dependencies_are_deduplicated() -> None:
    blocked_a = make_issue(2, id=201, epic=_epic_ref(2))
    blocked_b = make_issue(3, id=202, epic=_epic_ref(2))
    sibling = make_issue(4, id=203, epic=_epic_ref(1))
    blocker = make_issue(
        1,
        id=200,
        epic=_epic_ref(1),
        links=[
            {"target_id": 201, "link_type": "blocks"},
            {"target_id": 202, "link_type": "blocks"},
            {"target_id": 203, "link_type": "blocks"},
            {"target_id": 999, "link_type": "blocks"},
        ],
    )

    result = link_cross_project_issues(
        [blocker, blocked_a, blocked_b, sibling], [make_epic(1, title="Auth"), make_epic(2, title="Billing")]
    )

    assert len(result.epic_dependencies) == 1
    dependency = result.epic_dependencies[0]
    assert (dependency.from_epic.id, dependency.to_epic.id) == (1, 2)
    assert dependency.to_issue.id == 201
    assert dependency.description == 'Epic "Auth" blocks Epic "Billing"'


def test_epic_dependencies_need_supplied_blocks_links() -> None:
    fetched = [make_issue(1, id=300, epic=_epic_ref(1)), make_issue(2, id=301, epic=_epic_ref(2))]
    reverse_only = [
        make_issue(1, id=300, epic=_epic_ref(1)),
        make_issue(2, id=301, epic=_epic_ref(2), links=[{"target_id": 300, "link_type": "is_blocked_by"}]),
    ]
    epics = [make_epic(1), make_epic(2)]

    assert link_cross_project_issues(fetched, epics).epic_dependencies == []
    assert link_cross_project_issues(reverse_only, epics).epic_dependencies == []


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


def test_hierarchy_orders_children_dated_first() -> None:
    epics = [
        make_epic(1, title="Root"),
        make_epic(2, title="Zulu", parent_id=1),
        make_epic(3, title="Alpha", parent_id=1, start_date="2025-03-01"),
        make_epic(4, title="Beta", parent_id=1, start_date="2025-02-01"),
        make_epic(5, title="Leaf", parent_id=3),
    ]

    hierarchy = build_epic_hierarchy(epics)

    assert [node.id for node in hierarchy.root_epics] == [1]
    assert hierarchy.epic_map[1].children == [4, 3, 2]
    assert hierarchy.epic_map[5].level == 2
    assert hierarchy.epic_map[5].path == [1, 3, 5]
    assert [node.id for node in hierarchy.walk()] == [1, 4, 3, 5, 2]


def test_missing_parent_makes_epic_a_root() -> None:
    hierarchy = build_epic_hierarchy([make_epic(2, parent_id=77)])

    assert hierarchy.root_epics[0].id == 2
    assert hierarchy.root_epics[0].parent_id is None


def test_parent_cycle_is_broken() -> None:
    hierarchy = build_epic_hierarchy([make_epic(1, parent_id=2), make_epic(2, parent_id=1)])

    assert [node.id for node in hierarchy.root_epics] == [1]
    assert hierarchy.children_of(1)[0].id == 2
    assert len(list(hierarchy.walk())) == 2


@pytest.mark.parametrize("order", [[1, 2], [2, 1]])
def test_parent_cycle_breaks_at_lowest_id_regardless_of_order(order: list[int]) -> None:
    epics = {1: make_epic(1, parent_id=2), 2: make_epic(2, parent_id=1)}

    hierarchy = build_epic_hierarchy([epics[epic_id] for epic_id in order])

    assert [node.id for node in hierarchy.root_epics] == [1]
    assert hierarchy.epic_map[2].parent_id == 1


def test_epic_under_a_cycle_keeps_its_parent() -> None:
    epics = [make_epic(4, parent_id=6), make_epic(5, parent_id=6), make_epic(6, parent_id=5)]

    hierarchy = build_epic_hierarchy(epics)

    assert [node.id for node in hierarchy.root_epics] == [5]
    assert hierarchy.epic_map[4].path == [5, 6, 4]
    assert hierarchy.epic_map[4].level == 2


def test_deep_hierarchy_is_placed_without_recursion() -> None:
    epics = [make_epic(1)] + [make_epic(epic_id, parent_id=epic_id - 1) for epic_id in range(2, 2001)]

    hierarchy = build_epic_hierarchy(epics)

    assert hierarchy.epic_map[2000].level == 1999
    assert hierarchy.epic_map[2000].path[:3] == [1, 2, 3]


def _shape(hierarchy) -> dict[str, object]:
    return {
        "roots": [node.id for node in hierarchy.root_epics],
        "nodes": {
            epic_id: (node.parent_id, node.level, node.path, node.children)
            for epic_id, node in sorted(hierarchy.epic_map.items())
        },
    }


@pytest.mark.parametrize("seed", range(10))
def test_hierarchy_does_not_depend_on_input_order(seed: int) -> None:
    epics = [
        make_epic(1, title="Platform"),
        make_epic(2, title="Payments", start_date="2025-02-01"),
        make_epic(3, title="Auth", parent_id=1, start_date="2025-03-01"),
        make_epic(4, title="Auth", parent_id=1, start_date="2025-03-01"),
        make_epic(5, title="Search", parent_id=1),
        make_epic(6, title="Cards", parent_id=2),
        make_epic(7, title="Tokens", parent_id=3),
        make_epic(8, title="Sessions", parent_id=3),
        make_epic(9, title="Orphan", parent_id=404),
        make_epic(10, title="Loop A", parent_id=11),
        make_epic(11, title="Loop B", parent_id=10),
    ]
    shuffled = list(epics)
    random.Random(seed).shuffle(shuffled)

    assert _shape(build_epic_hierarchy(shuffled)) == _shape(build_epic_hierarchy(epics))


# ---------------------------------------------------------------------------
# Orphans and suggestions
# ---------------------------------------------------------------------------


def test_orphans_need_an_epic_or_feature_hint() -> None:
    hinted = make_issue(1, labels=["Feature Request"])
    plain = make_issue(2, labels=["bug"])
    linked = make_issue(3, labels=["epic"], epic=_epic_ref(1))

    assert find_orphaned_issues([hinted, plain, linked]) == [hinted]


def test_suggest_epic_assignments_scores_and_ranks() -> None:
    checkout = make_epic(1, title="Checkout revamp", labels=["checkout"])
    search = make_epic(2, title="Search", labels=["search"])
    member_issue = make_issue(9, epic=_epic_ref(1), assignees=[{"username": "ana"}])
    link_result = link_cross_project_issues([member_issue], [checkout, search])
    orphan = make_issue(
        1,
        title="Update checkout button",
        labels=["feature", "checkout"],
        assignees=[{"username": "ana"}],
    )

    [result] = suggest_epic_assignments([orphan], [checkout, search], link_result)

    assert [(s.epic.id, s.score, s.confidence) for s in result.suggestions] == [(1, 30, "medium")]


def test_suggestions_skip_issues_without_positive_scores() -> None:
    orphan = make_issue(1, title="Fix", labels=["feature"])

    assert suggest_epic_assignments([orphan], [make_epic(1, title="Search")]) == []


# ---------------------------------------------------------------------------
# Cross-project reporting
# ---------------------------------------------------------------------------


def test_complexity_thresholds() -> None:
    assert complexity_for(1) == Complexity.LOW
    assert complexity_for(3) == Complexity.MEDIUM
    assert complexity_for(4) == Complexity.HIGH


def test_enhance_epics_reports_projects() -> None:
    epic = make_epic(1)
    issues = [make_issue(n, epic=_epic_ref(1), project_id=n) for n in range(1, 5)]
    result = link_cross_project_issues(issues, [epic, make_epic(2)])

    metadata = enhance_epics_with_cross_project_data([epic, make_epic(2)], result)

    assert metadata[1].projects == [1, 2, 3, 4]
    assert metadata[1].complexity == Complexity.HIGH
    assert metadata[1].has_multiple_projects
    assert metadata[2].issue_count == 0


def test_report_flags_complex_portfolio() -> None:
    epic = make_epic(1, title="Platform")
    issues = [make_issue(n, epic=_epic_ref(1), project_id=n, namespace_id=20 + n) for n in range(1, 5)]

    report = generate_cross_project_report(link_cross_project_issues(issues, [epic]))

    assert report.health_status.startswith("Complex")
    assert [rec.title for rec in report.recommendations] == [
        "High Cross-Project Complexity",
        "Epics Requiring Extra Attention",
    ]
    assert report.recommendations[1].epics == ["Platform"]


def test_report_for_isolated_work() -> None:
    report = generate_cross_project_report(link_cross_project_issues([make_issue(1)], [make_epic(1)]))

    assert report.health_status.startswith("Simple")
    assert report.recommendations == []
    assert report.epic_breakdown == []
