from datetime import UTC, date, datetime

from pmpulse.contracts.models import Epic, Issue, IssueState, LabelAction, LabelEvent, ProjectInfo


def _issue_payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": "101",
        "iid": "7",
        "title": "Fix login",
        "state": "opened",
        "created_at": "2025-02-01T10:00:00Z",
        "updated_at": "2025-02-03T10:00:00Z",
        "project_id": "42",
    }
    payload.update(overrides)
    return payload


def test_issue_coerces_string_ids_to_int() -> None:
    issue = Issue.model_validate(_issue_payload())

    assert issue.id == 101
    assert issue.iid == 7
    assert issue.project_id == 42


def test_issue_closed_without_closed_at_uses_updated_at() -> None:
    issue = Issue.model_validate(_issue_payload(state="closed"))

    assert issue.state == IssueState.CLOSED
    assert issue.is_closed
    assert issue.closed_at == datetime(2025, 2, 3, 10, tzinfo=UTC)


def test_issue_updated_before_created_is_clamped() -> None:
    issue = Issue.model_validate(_issue_payload(updated_at="2025-01-01T00:00:00Z"))

    assert issue.updated_at == issue.created_at


def test_issue_closed_before_created_is_clamped() -> None:
    issue = Issue.model_validate(_issue_payload(state="closed", closed_at="2024-12-31T00:00:00Z"))

    assert issue.closed_at == issue.created_at


def test_issue_naive_timestamps_become_utc() -> None:
    issue = Issue.model_validate(_issue_payload(created_at="2025-02-01T10:00:00", updated_at="2025-02-01T11:00:00"))

    assert issue.created_at.tzinfo is not None
    assert issue.updated_at.utcoffset().total_seconds() == 0


def test_issue_single_assignee_is_merged_into_assignees() -> None:
    issue = Issue.model_validate(_issue_payload(assignee={"id": 3, "username": "ana", "name": "Ana"}))

    assert issue.assignee_usernames == ["ana"]


def test_issue_accepts_provenance_aliases() -> None:
    issue = Issue.model_validate(_issue_payload(_source="Frontend", _projectId=42, _projectPath="org/web"))

    assert issue.source == "Frontend"
    assert issue.source_project_id == 42
    assert issue.source_project_path == "org/web"


def test_epic_falls_back_to_due_date_and_blank_parent() -> None:
    epic = Epic.model_validate({"id": "5", "title": "Checkout", "due_date": "2025-03-31", "parent_id": 0})

    assert epic.id == 5
    assert epic.end_date == date(2025, 3, 31)
    assert epic.parent_id is None


def test_label_event_flattens_label_name() -> None:
    event = LabelEvent.model_validate(
        {"id": 1, "created_at": "2025-01-10T00:00:00Z", "action": "add", "label": {"name": "In Progress"}}
    )

    assert event.label_name == "In Progress"
    assert event.action == LabelAction.ADD


def test_project_info_reads_namespace_id_from_namespace() -> None:
    project = ProjectInfo.model_validate(
        {"id": 42, "path_with_namespace": "org/web", "namespace": {"id": 9, "path": "org"}}
    )

    assert project.namespace_id == 9
