"""Tracker entity contracts.

Upstream payloads return ids as strings or numbers depending on the endpoint;
the models below normalize them once to ``int`` at ingestion. Timestamps are
parsed into timezone-aware ``datetime`` values and calendar dates into ``date``.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class IssueState(StrEnum):
    OPENED = "opened"
    CLOSED = "closed"


class Phase(StrEnum):
    BACKLOG = "backlog"
    ANALYSIS = "analysis"
    IN_PROGRESS = "inProgress"
    REVIEW = "review"
    TESTING = "testing"
    AWAITING_TESTING = "awaitingTesting"
    AWAITING_RELEASE = "awaitingRelease"
    RELEASED = "released"
    CANCELLED = "cancelled"
    DONE = "done"
    BLOCKED = "blocked"


class LabelAction(StrEnum):
    ADD = "add"
    REMOVE = "remove"


def ensure_aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Assignee(BaseModel):
    id: int | None = None
    username: str
    name: str | None = None


class MilestoneRef(BaseModel):
    id: int
    title: str = ""
    start_date: date | None = None
    due_date: date | None = None


class IterationRef(BaseModel):
    id: int
    title: str | None = None
    start_date: date | None = None
    due_date: date | None = None


class EpicRef(BaseModel):
    id: int
    iid: int | None = None
    title: str = ""


class TimeStats(BaseModel):
    time_estimate: int = 0
    total_time_spent: int = 0


class IssueLink(BaseModel):
    """Directed issue relation; ``link_type="blocks"`` means this issue blocks ``target_id``."""

    target_id: int
    link_type: str = "relates_to"


class Issue(BaseModel):
    id: int
    iid: int
    title: str = ""
    state: IssueState = IssueState.OPENED
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None
    due_date: date | None = None
    labels: list[str] = Field(default_factory=list)
    assignees: list[Assignee] = Field(default_factory=list)
    weight: int | None = Field(default=None, ge=0)
    milestone: MilestoneRef | None = None
    iteration: IterationRef | None = None
    epic: EpicRef | None = None
    project_id: int
    namespace_id: int | None = None
    description: str | None = None
    web_url: str = ""
    time_stats: TimeStats | None = None
    # Not part of the issues listing; callers fill it from the issue-links API.
    links: list[IssueLink] = Field(default_factory=list)
    source: str | None = Field(default=None, alias="_source")
    source_project_id: int | None = Field(default=None, alias="_projectId")
    source_project_path: str | None = Field(default=None, alias="_projectPath")

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def _merge_single_assignee(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("assignees") and data.get("assignee"):
            data = {**data, "assignees": [data["assignee"]]}
        return data

    @field_validator("created_at", "updated_at", "closed_at")
    @classmethod
    def _ensure_aware(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value)

    @model_validator(mode="after")
    def _normalize_timestamps(self) -> Issue:
        if self.updated_at < self.created_at:
            self.updated_at = self.created_at
        if self.state == IssueState.CLOSED and self.closed_at is None:
            self.closed_at = self.updated_at
        if self.closed_at is not None and self.closed_at < self.created_at:
            self.closed_at = self.created_at
        return self

    @property
    def is_closed(self) -> bool:
        return self.state == IssueState.CLOSED

    @property
    def assignee_usernames(self) -> list[str]:
        return [assignee.username for assignee in self.assignees]


class MilestoneStats(BaseModel):
    total_issues: int = 0
    closed_issues: int = 0


class Milestone(BaseModel):
    id: int
    iid: int | None = None
    title: str = ""
    description: str | None = None
    state: str = "active"
    start_date: date | None = None
    due_date: date | None = None
    created_at: datetime | None = None
    project_id: int | None = None
    group_id: int | None = None
    web_url: str = ""
    stats: MilestoneStats | None = None
    source: str | None = Field(default=None, alias="_source")

    model_config = {"populate_by_name": True}

    @field_validator("created_at")
    @classmethod
    def _ensure_aware(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value)


class Epic(EpicRef):
    parent_id: int | None = None
    description: str | None = None
    state: str = "opened"
    start_date: date | None = None
    end_date: date | None = None
    created_at: datetime | None = None
    labels: list[str] = Field(default_factory=list)
    group_id: int | None = None
    web_url: str = ""
    source: str | None = Field(default=None, alias="_source")

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def _fallback_end_date(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("end_date") and data.get("due_date"):
            data = {**data, "end_date": data["due_date"]}
        return data

    @field_validator("parent_id", mode="before")
    @classmethod
    def _blank_parent(cls, value: Any) -> Any:
        if value in ("", 0, "0"):
            return None
        return value

    @field_validator("created_at")
    @classmethod
    def _ensure_aware(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value)


class LabelEvent(BaseModel):
    id: int
    created_at: datetime
    action: LabelAction
    label_name: str = ""

    @model_validator(mode="before")
    @classmethod
    def _flatten_label(cls, data: Any) -> Any:
        if isinstance(data, dict) and "label_name" not in data:
            label = data.get("label") or {}
            data = {**data, "label_name": label.get("name") or ""}
        return data

    @field_validator("created_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        return ensure_aware(value) or value


class ProjectInfo(BaseModel):
    id: int
    name: str = ""
    path_with_namespace: str = ""
    namespace_id: int | None = None
    web_url: str = ""

    @model_validator(mode="before")
    @classmethod
    def _flatten_namespace(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("namespace_id") is None and isinstance(data.get("namespace"), dict):
            data = {**data, "namespace_id": data["namespace"].get("id")}
        return data
