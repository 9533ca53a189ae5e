"""Aggregation snapshot contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel

from pmpulse.contracts.config import SourceType
from pmpulse.contracts.linking import LinkResult
from pmpulse.contracts.models import Epic, Issue, Milestone, ProjectInfo


class SourceStatus(StrEnum):
    OK = "ok"
    FAILED = "failed"


class SourceMetadata(BaseModel):
    id: str
    name: str
    type: SourceType
    status: SourceStatus = SourceStatus.OK
    error: str | None = None
    issue_count: int = 0
    milestone_count: int = 0
    epic_count: int = 0


class SourceErrorRecord(BaseModel):
    source_id: str
    source_name: str
    kind: str
    message: str


class SnapshotStatistics(BaseModel):
    total_issues: int = 0
    total_epics: int = 0
    total_milestones: int = 0
    issues_with_epics: int = 0
    epics_with_issues: int = 0
    orphaned_issues: int = 0
    empty_epics: int = 0
    # projects contributing issues to at least one epic
    project_count: int = 0
    source_count: int = 0
    successful_sources: int = 0


@dataclass
class Snapshot:
    issues: list[Issue] = field(default_factory=list)
    milestones: list[Milestone] = field(default_factory=list)
    epics: list[Epic] = field(default_factory=list)
    projects: list[ProjectInfo] = field(default_factory=list)
    cross_project_data: LinkResult = field(default_factory=LinkResult)
    statistics: SnapshotStatistics = field(default_factory=SnapshotStatistics)
    source_metadata: list[SourceMetadata] = field(default_factory=list)
    errors: list[SourceErrorRecord] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.errors)
