"""Epic linking and hierarchy contracts."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel

from pmpulse.contracts.models import Epic, Issue


class Complexity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class EpicNode:
    """Arena entry of the epic forest; relations are expressed by epic id."""

    epic: Epic
    parent_id: int | None = None
    children: list[int] = field(default_factory=list)
    level: int = 0
    path: list[int] = field(default_factory=list)

    @property
    def id(self) -> int:
        return self.epic.id


@dataclass
class EpicHierarchy:
    root_epics: list[EpicNode] = field(default_factory=list)
    epic_map: dict[int, EpicNode] = field(default_factory=dict)

    def children_of(self, epic_id: int) -> list[EpicNode]:
        node = self.epic_map.get(epic_id)
        if node is None:
            return []
        return [self.epic_map[child_id] for child_id in node.children]

    def walk(self) -> Iterator[EpicNode]:
        """Yield every node depth-first, roots in order, children in order."""
        stack = list(reversed(self.root_epics))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(self.children_of(node.id)))


@dataclass
class EpicIssueGroup:
    epic: Epic
    issues: list[Issue] = field(default_factory=list)
    projects: set[int] = field(default_factory=set)
    cross_project_issues: list[Issue] = field(default_factory=list)


@dataclass(frozen=True)
class CrossProjectLink:
    epic_id: int
    issue_id: int
    epic_group_id: int | None
    issue_project_id: int
    type: str = "cross-project"


@dataclass(frozen=True)
class EpicDependency:
    from_epic: Epic
    to_epic: Epic
    from_issue: Issue
    to_issue: Issue
    type: str = "blocks"

    @property
    def description(self) -> str:
        return f'Epic "{self.from_epic.title}" blocks Epic "{self.to_epic.title}"'


class LinkStatistics(BaseModel):
    total_epics: int = 0
    epics_with_issues: int = 0
    epics_with_cross_project_issues: int = 0
    total_cross_project_links: int = 0
    project_count: int = 0
    avg_projects_per_epic: float = 0.0


class CrossProjectMetadata(BaseModel):
    issue_count: int
    project_count: int
    projects: list[int]
    cross_project_issue_count: int
    has_multiple_projects: bool
    complexity: Complexity


@dataclass
class LinkResult:
    epic_issue_map: dict[int, EpicIssueGroup] = field(default_factory=dict)
    project_epic_map: dict[int, set[int]] = field(default_factory=dict)
    cross_project_links: list[CrossProjectLink] = field(default_factory=list)
    statistics: LinkStatistics = field(default_factory=LinkStatistics)
    epic_hierarchy: EpicHierarchy = field(default_factory=EpicHierarchy)
    epic_dependencies: list[EpicDependency] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)
    orphaned_issues: list[Issue] = field(default_factory=list)
