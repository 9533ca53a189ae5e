"""Issue dependencies declared in descriptions ("blocked by #12")."""

from __future__ import annotations

import re
from collections.abc import Iterator, Sequence
from typing import Any, NamedTuple

from pydantic import BaseModel, Field, PrivateAttr

from pmpulse.contracts.models import Issue, IssueState

IssueKey = tuple[int, int]

DEPENDENCY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"blocked by #(\d+)", re.IGNORECASE),
    re.compile(r"depends on #(\d+)", re.IGNORECASE),
    re.compile(r"requires #(\d+)", re.IGNORECASE),
    re.compile(r"waiting for #(\d+)", re.IGNORECASE),
)


class DependencyNode(BaseModel):
    project_id: int
    iid: int
    title: str
    state: IssueState
    labels: list[str] = Field(default_factory=list)

    @property
    def key(self) -> IssueKey:
        return (self.project_id, self.iid)


class DependencyLink(NamedTuple):
    """Edge from the dependency to the issue that waits on it.

    ``#N`` references are project-local, so both ends share ``project_id``.
    """

    source: int
    target: int
    project_id: int
    type: str = "blocks"


class DependencyGraph(BaseModel):
    nodes: list[DependencyNode] = Field(default_factory=list)
    links: list[DependencyLink] = Field(default_factory=list)

    _outgoing: dict[IssueKey, list[DependencyLink]] = PrivateAttr(default_factory=dict)
    _incoming: dict[IssueKey, list[DependencyLink]] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        for link in self.links:
            self._outgoing.setdefault((link.project_id, link.source), []).append(link)
            self._incoming.setdefault((link.project_id, link.target), []).append(link)

    def outgoing(self, project_id: int, iid: int) -> list[DependencyLink]:
        return self._outgoing.get((project_id, iid), [])

    def incoming(self, project_id: int, iid: int) -> list[DependencyLink]:
        return self._incoming.get((project_id, iid), [])


class CircularDependency(NamedTuple):
    from_iid: int
    to_iid: int
    project_id: int


class CriticalPath(BaseModel):
    length: int = 0
    issues: list[Issue] = Field(default_factory=list)


class BlockedIssue(BaseModel):
    issue: Issue
    blocked_by: list[int]


def extract_dependencies(description: str | None) -> list[int]:
    """Referenced issue iids in pattern order, without duplicates."""
    if not description:
        return []
    found: dict[int, None] = {}
    for pattern in DEPENDENCY_PATTERNS:
        for match in pattern.finditer(description):
            found.setdefault(int(match.group(1)), None)
    return list(found)


def build_dependency_graph(issues: Sequence[Issue]) -> DependencyGraph:
    """Graph over issues keyed by ``(project_id, iid)``.

    A reference resolves only within the referring issue's project; references
    to issues outside *issues* are dropped.
    """
    known = {(issue.project_id, issue.iid) for issue in issues}
    nodes = [
        DependencyNode(
            project_id=issue.project_id,
            iid=issue.iid,
            title=issue.title,
            state=issue.state,
            labels=list(issue.labels),
        )
        for issue in issues
    ]
    links = [
        DependencyLink(source=dependency, target=issue.iid, project_id=issue.project_id)
        for issue in issues
        for dependency in extract_dependencies(issue.description)
        if (issue.project_id, dependency) in known
    ]
    return DependencyGraph(nodes=nodes, links=links)


def find_circular_dependencies(issues: Sequence[Issue]) -> list[CircularDependency]:
    """Every edge that closes a cycle, found by depth-first search over an explicit stack."""
    graph = build_dependency_graph(issues)
    visited: set[IssueKey] = set()
    on_path: set[IssueKey] = set()
    circular: list[CircularDependency] = []

    for start in graph.nodes:
        if start.key in visited:
            continue
        visited.add(start.key)
        on_path.add(start.key)
        stack: list[tuple[IssueKey, Iterator[DependencyLink]]] = [(start.key, iter(graph.outgoing(*start.key)))]
        while stack:
            node, edges = stack[-1]
            for link in edges:
                target = (link.project_id, link.target)
                if target in on_path:
                    circular.append(
                        CircularDependency(from_iid=link.source, to_iid=link.target, project_id=link.project_id)
                    )
                elif target not in visited:
                    visited.add(target)
                    on_path.add(target)
                    stack.append((target, iter(graph.outgoing(*target))))
                    break
            else:
                stack.pop()
                on_path.discard(node)
    return circular


def calculate_dependency_depths(graph: DependencyGraph) -> dict[IssueKey, int]:
    """Longest chain of dependencies leading into each issue.

    A node met again while its own depth is still open counts as depth 0, so
    cycles terminate.
    """
    depths: dict[IssueKey, int] = {}
    open_nodes: set[IssueKey] = set()

    for start in graph.nodes:
        if start.key in depths:
            continue
        open_nodes.add(start.key)
        # frame: node, remaining incoming edges, deepest source seen so far
        stack: list[list[Any]] = [[start.key, iter(graph.incoming(*start.key)), 0]]
        while stack:
            frame = stack[-1]
            for link in frame[1]:
                source = (link.project_id, link.source)
                if source in depths:
                    frame[2] = max(frame[2], depths[source] + 1)
                elif source in open_nodes:
                    frame[2] = max(frame[2], 1)
                else:
                    open_nodes.add(source)
                    stack.append([source, iter(graph.incoming(*source)), 0])
                    break
            else:
                stack.pop()
                open_nodes.discard(frame[0])
                depths[frame[0]] = frame[2]
                if stack:
                    stack[-1][2] = max(stack[-1][2], frame[2] + 1)
    return depths


def calculate_critical_path(issues: Sequence[Issue]) -> CriticalPath:
    """Issues at the end of the longest dependency chain."""
    if not issues:
        return CriticalPath()
    depths = calculate_dependency_depths(build_dependency_graph(issues))
    longest = max(depths.values(), default=0)
    return CriticalPath(
        length=longest,
        issues=[issue for issue in issues if depths.get((issue.project_id, issue.iid)) == longest],
    )


def get_blocked_issues(issues: Sequence[Issue]) -> list[BlockedIssue]:
    """Open issues waiting on at least one open issue of the same project."""
    by_key = {(issue.project_id, issue.iid): issue for issue in issues}
    blocked: list[BlockedIssue] = []
    for issue in issues:
        if issue.is_closed:
            continue
        unresolved = []
        for iid in extract_dependencies(issue.description):
            dependency = by_key.get((issue.project_id, iid))
            if dependency is not None and not dependency.is_closed:
                unresolved.append(iid)
        if unresolved:
            blocked.append(BlockedIssue(issue=issue, blocked_by=unresolved))
    return blocked
