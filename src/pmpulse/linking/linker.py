"""Issue-to-epic linking, cross-project detection and epic hierarchy."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import date

from pydantic import BaseModel, Field

from pmpulse.contracts.linking import (
    Complexity,
    CrossProjectLink,
    CrossProjectMetadata,
    EpicDependency,
    EpicHierarchy,
    EpicIssueGroup,
    EpicNode,
    LinkResult,
    LinkStatistics,
)
from pmpulse.contracts.models import Epic, Issue

_ORPHAN_HINTS = ("epic", "feature")
_WORD_SPLIT = re.compile(r"\s+")


class EpicSuggestion(BaseModel):
    epic: Epic
    score: int
    confidence: str


class IssueSuggestions(BaseModel):
    issue: Issue
    suggestions: list[EpicSuggestion] = Field(default_factory=list)


class EpicBreakdown(BaseModel):
    epic_id: int
    epic_title: str
    total_issues: int
    cross_project_issues: int
    project_count: int
    projects: list[int]
    complexity: Complexity


class ReportRecommendation(BaseModel):
    type: str
    title: str
    description: str
    action: str
    epics: list[str] = Field(default_factory=list)


class CrossProjectReport(BaseModel):
    statistics: LinkStatistics
    health_status: str
    epic_breakdown: list[EpicBreakdown] = Field(default_factory=list)
    recommendations: list[ReportRecommendation] = Field(default_factory=list)


def complexity_for(project_count: int) -> Complexity:
    if project_count > 3:
        return Complexity.HIGH
    if project_count > 1:
        return Complexity.MEDIUM
    return Complexity.LOW


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


def _child_sort_key(node: EpicNode) -> tuple[int, date, str, int]:
    start = node.epic.start_date
    # Dated epics first, by date; undated ones after, by title.
    if start is None:
        return (1, date.min, node.epic.title, node.id)
    return (0, start, node.epic.title, node.id)


def build_epic_hierarchy(epics: Iterable[Epic]) -> EpicHierarchy:
    """Build the epic forest; a parent outside the input makes the epic a root.

    Parent cycles are broken at their lowest epic id, so the result does not
    depend on input order.
    """
    epic_map: dict[int, EpicNode] = {}
    for epic in epics:
        epic_map.setdefault(epic.id, EpicNode(epic=epic, parent_id=epic.parent_id, path=[epic.id]))

    roots: list[EpicNode] = []
    for epic_id in sorted(epic_map):
        node = epic_map[epic_id]
        parent_id = node.parent_id
        if parent_id is None or parent_id not in epic_map or _creates_cycle(epic_map, node.id, parent_id):
            node.parent_id = None
            roots.append(node)
            continue
        epic_map[parent_id].children.append(node.id)

    roots.sort(key=_child_sort_key)
    pending: list[tuple[EpicNode, int, list[int]]] = [(root, 0, []) for root in reversed(roots)]
    while pending:
        node, level, path = pending.pop()
        node.level = level
        node.path = [*path, node.id]
        children = sorted((epic_map[child_id] for child_id in node.children), key=_child_sort_key)
        node.children = [child.id for child in children]
        pending.extend((child, level + 1, node.path) for child in reversed(children))
    return EpicHierarchy(root_epics=roots, epic_map=epic_map)


def _creates_cycle(epic_map: dict[int, EpicNode], epic_id: int, parent_id: int) -> bool:
    """True when following parents from *parent_id* leads back to *epic_id*."""
    seen: set[int] = set()
    current: int | None = parent_id
    while current is not None and current not in seen:
        if current == epic_id:
            return True
        seen.add(current)
        node = epic_map.get(current)
        current = node.parent_id if node is not None else None
    return False


# ---------------------------------------------------------------------------
# Linking
# ---------------------------------------------------------------------------


def link_cross_project_issues(issues: Sequence[Issue], epics: Sequence[Epic]) -> LinkResult:
    """Group issues under their epics and derive cross-project relations."""
    epic_issue_map: dict[int, EpicIssueGroup] = {}
    for epic in epics:
        epic_issue_map.setdefault(epic.id, EpicIssueGroup(epic=epic))

    project_epic_map: dict[int, set[int]] = {}
    cross_project_links: list[CrossProjectLink] = []
    linked_issues: list[Issue] = []
    unresolved: list[Issue] = []

    for issue in issues:
        group = epic_issue_map.get(issue.epic.id) if issue.epic is not None else None
        if group is None:
            if issue.epic is not None:
                unresolved.append(issue)
            linked_issues.append(issue)
            continue

        linked = issue.model_copy(update={"epic": group.epic})
        linked_issues.append(linked)
        group.issues.append(linked)
        group.projects.add(issue.project_id)
        project_epic_map.setdefault(issue.project_id, set()).add(group.epic.id)

        if group.epic.group_id != issue.namespace_id:
            group.cross_project_issues.append(linked)
            cross_project_links.append(
                CrossProjectLink(
                    epic_id=group.epic.id,
                    issue_id=issue.id,
                    epic_group_id=group.epic.group_id,
                    issue_project_id=issue.project_id,
                )
            )

    return LinkResult(
        epic_issue_map=epic_issue_map,
        project_epic_map=project_epic_map,
        cross_project_links=cross_project_links,
        statistics=calculate_link_statistics(epic_issue_map, cross_project_links),
        epic_hierarchy=build_epic_hierarchy(epics),
        epic_dependencies=find_epic_dependencies(linked_issues),
        issues=linked_issues,
        # Issues pointing at an epic outside the snapshot are orphans too.
        orphaned_issues=unresolved + find_orphaned_issues(linked_issues),
    )


def calculate_link_statistics(
    epic_issue_map: dict[int, EpicIssueGroup],
    cross_project_links: Sequence[CrossProjectLink],
) -> LinkStatistics:
    projects: set[int] = set()
    with_issues = 0
    with_cross = 0
    for group in epic_issue_map.values():
        if group.issues:
            with_issues += 1
        if group.cross_project_issues:
            with_cross += 1
        projects.update(group.projects)
    return LinkStatistics(
        total_epics=len(epic_issue_map),
        epics_with_issues=with_issues,
        epics_with_cross_project_issues=with_cross,
        total_cross_project_links=len(cross_project_links),
        project_count=len(projects),
        avg_projects_per_epic=round(len(projects) / with_issues, 1) if with_issues else 0.0,
    )


def find_epic_dependencies(issues: Sequence[Issue]) -> list[EpicDependency]:
    """Epic pairs where an issue of one epic blocks an issue of another, each pair once.

    Relies on ``Issue.links``, which the provider's issue listing leaves empty;
    callers that want epic dependencies supply the links themselves. Only
    ``blocks`` links count, read from the blocking side.
    """
    by_id = {issue.id: issue for issue in issues}
    seen: set[tuple[int, int]] = set()
    dependencies: list[EpicDependency] = []
    for issue in issues:
        if issue.epic is None:
            continue
        for link in issue.links:
            if link.link_type != "blocks":
                continue
            target = by_id.get(link.target_id)
            if target is None or target.epic is None or target.epic.id == issue.epic.id:
                continue
            pair = (issue.epic.id, target.epic.id)
            if pair in seen:
                continue
            seen.add(pair)
            dependencies.append(
                EpicDependency(
                    from_epic=_as_epic(issue.epic),
                    to_epic=_as_epic(target.epic),
                    from_issue=issue,
                    to_issue=target,
                )
            )
    return dependencies


def _as_epic(ref: object) -> Epic:
    if isinstance(ref, Epic):
        return ref
    return Epic.model_validate(ref, from_attributes=True)


def enhance_epics_with_cross_project_data(
    epics: Iterable[Epic],
    link_result: LinkResult,
) -> dict[int, CrossProjectMetadata]:
    metadata: dict[int, CrossProjectMetadata] = {}
    for epic in epics:
        group = link_result.epic_issue_map.get(epic.id) or EpicIssueGroup(epic=epic)
        projects = sorted(group.projects)
        metadata[epic.id] = CrossProjectMetadata(
            issue_count=len(group.issues),
            project_count=len(projects),
            projects=projects,
            cross_project_issue_count=len(group.cross_project_issues),
            has_multiple_projects=len(projects) > 1,
            complexity=complexity_for(len(projects)),
        )
    return metadata


def generate_cross_project_report(link_result: LinkResult) -> CrossProjectReport:
    stats = link_result.statistics
    if stats.epics_with_cross_project_issues > stats.epics_with_issues * 0.5:
        health = "Complex - High cross-project coordination needed"
    elif stats.epics_with_cross_project_issues > stats.epics_with_issues * 0.2:
        health = "Moderate - Some cross-project coordination"
    else:
        health = "Simple - Mostly project-isolated work"

    breakdown = [
        EpicBreakdown(
            epic_id=epic_id,
            epic_title=group.epic.title,
            total_issues=len(group.issues),
            cross_project_issues=len(group.cross_project_issues),
            project_count=len(group.projects),
            projects=sorted(group.projects),
            complexity=complexity_for(len(group.projects)),
        )
        for epic_id, group in link_result.epic_issue_map.items()
        if group.issues
    ]

    recommendations: list[ReportRecommendation] = []
    if stats.epics_with_cross_project_issues > stats.epics_with_issues * 0.3:
        recommendations.append(
            ReportRecommendation(
                type="warning",
                title="High Cross-Project Complexity",
                description=f"{stats.epics_with_cross_project_issues} epics span multiple projects",
                action="Consider dedicated cross-team coordination meetings",
            )
        )
    high = [entry.epic_title for entry in breakdown if entry.complexity == Complexity.HIGH]
    if high:
        recommendations.append(
            ReportRecommendation(
                type="info",
                title="Epics Requiring Extra Attention",
                description=f"{len(high)} epics span more than 3 projects",
                action="Assign dedicated epic owners for coordination",
                epics=high,
            )
        )
    return CrossProjectReport(
        statistics=stats,
        health_status=health,
        epic_breakdown=breakdown,
        recommendations=recommendations,
    )


# ---------------------------------------------------------------------------
# Orphans
# ---------------------------------------------------------------------------


def find_orphaned_issues(issues: Iterable[Issue]) -> list[Issue]:
    """Issues without an epic whose labels suggest they belong to one."""
    return [
        issue
        for issue in issues
        if issue.epic is None and any(hint in label.lower() for label in issue.labels for hint in _ORPHAN_HINTS)
    ]


def suggest_epic_assignments(
    orphaned_issues: Iterable[Issue],
    epics: Sequence[Epic],
    link_result: LinkResult | None = None,
) -> list[IssueSuggestions]:
    """Score every epic for each orphan and keep the three best positive scores."""
    epic_assignees: dict[int, set[str]] = {}
    epic_milestones: dict[int, set[int]] = {}
    if link_result is not None:
        for epic_id, group in link_result.epic_issue_map.items():
            epic_assignees[epic_id] = {name for issue in group.issues for name in issue.assignee_usernames}
            epic_milestones[epic_id] = {issue.milestone.id for issue in group.issues if issue.milestone is not None}

    results: list[IssueSuggestions] = []
    for issue in orphaned_issues:
        issue_labels = {label.lower() for label in issue.labels}
        title_words = [word for word in _WORD_SPLIT.split(issue.title.lower()) if len(word) > 3]
        scored: list[tuple[int, Epic]] = []

        for epic in epics:
            score = 10 * len(issue_labels & {label.lower() for label in epic.labels})
            if issue.milestone is not None and issue.milestone.id in epic_milestones.get(epic.id, set()):
                score += 20
            epic_title = epic.title.lower()
            score += 5 * sum(1 for word in title_words if word in epic_title)
            if set(issue.assignee_usernames) & epic_assignees.get(epic.id, set()):
                score += 15
            if score > 0:
                scored.append((score, epic))

        scored.sort(key=lambda entry: entry[0], reverse=True)
        if scored:
            results.append(
                IssueSuggestions(
                    issue=issue,
                    suggestions=[
                        EpicSuggestion(epic=epic, score=score, confidence=_confidence(score))
                        for score, epic in scored[:3]
                    ],
                )
            )
    return results


def _confidence(score: int) -> str:
    if score > 30:
        return "high"
    if score > 15:
        return "medium"
    return "low"
