"""Label-derived issue attributes."""

from __future__ import annotations

import re
from collections.abc import Iterable

from pmpulse.contracts.models import Issue, IterationRef

_STORY_POINT_LABEL = re.compile(r"^sp::(\d+)", re.IGNORECASE)
_FIRST_NUMBER = re.compile(r"\d+")
_WEIGHT_HINTS = ("weight", "points", "days")


def get_sprint_from_labels(labels: Iterable[str], iteration: IterationRef | None = None) -> str | None:
    """Return the sprint name: the iteration title when present, else a ``sprint``/``iteration`` label."""
    if iteration is not None and iteration.title:
        return iteration.title
    for label in labels:
        lowered = label.lower()
        if lowered.startswith("sprint") or lowered.startswith("iteration"):
            return label
    return None


def is_blocked(labels: Iterable[str]) -> bool:
    return any("blocked" in label.lower() or "blocker" in label.lower() for label in labels)


def get_issue_weight(issue: Issue) -> int:
    """Effort in days used by workload calculations."""
    if issue.weight and issue.weight > 0:
        return issue.weight

    for label in issue.labels:
        lowered = label.lower()
        if any(hint in lowered for hint in _WEIGHT_HINTS):
            match = _FIRST_NUMBER.search(label)
            if match:
                return int(match.group())

    if issue.is_closed:
        return 0
    if any("small" in label.lower() for label in issue.labels):
        return 1
    return 3


def get_story_points(issue: Issue) -> int:
    """Story points from an ``sp::N`` label, falling back to the issue weight."""
    for label in issue.labels:
        match = _STORY_POINT_LABEL.match(label.strip())
        if match:
            return int(match.group(1))
    return issue.weight or 0
