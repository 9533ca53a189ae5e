"""Issue-to-epic linking."""

from pmpulse.linking.linker import (
    CrossProjectReport,
    EpicSuggestion,
    IssueSuggestions,
    build_epic_hierarchy,
    enhance_epics_with_cross_project_data,
    find_epic_dependencies,
    find_orphaned_issues,
    generate_cross_project_report,
    link_cross_project_issues,
    suggest_epic_assignments,
)

__all__ = [
    "CrossProjectReport",
    "EpicSuggestion",
    "IssueSuggestions",
    "build_epic_hierarchy",
    "enhance_epics_with_cross_project_data",
    "find_epic_dependencies",
    "find_orphaned_issues",
    "generate_cross_project_report",
    "link_cross_project_issues",
    "suggest_epic_assignments",
]
