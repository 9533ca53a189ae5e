"""Analytics module exports."""

from pmpulse.analytics.capacity import AbsenceCalendar, TeamRoster
from pmpulse.analytics.cycle_time import (
    LabelEventCache,
    calculate_accurate_cycle_time,
    fetch_batch_label_events,
    get_enhanced_cycle_time_stats,
    get_or_fetch_label_events,
)
from pmpulse.analytics.dependencies import (
    build_dependency_graph,
    calculate_critical_path,
    extract_dependencies,
    find_circular_dependencies,
    get_blocked_issues,
)
from pmpulse.analytics.forecasts import ForecastTracker
from pmpulse.analytics.phases import (
    DEFAULT_PHASE_PATTERNS,
    detect_issue_phase,
    estimated_cycle_time,
    get_cycle_time_stats,
    identify_bottlenecks,
    lead_time,
    time_in_current_phase,
)
from pmpulse.analytics.rag import RagStatus, calculate_epic_rag, get_historical_data
from pmpulse.analytics.velocity import (
    calculate_member_velocity,
    calculate_team_average_velocity,
    get_hours_per_story_point,
)
from pmpulse.analytics.workload import calculate_team_workload, generate_recommendations

__all__ = [
    "DEFAULT_PHASE_PATTERNS",
    "AbsenceCalendar",
    "ForecastTracker",
    "LabelEventCache",
    "RagStatus",
    "TeamRoster",
    "build_dependency_graph",
    "calculate_accurate_cycle_time",
    "calculate_critical_path",
    "calculate_epic_rag",
    "calculate_member_velocity",
    "calculate_team_average_velocity",
    "calculate_team_workload",
    "detect_issue_phase",
    "estimated_cycle_time",
    "extract_dependencies",
    "fetch_batch_label_events",
    "find_circular_dependencies",
    "generate_recommendations",
    "get_blocked_issues",
    "get_cycle_time_stats",
    "get_enhanced_cycle_time_stats",
    "get_historical_data",
    "get_hours_per_story_point",
    "get_or_fetch_label_events",
    "identify_bottlenecks",
    "lead_time",
    "time_in_current_phase",
]
