"""Public contracts for pmpulse."""

from pmpulse.contracts.config import AggregationMode, CapacitySettings, PmPulseConfig, SourceConfig, SourceType
from pmpulse.contracts.exceptions import (
    AuthenticationError,
    ConfigError,
    FeatureUnavailableError,
    ForbiddenError,
    ForecastNotFoundError,
    NetworkError,
    NotFoundError,
    PmPulseError,
    ProviderError,
    StoreError,
    UpstreamError,
)
from pmpulse.contracts.forecast import Forecast, ForecastAccuracy, ForecastStatus, ForecastType
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
from pmpulse.contracts.models import (
    Assignee,
    Epic,
    EpicRef,
    Issue,
    IssueLink,
    IssueState,
    IterationRef,
    LabelAction,
    LabelEvent,
    Milestone,
    MilestoneRef,
    MilestoneStats,
    Phase,
    ProjectInfo,
    TimeStats,
)
from pmpulse.contracts.provider import Provider
from pmpulse.contracts.snapshot import (
    Snapshot,
    SnapshotStatistics,
    SourceErrorRecord,
    SourceMetadata,
    SourceStatus,
)
from pmpulse.contracts.store import KeyValueStore, StoreContext, StoreKey
from pmpulse.contracts.team import (
    DEFAULT_ROLES,
    ROLE_COMPATIBILITY_GROUPS,
    Absence,
    AbsenceType,
    MemberCapacity,
    SprintCapacityRecord,
    TeamConfig,
    TeamMember,
)

__all__ = [
    "DEFAULT_ROLES",
    "ROLE_COMPATIBILITY_GROUPS",
    "Absence",
    "AbsenceType",
    "AggregationMode",
    "Assignee",
    "AuthenticationError",
    "CapacitySettings",
    "Complexity",
    "ConfigError",
    "CrossProjectLink",
    "CrossProjectMetadata",
    "Epic",
    "EpicDependency",
    "EpicHierarchy",
    "EpicIssueGroup",
    "EpicNode",
    "EpicRef",
    "FeatureUnavailableError",
    "ForbiddenError",
    "Forecast",
    "ForecastAccuracy",
    "ForecastNotFoundError",
    "ForecastStatus",
    "ForecastType",
    "Issue",
    "IssueLink",
    "IssueState",
    "IterationRef",
    "KeyValueStore",
    "LabelAction",
    "LabelEvent",
    "LinkResult",
    "LinkStatistics",
    "MemberCapacity",
    "Milestone",
    "MilestoneRef",
    "MilestoneStats",
    "NetworkError",
    "NotFoundError",
    "Phase",
    "PmPulseConfig",
    "PmPulseError",
    "ProjectInfo",
    "Provider",
    "ProviderError",
    "Snapshot",
    "SnapshotStatistics",
    "SourceConfig",
    "SourceErrorRecord",
    "SourceMetadata",
    "SourceStatus",
    "SourceType",
    "SprintCapacityRecord",
    "StoreContext",
    "StoreError",
    "StoreKey",
    "TeamConfig",
    "TeamMember",
    "TimeStats",
    "UpstreamError",
]
