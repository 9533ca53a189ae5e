"""Public API surface for pmpulse."""

from pmpulse.aggregation import Aggregator, PipelineProgress
from pmpulse.auth import create_token_resolver
from pmpulse.context import AnalyticsContext
from pmpulse.contracts.config import AggregationMode, PmPulseConfig, SourceConfig, SourceType
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
from pmpulse.contracts.forecast import Forecast, ForecastStatus, ForecastType
from pmpulse.contracts.models import Epic, Issue, Milestone, Phase
from pmpulse.contracts.provider import Provider
from pmpulse.contracts.snapshot import Snapshot, SourceStatus
from pmpulse.providers import create_provider
from pmpulse.sdk import EpicAnalysis, PmPulse, load_config

__all__ = [
    "AggregationMode",
    "Aggregator",
    "AnalyticsContext",
    "AuthenticationError",
    "ConfigError",
    "Epic",
    "EpicAnalysis",
    "FeatureUnavailableError",
    "ForbiddenError",
    "Forecast",
    "ForecastNotFoundError",
    "ForecastStatus",
    "ForecastType",
    "Issue",
    "Milestone",
    "NetworkError",
    "NotFoundError",
    "Phase",
    "PipelineProgress",
    "PmPulse",
    "PmPulseConfig",
    "PmPulseError",
    "Provider",
    "ProviderError",
    "Snapshot",
    "SourceConfig",
    "SourceStatus",
    "SourceType",
    "StoreError",
    "UpstreamError",
    "create_provider",
    "create_token_resolver",
    "load_config",
]
