"""SDK composition root for pmpulse."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from pmpulse.aggregation import Aggregator, PipelineProgress
from pmpulse.analytics.capacity import AbsenceCalendar, TeamRoster, team_members_from_issues
from pmpulse.analytics.cycle_time import EnhancedCycleTimeStats, get_enhanced_cycle_time_stats, get_or_fetch_label_events
from pmpulse.analytics.forecasts import ForecastTracker, Reliability
from pmpulse.analytics.rag import RagResult, calculate_epic_rag, get_historical_data
from pmpulse.analytics.velocity import (
    HoursPerStoryPoint,
    VelocityMetric,
    calculate_team_average_velocity,
    get_hours_per_story_point,
)
from pmpulse.auth import create_token_resolver
from pmpulse.context import AnalyticsContext
from pmpulse.contracts.config import PmPulseConfig
from pmpulse.contracts.exceptions import ConfigError, NotFoundError, ProviderError
from pmpulse.contracts.forecast import Forecast, ForecastType
from pmpulse.contracts.linking import CrossProjectMetadata
from pmpulse.contracts.models import Epic
from pmpulse.contracts.provider import Provider
from pmpulse.contracts.snapshot import Snapshot
from pmpulse.contracts.store import KeyValueStore
from pmpulse.linking import enhance_epics_with_cross_project_data
from pmpulse.providers.factory import create_provider

LabelProgressCallback = Callable[[int, int], None]


def _resolve_path(value: Path, *, base_dir: Path) -> Path:
    if value.is_absolute():
        return value
    return (base_dir / value).resolve()


def load_config(path: str | Path) -> PmPulseConfig:
    """Load and validate config from JSON, resolving the store path against the config directory."""
    config_path = Path(path).expanduser().resolve()

    try:
        raw_payload: Any = json.loads(config_path.read_text(encoding="utf-8"))
        parsed = PmPulseConfig.model_validate(raw_payload)
    except OSError as exc:
        raise ConfigError(f"failed reading config file: {config_path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON in config file: {config_path}") from exc
    except ValidationError as exc:
        raise ConfigError(f"invalid config: {exc}") from exc

    return parsed.model_copy(update={"store_path": _resolve_path(parsed.store_path, base_dir=config_path.parent)})


class EpicAnalysis(BaseModel):
    epic: Epic
    rag: RagResult
    cross_project: CrossProjectMetadata | None = None


class PmPulse:
    """pmpulse SDK public API."""

    def __init__(
        self,
        *,
        config: PmPulseConfig,
        context: AnalyticsContext,
        provider: Provider | None = None,
        progress: PipelineProgress | None = None,
    ) -> None:
        self._config = config
        self._context = context
        self._provider = provider
        self._progress = progress

    @classmethod
    def from_config(
        cls,
        config: PmPulseConfig,
        *,
        provider: Provider | None = None,
        backend: KeyValueStore | None = None,
        progress: PipelineProgress | None = None,
    ) -> PmPulse:
        return cls(
            config=config,
            context=AnalyticsContext.from_config(config, backend=backend),
            provider=provider,
            progress=progress,
        )

    @property
    def context(self) -> AnalyticsContext:
        return self._context

    @property
    def forecasts(self) -> ForecastTracker:
        return ForecastTracker(self._context.store, clock=self._context.clock)

    @property
    def roster(self) -> TeamRoster:
        return TeamRoster(self._context.store, AbsenceCalendar(self._context.store, clock=self._context.clock))

    # ------------------------------------------------------------------
    # Upstream
    # ------------------------------------------------------------------

    async def aggregate(self) -> Snapshot:
        provider = await self._resolve_provider()
        try:
            async with provider:
                return await Aggregator(provider, self._config, progress=self._progress).fetch_all()
        except* ProviderError as provider_errors:
            raise provider_errors.exceptions[0] from None

    async def analyze_epic(self, epic_id: int, snapshot: Snapshot | None = None) -> EpicAnalysis:
        snapshot = snapshot if snapshot is not None else await self.aggregate()
        group = snapshot.cross_project_data.epic_issue_map.get(epic_id)
        if group is None:
            raise NotFoundError(f"epic {epic_id} is not part of the aggregated sources")

        historical = get_historical_data(issue for issue in snapshot.issues if issue.is_closed)
        rag = calculate_epic_rag(group.epic, group.issues, historical, now=self._context.now())
        metadata = enhance_epics_with_cross_project_data([group.epic], snapshot.cross_project_data)
        return EpicAnalysis(epic=group.epic, rag=rag, cross_project=metadata.get(epic_id))

    async def cycle_time(
        self,
        snapshot: Snapshot | None = None,
        *,
        accurate: bool = False,
        on_progress: LabelProgressCallback | None = None,
    ) -> EnhancedCycleTimeStats:
        """Cycle and lead time statistics; *accurate* replays label history of closed issues."""
        snapshot = snapshot if snapshot is not None else await self.aggregate()
        if not accurate:
            return get_enhanced_cycle_time_stats(snapshot.issues, {})

        provider = await self._resolve_provider()
        try:
            async with provider:
                events = await get_or_fetch_label_events(
                    provider,
                    snapshot.issues,
                    self._context.label_cache,
                    max_concurrent=self._config.max_concurrent_label_events,
                    on_progress=on_progress,
                )
        except* ProviderError as provider_errors:
            raise provider_errors.exceptions[0] from None
        return get_enhanced_cycle_time_stats(snapshot.issues, events)

    async def velocity(
        self,
        username: str,
        snapshot: Snapshot | None = None,
        *,
        weekly_hours: float | None = None,
        metric: VelocityMetric = VelocityMetric.POINTS,
    ) -> HoursPerStoryPoint:
        snapshot = snapshot if snapshot is not None else await self.aggregate()
        roster = self.roster
        settings = roster.capacity_settings()
        members = roster.team_config().members or team_members_from_issues(snapshot.issues)
        member = next((candidate for candidate in members if candidate.username == username), None)
        if weekly_hours is None:
            weekly_hours = member.default_capacity if member is not None else settings.default_weekly_capacity

        team_average = calculate_team_average_velocity(
            members, snapshot.issues, absences=roster.absences, metric=metric
        )
        return get_hours_per_story_point(
            username,
            snapshot.issues,
            weekly_hours,
            team_average,
            static_hours_per_story_point=settings.static_hours_per_story_point,
            static_hours_per_issue=settings.default_hours_per_issue,
            absences=roster.absences,
            metric=metric,
        )

    # ------------------------------------------------------------------
    # Forecasts
    # ------------------------------------------------------------------

    def record_forecast(
        self,
        type: ForecastType,
        target_id: str,
        target_name: str,
        target_date: date,
        scope_size: int,
        confidence_score: int,
    ) -> Forecast:
        return self.forecasts.record_forecast(type, target_id, target_name, target_date, scope_size, confidence_score)

    def reliability(self) -> Reliability:
        return self.forecasts.calculate_reliability()

    async def _resolve_provider(self) -> Provider:
        if self._provider is not None:
            return self._provider

        token_resolver = create_token_resolver(self._config)
        token = await token_resolver.resolve()
        return create_provider(self._config, token=token)
