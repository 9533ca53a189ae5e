"""Forecast recording, outcome tracking and reliability scoring."""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Callable, Iterable
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from pmpulse.analytics.dates import as_datetime, days_between, round_half_up, utc_now
from pmpulse.contracts.exceptions import ForecastNotFoundError
from pmpulse.contracts.forecast import Forecast, ForecastAccuracy, ForecastStatus, ForecastType
from pmpulse.contracts.models import Milestone
from pmpulse.store.scoped import ScopedStore

_LOG = logging.getLogger(__name__)

ON_TIME_DAYS = 3
ERROR_WINDOW_DAYS = 30
MIN_RELIABILITY_SAMPLE = 5
MIN_CORRELATION_BUCKET = 3


class AccuracyStats(BaseModel):
    total_forecasts: int = 0
    completed_forecasts: int = 0
    overall_accuracy: int = 0
    avg_days_off: int = 0
    on_time_count: int = 0
    early_count: int = 0
    late_count: int = 0
    on_time_percentage: int = 0
    avg_confidence_score: int = 0
    confidence_correlation: str = "unknown"
    high_confidence_accuracy: int = 0
    low_confidence_accuracy: int = 0


class MonthlyDistribution(BaseModel):
    on_time: int = 0
    early: int = 0
    late: int = 0


class MonthlyTrend(BaseModel):
    month: str
    total_forecasts: int
    on_time_percentage: int
    avg_days_off: int
    distribution: MonthlyDistribution


class ReliabilityFactor(BaseModel):
    name: str
    points: int
    max_points: int
    detail: str


class Reliability(BaseModel):
    score: int | None
    reason: str = ""
    recommendation: str
    factors: list[ReliabilityFactor] = Field(default_factory=list)
    stats: AccuracyStats | None = None


def compute_accuracy(target_date: datetime, actual_date: datetime) -> ForecastAccuracy:
    diff = round_half_up(days_between(target_date, actual_date))
    return ForecastAccuracy(
        diff_days=diff,
        percentage_error=abs(diff) / ERROR_WINDOW_DAYS * 100,
        was_early=diff < 0,
        was_on_time=abs(diff) <= ON_TIME_DAYS,
        was_late=diff > ON_TIME_DAYS,
    )


def _new_forecast_id() -> str:
    return f"forecast-{uuid.uuid4().hex[:12]}"


class ForecastTracker:
    """Forecast history of the active store context."""

    def __init__(
        self,
        store: ScopedStore,
        *,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = _new_forecast_id,
    ) -> None:
        self._store = store
        self._clock = clock
        self._id_factory = id_factory

    def forecasts(self) -> list[Forecast]:
        return self._store.forecasts()

    def record_forecast(
        self,
        type: ForecastType,
        target_id: str | int,
        target_name: str,
        target_date: date | datetime,
        scope_size: int,
        confidence_score: int,
        metadata: dict[str, Any] | None = None,
    ) -> Forecast:
        forecast = Forecast(
            id=self._id_factory(),
            type=type,
            target_id=str(target_id),
            target_name=target_name,
            created_at=self._clock(),
            target_date=as_datetime(target_date),
            scope_size=scope_size,
            confidence_score=confidence_score,
            metadata=metadata or {},
        )
        history = self._store.forecasts()
        history.append(forecast)
        self._store.save_forecasts(history)
        _LOG.debug("Recorded %s forecast %s for %s", type, forecast.id, target_name)
        return forecast

    def update_forecast_outcome(
        self,
        forecast_id: str,
        actual_date: date | datetime | None,
        status: ForecastStatus = ForecastStatus.COMPLETED,
    ) -> Forecast:
        """Close a forecast; accuracy is computed only for completed forecasts."""
        history = self._store.forecasts()
        for index, forecast in enumerate(history):
            if forecast.id != forecast_id:
                continue
            actual = as_datetime(actual_date) if actual_date is not None else None
            accuracy = None
            if status == ForecastStatus.COMPLETED and actual is not None:
                accuracy = compute_accuracy(forecast.target_date, actual)
            updated = forecast.model_copy(update={"actual_date": actual, "status": status, "accuracy": accuracy})
            history[index] = updated
            self._store.save_forecasts(history)
            return updated
        raise ForecastNotFoundError(f"unknown forecast: {forecast_id}", forecast_id=forecast_id)

    def get_recent_forecasts(self, limit: int = 10) -> list[Forecast]:
        return sorted(self._store.forecasts(), key=lambda forecast: forecast.created_at, reverse=True)[:limit]

    def get_forecasts_by_status(self, status: ForecastStatus) -> list[Forecast]:
        return sorted(
            (forecast for forecast in self._store.forecasts() if forecast.status == status),
            key=lambda forecast: forecast.created_at,
            reverse=True,
        )

    def _completed(self) -> tuple[list[Forecast], list[Forecast]]:
        history = self._store.forecasts()
        completed = [f for f in history if f.status == ForecastStatus.COMPLETED and f.accuracy is not None]
        return history, completed

    # ------------------------------------------------------------------
    # Accuracy
    # ------------------------------------------------------------------

    def get_accuracy_stats(self) -> AccuracyStats:
        history, completed = self._completed()
        if not completed:
            return AccuracyStats(total_forecasts=len(history))

        count = len(completed)
        on_time = sum(1 for f in completed if f.accuracy.was_on_time)
        early = sum(1 for f in completed if f.accuracy.was_early and not f.accuracy.was_on_time)
        late = sum(1 for f in completed if f.accuracy.was_late)
        avg_error = sum(f.accuracy.percentage_error for f in completed) / count

        high = [f for f in completed if f.confidence_score >= 70]
        low = [f for f in completed if f.confidence_score < 50]
        high_accuracy = _on_time_rate(high)
        low_accuracy = _on_time_rate(low)

        correlation = "unknown"
        if len(high) >= MIN_CORRELATION_BUCKET and len(low) >= MIN_CORRELATION_BUCKET:
            if high_accuracy > low_accuracy + 20:
                correlation = "strong"
            elif high_accuracy > low_accuracy + 10:
                correlation = "moderate"
            else:
                correlation = "weak"

        return AccuracyStats(
            total_forecasts=len(history),
            completed_forecasts=count,
            overall_accuracy=max(0, round_half_up(100 - avg_error)),
            avg_days_off=round_half_up(sum(abs(f.accuracy.diff_days) for f in completed) / count),
            on_time_count=on_time,
            early_count=early,
            late_count=late,
            on_time_percentage=round_half_up(on_time / count * 100),
            avg_confidence_score=round_half_up(sum(f.confidence_score for f in completed) / count),
            confidence_correlation=correlation,
            high_confidence_accuracy=round_half_up(high_accuracy),
            low_confidence_accuracy=round_half_up(low_accuracy),
        )

    def get_accuracy_trends(self, months: int = 6) -> list[MonthlyTrend]:
        """Completed forecasts grouped by creation month, last *months* months."""
        _, completed = self._completed()
        grouped: dict[str, list[Forecast]] = {}
        for forecast in completed:
            grouped.setdefault(forecast.created_at.strftime("%Y-%m"), []).append(forecast)

        trends = []
        for month in sorted(grouped):
            entries = grouped[month]
            distribution = MonthlyDistribution()
            for forecast in entries:
                if forecast.accuracy.was_on_time:
                    distribution.on_time += 1
                elif forecast.accuracy.was_early:
                    distribution.early += 1
                elif forecast.accuracy.was_late:
                    distribution.late += 1
            trends.append(
                MonthlyTrend(
                    month=month,
                    total_forecasts=len(entries),
                    on_time_percentage=round_half_up(distribution.on_time / len(entries) * 100),
                    avg_days_off=round_half_up(sum(abs(f.accuracy.diff_days) for f in entries) / len(entries)),
                    distribution=distribution,
                )
            )
        return trends[-months:] if months > 0 else []

    def calculate_reliability(self) -> Reliability:
        """Score 0-100 from on-time rate, accuracy, confidence correlation and sample size."""
        stats = self.get_accuracy_stats()
        if stats.completed_forecasts < MIN_RELIABILITY_SAMPLE:
            return Reliability(
                score=None,
                reason=f"Insufficient data (need at least {MIN_RELIABILITY_SAMPLE} completed forecasts)",
                recommendation="Continue tracking forecasts to build confidence",
                stats=stats,
            )

        correlation_points = {"strong": 20, "moderate": 12, "weak": 5}.get(stats.confidence_correlation, 0)
        factors = [
            ReliabilityFactor(
                name="On-Time Rate",
                points=round_half_up(stats.on_time_percentage / 100 * 40),
                max_points=40,
                detail=f"{stats.on_time_percentage}% on time",
            ),
            ReliabilityFactor(
                name="Overall Accuracy",
                points=round_half_up(stats.overall_accuracy / 100 * 30),
                max_points=30,
                detail=f"{stats.overall_accuracy}% accurate",
            ),
            ReliabilityFactor(
                name="Confidence Reliability",
                points=correlation_points,
                max_points=20,
                detail=f"{stats.confidence_correlation} correlation",
            ),
            ReliabilityFactor(
                name="Data Sample",
                points=min(10, round_half_up(stats.completed_forecasts / 20 * 10)),
                max_points=10,
                detail=f"{stats.completed_forecasts} forecasts",
            ),
        ]
        score = sum(factor.points for factor in factors)
        if score >= 80:
            recommendation = "Excellent forecast reliability. Predictions are highly trustworthy."
        elif score >= 60:
            recommendation = "Good forecast reliability. Continue monitoring and refining."
        elif score >= 40:
            recommendation = "Moderate reliability. Focus on improving accuracy factors."
        else:
            recommendation = "Low reliability. Review forecasting methodology and assumptions."
        return Reliability(score=score, recommendation=recommendation, factors=factors, stats=stats)

    # ------------------------------------------------------------------
    # Auto-capture
    # ------------------------------------------------------------------

    def auto_record_from_milestones(
        self,
        milestones: Iterable[Milestone],
        current_velocity: float | None = None,
    ) -> list[Forecast]:
        """Record a pending forecast for each dated milestone that has none yet."""
        pending = {
            forecast.target_id
            for forecast in self._store.forecasts()
            if forecast.type == ForecastType.MILESTONE and forecast.status == ForecastStatus.PENDING
        }
        now = self._clock()
        created: list[Forecast] = []
        for milestone in milestones:
            if str(milestone.id) in pending or milestone.due_date is None or milestone.stats is None:
                continue
            stats = milestone.stats
            progress = stats.closed_issues / stats.total_issues * 100 if stats.total_issues else 0.0
            days_until_due = math.ceil(days_between(now, milestone.due_date))
            if progress > 80 and days_until_due > 0:
                confidence = 85
            elif progress > 60 and days_until_due > 3:
                confidence = 70
            elif progress < 30 and days_until_due < 7:
                confidence = 30
            else:
                confidence = 50
            created.append(
                self.record_forecast(
                    ForecastType.MILESTONE,
                    milestone.id,
                    milestone.title,
                    milestone.due_date,
                    stats.total_issues,
                    confidence,
                    {
                        "progress": progress,
                        "openIssues": stats.total_issues - stats.closed_issues,
                        "velocity": current_velocity,
                        "autoGenerated": True,
                    },
                )
            )
            pending.add(str(milestone.id))
        if created:
            _LOG.info("Recorded %d milestone forecasts", len(created))
        return created


def _on_time_rate(forecasts: list[Forecast]) -> float:
    if not forecasts:
        return 0.0
    return sum(1 for f in forecasts if f.accuracy.was_on_time) / len(forecasts) * 100
