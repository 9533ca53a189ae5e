"""Forecast commands: record a forecast, report reliability."""

from __future__ import annotations

import argparse

from rich.table import Table

from pmpulse import Forecast, ForecastType
from pmpulse.analytics.forecasts import Reliability
from pmpulse.cli.common import key_value_table, print_renderables


def format_forecast_table(forecast: Forecast) -> Table:
    return key_value_table(
        "Forecast recorded",
        [
            ("Id", forecast.id),
            ("Type", forecast.type.value),
            ("Target", f"{forecast.target_name} ({forecast.target_id})"),
            ("Target date", forecast.target_date.date().isoformat()),
            ("Scope", forecast.scope_size),
            ("Confidence", f"{forecast.confidence_score}%"),
        ],
    )


def format_reliability_tables(reliability: Reliability) -> list[Table]:
    summary = key_value_table(
        "Forecast reliability",
        [
            ("Score", f"{reliability.score}/100" if reliability.score is not None else None),
            ("Reason", reliability.reason or None),
            ("Recommendation", reliability.recommendation),
        ],
    )
    if not reliability.factors:
        return [summary]

    factors = Table(title="Factors", title_justify="left")
    factors.add_column("Factor")
    factors.add_column("Points", justify="right")
    factors.add_column("Detail")
    for factor in reliability.factors:
        factors.add_row(factor.name, f"{factor.points}/{factor.max_points}", factor.detail)
    return [summary, factors]


async def run_record_forecast(args: argparse.Namespace) -> int:
    import pmpulse.cli as cli

    config = cli.load_config(args.config)
    pulse = cli.PmPulse.from_config(config)
    forecast = pulse.record_forecast(
        ForecastType(args.type),
        args.target_id,
        args.target_name,
        args.target_date,
        args.scope,
        args.confidence,
    )
    print_renderables(format_forecast_table(forecast))
    return 0


async def run_reliability(args: argparse.Namespace) -> int:
    import pmpulse.cli as cli

    config = cli.load_config(args.config)
    pulse = cli.PmPulse.from_config(config)
    print_renderables(*format_reliability_tables(pulse.reliability()))
    return 0


__all__ = ["format_forecast_table", "format_reliability_tables", "run_record_forecast", "run_reliability"]
