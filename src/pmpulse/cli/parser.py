"""CLI parser construction."""

from __future__ import annotations

import argparse
from datetime import date
from importlib.metadata import PackageNotFoundError, version

from pmpulse.contracts.forecast import ForecastType


def _package_version() -> str:
    try:
        return version("pmpulse")
    except PackageNotFoundError:
        return "0.0.0"


def _percentage(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {value}") from exc
    if not 0 <= parsed <= 100:
        raise argparse.ArgumentTypeError("must be between 0 and 100")
    return parsed


def _non_negative(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {value}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("must not be negative")
    return parsed


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO date (YYYY-MM-DD): {value}") from exc


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default="./pmpulse.json", help="Path to pmpulse.json")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pmpulse")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    aggregate_parser = subparsers.add_parser("aggregate", help="Fetch all sources and print a summary")
    _add_common(aggregate_parser)

    epic_parser = subparsers.add_parser("analyze-epic", help="Evaluate the RAG status of an epic")
    epic_parser.add_argument("epic_id", type=int, help="Epic id")
    _add_common(epic_parser)

    cycle_parser = subparsers.add_parser("cycle-time", help="Cycle and lead time statistics")
    cycle_parser.add_argument(
        "--accurate",
        action="store_true",
        help="Replay label event history of closed issues instead of estimating",
    )
    _add_common(cycle_parser)

    velocity_parser = subparsers.add_parser("velocity", help="Hours per story point of a team member")
    velocity_parser.add_argument("username", help="Team member username")
    velocity_parser.add_argument(
        "--weekly-hours",
        type=float,
        default=None,
        help="Weekly capacity in hours (default: team config, else 40)",
    )
    _add_common(velocity_parser)

    forecast_parser = subparsers.add_parser("record-forecast", help="Store a delivery forecast")
    forecast_parser.add_argument("--type", required=True, choices=[item.value for item in ForecastType])
    forecast_parser.add_argument("--target-id", required=True)
    forecast_parser.add_argument("--target-name", required=True)
    forecast_parser.add_argument("--target-date", required=True, type=_iso_date, help="YYYY-MM-DD")
    forecast_parser.add_argument("--scope", required=True, type=_non_negative, help="Number of issues in scope")
    forecast_parser.add_argument("--confidence", required=True, type=_percentage, help="Confidence score 0-100")
    _add_common(forecast_parser)

    reliability_parser = subparsers.add_parser("reliability", help="Forecast reliability score")
    _add_common(reliability_parser)

    return parser


__all__ = ["build_parser"]
