"""Command-line interface for pmpulse."""

from __future__ import annotations

import asyncio as asyncio
import logging as logging

from pmpulse import PmPulse as PmPulse
from pmpulse import load_config as load_config
from pmpulse.cli.app import main as main
from pmpulse.cli.commands import aggregate as aggregate_command
from pmpulse.cli.commands import cycle_time as cycle_time_command
from pmpulse.cli.commands import epic as epic_command
from pmpulse.cli.commands import forecast as forecast_command
from pmpulse.cli.commands import velocity as velocity_command
from pmpulse.cli.parser import _package_version as _package_version
from pmpulse.cli.parser import build_parser as build_parser

_run_aggregate = aggregate_command.run_aggregate
_run_analyze_epic = epic_command.run_analyze_epic
_run_cycle_time = cycle_time_command.run_cycle_time
_run_velocity = velocity_command.run_velocity
_run_record_forecast = forecast_command.run_record_forecast
_run_reliability = forecast_command.run_reliability


if __name__ == "__main__":
    raise SystemExit(main())
