"""Velocity command formatting."""

from __future__ import annotations

import argparse

from rich.table import Table

from pmpulse.analytics.velocity import HoursPerStoryPoint
from pmpulse.cli.common import EXIT_PARTIAL, key_value_table, print_renderables, progress_display


def format_velocity_table(username: str, result: HoursPerStoryPoint) -> Table:
    return key_value_table(
        f"Velocity of {username}",
        [
            ("Hours per story point", result.hours),
            ("Source", result.source.value),
            ("Quality", result.quality),
            ("Details", result.details),
        ],
    )


async def run_velocity(args: argparse.Namespace) -> int:
    import pmpulse.cli as cli

    config = cli.load_config(args.config)
    with progress_display(verbose=args.verbose) as progress:
        pulse = cli.PmPulse.from_config(config, progress=progress)
        snapshot = await pulse.aggregate()
    result = await pulse.velocity(args.username, snapshot, weekly_hours=args.weekly_hours)

    print_renderables(format_velocity_table(args.username, result))
    return EXIT_PARTIAL if snapshot.is_partial else 0


__all__ = ["format_velocity_table", "run_velocity"]
