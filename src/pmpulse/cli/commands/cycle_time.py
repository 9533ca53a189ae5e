"""Cycle-time command formatting."""

from __future__ import annotations

import argparse

from rich.table import Table

from pmpulse.analytics.cycle_time import EnhancedCycleTimeStats
from pmpulse.cli.common import EXIT_PARTIAL, key_value_table, label_progress_callback, print_renderables, progress_display


def format_cycle_time_table(stats: EnhancedCycleTimeStats) -> Table:
    return key_value_table(
        "Cycle time (days)",
        [
            ("Closed issues", stats.count),
            ("Method", stats.method.value),
            ("From label history", stats.accurate_count),
            ("Estimated", stats.estimated_count),
            ("Average cycle time", stats.avg_cycle_time),
            ("Median cycle time", stats.median_cycle_time),
            ("Min / max cycle time", f"{stats.min_cycle_time} / {stats.max_cycle_time}"),
            ("Average lead time", stats.avg_lead_time),
            ("Median lead time", stats.median_lead_time),
            ("Average wait time", stats.avg_wait_time),
        ],
    )


async def run_cycle_time(args: argparse.Namespace) -> int:
    import pmpulse.cli as cli

    config = cli.load_config(args.config)
    with progress_display(verbose=args.verbose) as progress:
        pulse = cli.PmPulse.from_config(config, progress=progress)
        snapshot = await pulse.aggregate()
        on_progress = label_progress_callback(progress) if progress is not None else None
        stats = await pulse.cycle_time(snapshot, accurate=args.accurate, on_progress=on_progress)

    print_renderables(format_cycle_time_table(stats))
    return EXIT_PARTIAL if snapshot.is_partial else 0


__all__ = ["format_cycle_time_table", "run_cycle_time"]
