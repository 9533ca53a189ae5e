"""Aggregate command formatting."""

from __future__ import annotations

import argparse

from rich.table import Table

from pmpulse import Snapshot, SourceStatus
from pmpulse.cli.common import EXIT_PARTIAL, key_value_table, print_renderables, progress_display


def format_source_table(snapshot: Snapshot) -> Table:
    table = Table(title="Sources", title_justify="left")
    table.add_column("Source")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Issues", justify="right")
    table.add_column("Milestones", justify="right")
    table.add_column("Epics", justify="right")
    table.add_column("Error")
    for source in snapshot.source_metadata:
        status = "[green]ok[/]" if source.status == SourceStatus.OK else "[red]failed[/]"
        table.add_row(
            source.name,
            source.type.value,
            status,
            str(source.issue_count),
            str(source.milestone_count),
            str(source.epic_count),
            source.error or "",
        )
    return table


def format_statistics_table(snapshot: Snapshot) -> Table:
    stats = snapshot.statistics
    links = snapshot.cross_project_data.statistics
    return key_value_table(
        "Snapshot",
        [
            ("Issues", stats.total_issues),
            ("Milestones", stats.total_milestones),
            ("Epics", stats.total_epics),
            ("Issues with epics", stats.issues_with_epics),
            ("Orphaned issues", stats.orphaned_issues),
            ("Epics with issues", stats.epics_with_issues),
            ("Empty epics", stats.empty_epics),
            ("Cross-project links", links.total_cross_project_links),
            ("Projects", len(snapshot.projects)),
            ("Projects with epic work", stats.project_count),
            ("Sources ok", f"{stats.successful_sources}/{stats.source_count}"),
        ],
    )


async def run_aggregate(args: argparse.Namespace) -> int:
    import pmpulse.cli as cli

    config = cli.load_config(args.config)
    with progress_display(verbose=args.verbose) as progress:
        pulse = cli.PmPulse.from_config(config, progress=progress)
        snapshot = await pulse.aggregate()

    print_renderables(format_source_table(snapshot), format_statistics_table(snapshot))
    return EXIT_PARTIAL if snapshot.is_partial else 0


__all__ = ["format_source_table", "format_statistics_table", "run_aggregate"]
