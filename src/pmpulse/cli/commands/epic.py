"""Analyze-epic command formatting."""

from __future__ import annotations

import argparse

from rich.table import Table

from pmpulse.analytics.rag import RagStatus
from pmpulse.cli.common import EXIT_PARTIAL, key_value_table, print_renderables, progress_display
from pmpulse.sdk import EpicAnalysis

_STATUS_STYLES = {
    RagStatus.GREEN: "[bold green]GREEN[/]",
    RagStatus.AMBER: "[bold yellow]AMBER[/]",
    RagStatus.RED: "[bold red]RED[/]",
}


def format_epic_summary(analysis: EpicAnalysis) -> Table:
    rag = analysis.rag
    rows: list[tuple[str, object]] = [
        ("Epic", f"{analysis.epic.title} ({analysis.epic.id})"),
        ("Status", _STATUS_STYLES[rag.status]),
        ("Reason", rag.reason),
    ]
    if rag.metrics is not None:
        metrics = rag.metrics
        rows.extend(
            [
                ("Progress", f"{metrics.progress_percent:.0f}% ({metrics.closed_issues}/{metrics.total_issues})"),
                ("Remaining iterations", metrics.remaining_iterations),
                ("Velocity", f"{metrics.current_velocity:g} current / {metrics.required_velocity:g} required"),
                ("Blocked issues", metrics.blocked_count),
            ]
        )
    if rag.projection is not None:
        projection = rag.projection
        rows.append(("Projected completion", projection.date.date().isoformat()))
        if projection.days_variance is not None:
            rows.append(("Days variance", projection.days_variance))
    if analysis.cross_project is not None:
        rows.append(("Projects", analysis.cross_project.project_count))
    return key_value_table("Epic health", rows)


def format_factors_table(analysis: EpicAnalysis) -> Table:
    table = Table(title="Factors", title_justify="left")
    table.add_column("Severity")
    table.add_column("Category")
    table.add_column("Title")
    table.add_column("Description")
    for factor in analysis.rag.factors:
        table.add_row(factor.severity.value, factor.category, factor.title, factor.description)
    return table


def format_actions_table(analysis: EpicAnalysis) -> Table:
    table = Table(title="Actions", title_justify="left")
    table.add_column("Priority")
    table.add_column("Title")
    table.add_column("Effort")
    table.add_column("Impact")
    for action in analysis.rag.actions:
        table.add_row(action.priority.value, action.title, action.estimated_effort, action.impact)
    return table


async def run_analyze_epic(args: argparse.Namespace) -> int:
    import pmpulse.cli as cli

    config = cli.load_config(args.config)
    with progress_display(verbose=args.verbose) as progress:
        pulse = cli.PmPulse.from_config(config, progress=progress)
        snapshot = await pulse.aggregate()
    analysis = await pulse.analyze_epic(args.epic_id, snapshot)

    renderables: list[object] = [format_epic_summary(analysis)]
    if analysis.rag.factors:
        renderables.append(format_factors_table(analysis))
    if analysis.rag.actions:
        renderables.append(format_actions_table(analysis))
    print_renderables(*renderables)
    return EXIT_PARTIAL if snapshot.is_partial else 0


__all__ = ["format_actions_table", "format_epic_summary", "format_factors_table", "run_analyze_epic"]
