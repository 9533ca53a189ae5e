"""Shared CLI helpers."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager

from rich.console import Console
from rich.table import Table

from pmpulse.aggregation.progress import PipelineProgress
from pmpulse.cli.progress.rich import RichPipelineProgress

LABEL_EVENTS_PHASE = "Label events"
EXIT_PARTIAL = 4


def key_value_table(title: str, rows: list[tuple[str, object]]) -> Table:
    table = Table(title=title, show_header=False, title_justify="left")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key, value in rows:
        table.add_row(key, format_value(value))
    return table


def format_value(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def print_renderables(*renderables: object) -> None:
    console = Console()
    for renderable in renderables:
        console.print(renderable)


def label_progress_callback(progress: PipelineProgress) -> Callable[[int, int], None]:
    """Adapt the ``(done, total)`` label-event callback to phase events."""
    started = False

    def report(done: int, total: int) -> None:
        nonlocal started
        if not started:
            progress.phase_start(LABEL_EVENTS_PHASE, total=total)
            started = True
        progress.item_done(LABEL_EVENTS_PHASE)
        if done >= total:
            progress.phase_done(LABEL_EVENTS_PHASE)

    return report


@contextmanager
def progress_display(*, verbose: bool) -> Iterator[PipelineProgress | None]:
    """Rich progress on stderr unless debug logging is on."""
    if verbose:
        yield None
        return
    with RichPipelineProgress() as progress:
        yield progress
