"""Rich display of aggregation and label-event progress."""

from __future__ import annotations

from types import TracebackType
from typing import ClassVar

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn

from pmpulse.aggregation.progress import PipelineProgress


class RichPipelineProgress(PipelineProgress):
    """One progress row per phase on stderr, with a status column.

    Enter the context before fetching so the live display runs for the whole fetch::

        with RichPipelineProgress() as progress:
            snapshot = await PmPulse.from_config(config, progress=progress).aggregate()
    """

    _PHASE_COLORS: ClassVar[dict[str, str]] = {
        "Sources": "cyan",
        "Label events": "blue",
    }

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(stderr=True)
        self._progress = Progress(
            SpinnerColumn(finished_text="[green]✓[/green]"),
            TextColumn("{task.description:>14}"),
            BarColumn(bar_width=30),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            TextColumn("{task.fields[status]}"),
            console=self._console,
        )
        self._tasks: dict[str, TaskID] = {}

    def __enter__(self) -> RichPipelineProgress:
        self._progress.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._progress.stop()

    def status(self, phase: str) -> str | None:
        task_id = self._tasks.get(phase)
        if task_id is None:
            return None
        return self._progress.tasks[task_id].fields["status"]

    def phase_start(self, phase: str, total: int | None = None) -> None:
        color = self._PHASE_COLORS.get(phase, "white")
        self._tasks[phase] = self._progress.add_task(f"[{color}]{phase}[/]", total=total, status="")

    def item_done(self, phase: str) -> None:
        if phase in self._tasks:
            self._progress.advance(self._tasks[phase])

    def phase_done(self, phase: str) -> None:
        task_id = self._tasks.get(phase)
        if task_id is None:
            return
        total = self._progress.tasks[task_id].total
        if total is None:
            self._progress.update(task_id, total=1, completed=1, status="[green]done[/]")
        else:
            self._progress.update(task_id, completed=total, status="[green]done[/]")

    def phase_error(self, phase: str, error: BaseException) -> None:
        task_id = self._tasks.get(phase)
        if task_id is not None:
            self._progress.update(task_id, status=f"[red]failed: {type(error).__name__}[/]")
