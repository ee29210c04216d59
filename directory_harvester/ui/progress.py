"""Terminal progress for page-range runs, rendered with Rich."""

from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)


@dataclass
class ProgressState:
    total: int
    succeeded: int = 0
    failed: int = 0
    records: int = 0
    current_page: int | None = None


class ProgressReporter:
    """Render page progress and keep counters for CLI feedback."""

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self._console = console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self.state: ProgressState | None = None
        self._label = "pages"

    def set_label(self, label: str) -> None:
        self._label = label

    def start(self, total: int) -> None:
        self.state = ProgressState(total=total)
        if not self.enabled:
            return
        if self._console is None:
            self._console = Console()
        if not self._console.is_terminal:
            # non-interactive output: stay silent rather than spam lines
            self.enabled = False
            return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.fields[label]:<18}", justify="left"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            TextColumn("[green]✓{task.fields[succeeded]:>3}", justify="right"),
            TextColumn("[red]✗{task.fields[failed]:>3}", justify="right"),
            TextColumn("[cyan]+{task.fields[records]:>4}", justify="right"),
            TextColumn("[dim]page {task.fields[page]}", justify="left"),
            transient=True,
            console=self._console,
        )
        try:
            self._progress.__enter__()
        except LiveError:
            self.enabled = False
            self._progress = None
            return
        self._task_id = self._progress.add_task(
            "harvest",
            total=total,
            label=self._label,
            succeeded=0,
            failed=0,
            records=0,
            page="-",
        )

    def advance(self, page: int, succeeded: bool, new_records: int = 0) -> None:
        if not self.state:
            raise RuntimeError("ProgressReporter.start must be called before advance")
        self.state.current_page = page
        if succeeded:
            self.state.succeeded += 1
        else:
            self.state.failed += 1
        self.state.records += new_records
        if self._progress is not None and self._task_id is not None:
            self._progress.update(
                self._task_id,
                advance=1,
                succeeded=self.state.succeeded,
                failed=self.state.failed,
                records=self.state.records,
                page=page,
            )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress.__exit__(None, None, None)
            self._progress = None
        self._task_id = None

    def summary(self) -> dict[str, int]:
        if not self.state:
            return {"succeeded": 0, "failed": 0, "records": 0}
        return {
            "succeeded": self.state.succeeded,
            "failed": self.state.failed,
            "records": self.state.records,
        }


__all__ = ["ProgressReporter", "ProgressState"]
