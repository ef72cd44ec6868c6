# ABOUTME: Phase progress tracking using Rich's built-in progress bars
# ABOUTME: Counts finished pages per phase and stays silent in JSON output mode

from typing import Any

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn


class PhaseProgress:
    """Progress bar for one pipeline phase.

    Acts as a no-op when ``enabled`` is false so the pipeline can report progress
    unconditionally.
    """

    def __init__(self, description: str, total: int | None = None, console: Console | None = None, enabled: bool = True):
        self.description = description
        self.total = total
        self.enabled = enabled
        self.progress: Progress | None = None
        self.task_id: Any = None
        if enabled:
            self.progress = Progress(
                SpinnerColumn(style="magenta"),
                TextColumn("[bold blue]{task.description}[/bold blue]"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=console,
                transient=True,
            )

    def __enter__(self) -> "PhaseProgress":
        if self.progress is not None:
            self.progress.start()
            self.task_id = self.progress.add_task(self.description, total=self.total)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.progress is not None:
            self.progress.stop()

    def advance(self, steps: int = 1) -> None:
        if self.progress is not None:
            self.progress.advance(self.task_id, steps)

    def update_with_data(self, **data) -> None:
        """Append contextual counters to the description."""
        if self.progress is None:
            return
        data_str = ", ".join(f"{k}: {v}" for k, v in data.items())
        full_description = f"{self.description} ({data_str})" if data_str else self.description
        self.progress.update(self.task_id, description=full_description)
