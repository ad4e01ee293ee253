"""
Manages a Rich progress display for the entries of a synchronization run.
"""

import logging

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

log = logging.getLogger("packsync")


class ProgressManager:
    """Shows one overall bar that advances as index entries finish."""

    def __init__(self, console: Console, enabled: bool = True):
        self.console = console
        self.enabled = enabled
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=True,
        )
        self._overall_task_id: TaskID | None = None
        self._stats = {"total": 0, "completed": 0, "failed": 0}

    def initialize_session(self, total_entries: int) -> None:
        self._stats["total"] = total_entries
        if not self.enabled:
            return
        if self._overall_task_id is None:
            self._overall_task_id = self.progress.add_task(
                "Synchronizing", total=total_entries
            )
        else:
            self.progress.update(self._overall_task_id, total=total_entries)

    def entry_finished(self, name: str, success: bool = True) -> None:
        if success:
            self._stats["completed"] += 1
        else:
            self._stats["failed"] += 1
        if self.enabled and self._overall_task_id is not None:
            self.progress.update(
                self._overall_task_id, advance=1, description=f"Synchronizing {name}"
            )

    def get_statistics(self) -> dict:
        return self._stats.copy()

    async def __aenter__(self):
        if self.enabled:
            self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.enabled:
            self.progress.stop()
