"""
Manages a Rich Live display for sequential asset downloads.
Shows overall progress across categories and a transfer bar for the active asset.
"""

import asyncio

from rich.console import Console, Group
from rich.live import Live
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)


class ProgressManager:
    """
    Tracks download progress for a provisioning run. With `quiet` set every
    method is a no-op, which keeps non-interactive runs log-only.
    """

    def __init__(self, console: Console, quiet: bool = False):
        self.console = console
        self.quiet = quiet

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=True,
        )

        self.overall_progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            console=console,
        )

        self._live: Live | None = None
        self._overall_task_id: TaskID | None = None
        self._stats = {
            "total_assets": 0,
            "completed": 0,
            "failed": 0,
            "skipped": 0,
        }

    def initialize_session(self, total_assets: int | None = None):
        self._stats["total_assets"] = total_assets or 0
        if not self.quiet:
            self._overall_task_id = self.overall_progress.add_task(
                "Overall Progress", total=total_assets or None, start=True
            )

    def set_category(self, name: str, asset_count: int):
        """Marks the category currently being processed."""
        self.add_to_total(asset_count)
        if self._overall_task_id is not None and not self.quiet:
            self.overall_progress.update(
                self._overall_task_id, description=f"Overall Progress ({name})"
            )

    def add_to_total(self, count: int):
        self._stats["total_assets"] += count
        if self.quiet or self._overall_task_id is None:
            return
        self.overall_progress.update(
            self._overall_task_id, total=self._stats["total_assets"]
        )

    def add_asset_task(self, description: str, total_size: int = 0) -> TaskID | None:
        if self.quiet:
            return None
        if len(description) > 50:
            description = description[:47] + "..."
        return self.progress.add_task(
            description, total=total_size or None, start=True
        )

    def update_task_progress(self, task_id: TaskID | None, completed: int):
        if task_id is not None and not self.quiet:
            self.progress.update(task_id, completed=completed)

    def update_task_total(self, task_id: TaskID | None, total: int):
        if task_id is not None and not self.quiet:
            self.progress.update(task_id, total=total or None)

    def _advance_overall(self):
        if self._overall_task_id is not None and not self.quiet:
            self.overall_progress.update(
                self._overall_task_id,
                completed=(
                    self._stats["completed"]
                    + self._stats["failed"]
                    + self._stats["skipped"]
                ),
            )

    def remove_task(self, task_id: TaskID | None, success: bool = True):
        if success:
            self._stats["completed"] += 1
        else:
            self._stats["failed"] += 1
        if task_id is not None and not self.quiet:
            try:
                self.progress.remove_task(task_id)
            except KeyError:
                pass
        self._advance_overall()

    def increment_skipped(self, count: int = 1):
        self._stats["skipped"] += count
        self._advance_overall()

    async def __aenter__(self):
        if self.quiet:
            return self
        self._live = Live(
            Group(self.overall_progress, self.progress),
            console=self.console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._live and not self.quiet:
            await asyncio.sleep(0.1)
            self._live.stop()
            self._live = None
