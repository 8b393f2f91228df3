"""Console rendering and progress helpers for the aem-upload CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

from rich.console import Console, Group
from rich.filesize import decimal
from rich.live import Live
from rich.panel import Panel
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
from rich.table import Table

from .results import UploadResult
from .utils.events import FileEvent, FolderEvent

console = Console(stderr=True)


def _echo(message: str) -> None:
    console.print(message)


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]aem-upload[/bold green]",
        subtitle="[dim]direct binary upload[/dim]",
        border_style="blue",
    )
    console.print(panel)


class UploadProgressDisplay:
    """Event-based console display for an upload."""

    def __init__(self, enabled: bool = True):
        self._enabled = enabled
        self._active_tasks: Dict[str, TaskID] = {}
        self._stats: Dict[str, int] = {
            "started": 0,
            "uploaded": 0,
            "failed": 0,
            "cancelled": 0,
            "folders": 0,
        }
        self._overall_task_id: Optional[TaskID] = None
        self._live: Optional[Live] = None
        self._meta_progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            expand=False,
            console=console,
        )
        self._file_progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold green]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            expand=False,
            console=console,
        )

    @property
    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def _emit_timeline(
        self,
        status: str,
        kind: str,
        name: str,
        size_bytes: Optional[int] = None,
        error: Optional[str] = None,
    ) -> None:
        if not self._enabled:
            return
        stamp = time.strftime("%H:%M:%S")
        size_label = f" {decimal(size_bytes)}" if size_bytes and size_bytes > 0 else ""
        error_label = f" cause={error}" if error else ""
        palette = {
            "DONE": "green",
            "FAIL": "red",
            "STOP": "yellow",
            "DIR": "cyan",
        }
        color = palette.get(status, "white")
        _echo(
            f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] "
            f"{kind}: {name}{size_label}{error_label}"
        )

    def start(self) -> None:
        if not self._enabled or self._live is not None:
            return
        self._live = Live(
            Group(self._meta_progress, self._file_progress),
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()
        self._overall_task_id = self._meta_progress.add_task(
            "overall",
            label="Overall",
            detail=self._detail(),
        )

    def stop(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def _detail(self) -> str:
        s = self._stats
        return (
            f"started={s['started']} uploaded={s['uploaded']} failed={s['failed']} "
            f"cancelled={s['cancelled']} folders={s['folders']}"
        )

    def _update_overall_task(self) -> None:
        if self._overall_task_id is None:
            return
        self._meta_progress.update(self._overall_task_id, detail=self._detail())

    def _finish_file(self, event: FileEvent) -> None:
        task_id = self._active_tasks.pop(event.target_file, None)
        if task_id is not None:
            self._file_progress.remove_task(task_id)
        self._update_overall_task()

    def on_file_start(self, event: FileEvent) -> None:
        self._stats["started"] += 1
        if self._enabled:
            self.start()
            self._active_tasks[event.target_file] = self._file_progress.add_task(
                "upload",
                label=event.file_name[:60],
                total=max(event.file_size, 1),
            )
        self._update_overall_task()

    def on_file_progress(self, event: FileEvent) -> None:
        task_id = self._active_tasks.get(event.target_file)
        if task_id is not None:
            self._file_progress.update(task_id, completed=event.transferred)

    def on_file_end(self, event: FileEvent) -> None:
        self._stats["uploaded"] += 1
        self._finish_file(event)
        self._emit_timeline("DONE", "file", event.target_file, size_bytes=event.file_size)

    def on_file_error(self, event: FileEvent) -> None:
        self._stats["failed"] += 1
        self._finish_file(event)
        cause = event.errors[0].get("message") if event.errors else None
        self._emit_timeline("FAIL", "file", event.target_file, error=cause)

    def on_file_cancelled(self, event: FileEvent) -> None:
        self._stats["cancelled"] += 1
        self._finish_file(event)
        self._emit_timeline("STOP", "file", event.target_file)

    def on_folder_created(self, event: FolderEvent) -> None:
        self._stats["folders"] += 1
        self._update_overall_task()
        self._emit_timeline("DIR", "folder", event.target_folder)

    def on_finish(self, result: UploadResult) -> None:
        self.stop()
        if not self._enabled:
            return
        table = Table(title="Upload summary", show_header=False, box=None)
        table.add_column(style="bold cyan", justify="right")
        table.add_column(style="white")
        table.add_row("Files", f"{result.total_completed_files}/{result.total_files} completed")
        table.add_row("Cancelled", str(result.total_cancelled_files))
        table.add_row("Errors", str(len(result.get_errors())))
        table.add_row("Total size", decimal(result.total_size))
        table.add_row("Elapsed", f"{result.elapsed_time} ms")
        table.add_row("Initiate", f"{result.init_time} ms")
        table.add_row("Avg file upload", f"{result.average_file_upload_time} ms")
        table.add_row("Avg part upload", f"{result.average_part_upload_time} ms")
        table.add_row("Avg complete", f"{result.average_complete_time} ms")
        table.add_row("90th percentile", f"{result.ninety_percentile_total} ms")
        console.print(table)
