"""Console rendering and progress helpers for the batch-up CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .models import ProgressSnapshot, SessionStatus, TransferOutcome, UploadSessionResult

console = Console()


def _echo(message: str) -> None:
    console.print(message)


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


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
        title="[bold green]batch-up[/bold green]",
        subtitle="[dim]batch uploader CLI[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_result(result: UploadSessionResult, max_failures: int = 20) -> None:
    """Render the final summary and the first few failures."""
    palette = {
        SessionStatus.SUCCESS: "green",
        SessionStatus.EMPTY: "blue",
        SessionStatus.PARTIAL: "yellow",
        SessionStatus.FAILED: "red",
        SessionStatus.CANCELLED: "yellow",
    }
    color = palette.get(result.status, "white")
    _echo(f"[bold {color}]{result.summary_message}[/bold {color}]")

    if not result.failures:
        return

    table = Table(title="Failed files", show_lines=False, title_style="bold red")
    table.add_column("File", style="white", overflow="fold")
    table.add_column("Kind", style="red")
    table.add_column("Error", style="dim", overflow="fold")
    for outcome in result.failures[:max_failures]:
        kind = outcome.error_kind.value if outcome.error_kind else "-"
        table.add_row(outcome.descriptor.relative_path, kind, outcome.error or "")
    console.print(table)

    hidden = len(result.failures) - max_failures
    if hidden > 0:
        _echo(f"[dim]... and {hidden} more[/dim]")


class ConsoleProgressSurface:
    """
    IProgressSurface rendered with a rich live progress bar.

    Shows the session title, overall percentage, processed/total files,
    the current label and status line.
    """

    def __init__(self, console_: Optional[Console] = None):
        self._console = console_ or console
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.description}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("{task.fields[stats]}"),
            TimeElapsedColumn(),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            expand=False,
            console=self._console,
        )
        self._live: Optional[Live] = None
        self._task_id: Optional[TaskID] = None

    @property
    def active(self) -> bool:
        return self._live is not None

    def begin(self, title: str) -> None:
        self._stop()
        self._live = Live(
            self._progress,
            console=self._console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()
        self._task_id = self._progress.add_task(
            title,
            total=100,
            completed=0,
            stats="0 files processed",
            detail="Initializing...",
        )

    def update(self, snapshot: ProgressSnapshot) -> None:
        if self._task_id is None:
            return
        if snapshot.total_count > 0:
            stats = f"{snapshot.processed_count}/{snapshot.total_count} files"
        else:
            stats = f"{snapshot.processed_count} files processed"
        detail = snapshot.status_text or snapshot.label
        self._progress.update(
            self._task_id,
            completed=snapshot.percentage,
            stats=stats,
            detail=detail[:120],
        )

    def end(self) -> None:
        self._stop()

    def fail(self, message: str) -> None:
        self._stop()
        _echo(f"[red]Error:[/red] {message}")

    def _stop(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None
        if self._task_id is not None:
            self._progress.remove_task(self._task_id)
            self._task_id = None


class FailureTimeline:
    """Prints one timestamped line per failed transfer while the session runs."""

    def on_transfer_fail(self, outcome: TransferOutcome) -> None:
        stamp = time.strftime("%H:%M:%S")
        size = outcome.descriptor.byte_size
        size_label = f" {_human_size(size)}" if size > 0 else ""
        kind = outcome.error_kind.value if outcome.error_kind else "error"
        cause = f" cause={outcome.error}" if outcome.error else ""
        _echo(
            f"[dim]{stamp}[/dim] [red]FAIL[/red] "
            f"{outcome.descriptor.relative_path}{size_label} ({kind}){cause}"
        )
