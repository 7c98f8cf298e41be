"""Rich-based progress reporter and logging setup."""
from __future__ import annotations

import logging
import sys
import time
from collections import deque
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    Progress,
    ProgressColumn,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TimeRemainingColumn,
    TimeElapsedColumn,
    MofNCompleteColumn,
    TaskID,
    Task,
)
from rich.table import Table
from rich.text import Text

from ..core.models import OutcomeCategory, ProcessingOutcome
from ..core.statistics import Statistics, format_bytes


LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

FILE_LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"

_OUTCOME_STYLES = {
    OutcomeCategory.ORGANIZED: "green",
    OutcomeCategory.DUPLICATE_HANDLED: "cyan",
    OutcomeCategory.SKIPPED: "yellow",
    OutcomeCategory.NO_DATE: "yellow",
    OutcomeCategory.ERROR: "red",
}


def configure_logging(
    level: Union[str, Enum] = "info",
    file_path: Optional[Path] = None,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Route the package's log records to the terminal and optionally a file.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: debug, info, warn or error.
        file_path: Optional plain-text log file (parent dirs are created).
        console: Console for the rich handler (default: stderr).

    Returns:
        The package logger.
    """
    if isinstance(level, Enum):
        level = level.value
    numeric = LOG_LEVELS.get(str(level).lower(), logging.INFO)

    package_logger = logging.getLogger("photo_sorter")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(numeric)

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
        markup=False,
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(console_handler)

    if file_path is not None:
        file_path = Path(file_path).expanduser()
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(file_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        package_logger.addHandler(file_handler)

    return package_logger


class FilesPerSecondColumn(ProgressColumn):
    """Renders files per second as a rolling average."""

    def __init__(self, window_size: int = 10):
        """Initialize with rolling window size.

        Args:
            window_size: Number of samples for rolling average.
        """
        super().__init__()
        self._samples: deque[tuple[float, int]] = deque(maxlen=window_size)
        self._last_completed = 0
        self._start_time: Optional[float] = None

    def render(self, task: Task) -> Text:
        """Render the speed column."""
        completed = int(task.completed)
        now = time.time()

        if self._start_time is None:
            self._start_time = now
            self._last_completed = completed
            return Text("-- f/s", style="magenta")

        if completed > self._last_completed:
            self._samples.append((now, completed))
            self._last_completed = completed

        if len(self._samples) >= 2:
            oldest_time, oldest_completed = self._samples[0]
            newest_time, newest_completed = self._samples[-1]
            if newest_time > oldest_time:
                speed = (newest_completed - oldest_completed) / (newest_time - oldest_time)
                return Text(f"{speed:.1f} f/s", style="magenta")

        # Overall average until the window has two samples
        elapsed = now - self._start_time
        if elapsed > 0 and completed > 0:
            return Text(f"{completed / elapsed:.1f} f/s", style="magenta")

        return Text("-- f/s", style="magenta")


class RichProgressReporter:
    """Progress reporter using Rich for terminal output.

    Implements the ProgressReporter protocol. ``advance_phase`` is called from
    worker threads; rich's Progress serializes updates internally.
    """

    def __init__(
        self,
        verbose: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
    ):
        """Initialize the reporter.

        Args:
            verbose: Print one line per processed file.
            quiet: Suppress all non-essential output.
            console: Console to draw on (default: stderr).
        """
        self._console = console or Console(stderr=True)
        self._verbose = verbose
        self._quiet = quiet
        self._progress: Optional[Progress] = None
        self._current_task_id: Optional[TaskID] = None
        self._phase_name: str = ""

    @property
    def console(self) -> Console:
        return self._console

    # --- Phase Management ---

    def start_phase(self, name: str, total: int) -> None:
        """Start a new processing phase with progress bar."""
        self._phase_name = name

        if self._quiet:
            return

        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TextColumn("[cyan]•"),
            FilesPerSecondColumn(),
            TextColumn("[cyan]•"),
            TimeElapsedColumn(),
            TextColumn("[cyan]•"),
            TimeRemainingColumn(),
            console=self._console,
            transient=False,
        )
        self._progress.start()
        self._current_task_id = self._progress.add_task(name, total=total)

    def advance_phase(self, amount: int = 1) -> None:
        """Advance the current phase by amount."""
        if self._progress and self._current_task_id is not None:
            self._progress.advance(self._current_task_id, amount)

    def end_phase(self) -> None:
        """End the current phase."""
        if self._progress:
            self._progress.stop()
            self._progress = None
            self._current_task_id = None

    # --- Logging ---

    def info(self, message: str) -> None:
        if not self._quiet:
            self._console.print(f"[blue]ℹ[/blue] {message}")

    def success(self, message: str) -> None:
        if not self._quiet:
            self._console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        self._console.print(f"[yellow]⚠[/yellow] {message}")

    def error(self, message: str) -> None:
        self._console.print(f"[red]✗[/red] {message}", style="red")

    def debug(self, message: str) -> None:
        """Log a debug message (only in verbose mode)."""
        if self._verbose:
            self._console.print(f"[dim]  {message}[/dim]")

    # --- Specialized Output ---

    def print_outcome(self, outcome: ProcessingOutcome) -> None:
        """Print one file's outcome (verbose mode only).

        Suitable as the organizer's ``on_outcome`` listener.
        """
        if not self._verbose or self._quiet:
            return
        style = _OUTCOME_STYLES.get(outcome.category, "white")
        self._console.print(Text(outcome.message or str(outcome.file.path), style=style))

    def print_header(self, title: str) -> None:
        """Print a styled header."""
        if self._quiet:
            return
        self._console.print(Panel(Text(title, style="bold cyan"), border_style="cyan"))

    def print_config(self, config_items: dict, title: str = "Configuration") -> None:
        """Print settings as a two-column table."""
        if self._quiet:
            return

        table = Table(title=title, show_header=True, header_style="bold")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="white")

        for key, value in config_items.items():
            table.add_row(key, str(value))

        self._console.print(table)

    def print_stats(self, stats: Statistics) -> None:
        """Print the run summary."""
        if self._quiet:
            return

        s = stats.snapshot()
        title = "Processing Complete" if s["finalized"] else "Processing Statistics"
        table = Table(title=title, show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Count", style="green", justify="right")

        table.add_row("Files Found", str(s["total_files_found"]))
        table.add_row("Files Processed", str(s["total_files_processed"]))
        table.add_row("Files Organized", str(s["files_organized"]))
        table.add_row("  Moved", str(s["files_moved"]))
        table.add_row("  Copied", str(s["files_copied"]))
        table.add_row("Files Skipped", str(s["files_skipped"]))
        table.add_row("Without Dates", str(s["files_without_dates"]))
        table.add_row("Errors", str(s["files_with_errors"]))

        if s["video_files_found"] > 0:
            table.add_row("", "")
            table.add_row("Videos Processed", f"{s['video_files_processed']}/{s['video_files_found']}")
            table.add_row("Thumbnails Processed", f"{s['thumbnails_processed']}/{s['thumbnails_found']}")

        if s["duplicates_found"] > 0:
            table.add_row("", "")
            table.add_row("Duplicates Found", str(s["duplicates_found"]))
            table.add_row("  Renamed", str(s["duplicates_renamed"]))
            table.add_row("  Skipped", str(s["duplicates_skipped"]))
            table.add_row("  Replaced", str(s["duplicates_replaced"]))

        d = s["date_extraction"]
        table.add_row("", "")
        table.add_row("Dates from EXIF", str(d["from_exif"]))
        table.add_row("Dates from ModTime", str(d["from_mod_time"]))
        table.add_row("Cache Hit Rate", f"{s['cache_hit_rate'] * 100:.1f}%")
        table.add_row("Directories Created", str(s["directories_created"]))

        if s["duration_seconds"] > 0:
            table.add_row("", "")
            table.add_row("Bytes Processed", format_bytes(s["bytes_processed"]))
            table.add_row("Time Elapsed", f"{s['duration_seconds']:.1f}s")
            table.add_row("Processing Rate", f"{s['files_per_second']:.1f} files/sec")

        self._console.print(table)

    def print_file_types(self, stats: Statistics) -> None:
        """Print the per-extension breakdown."""
        if self._quiet:
            return

        file_types = stats.snapshot()["file_type_stats"]
        if not file_types:
            return

        table = Table(title="File Types", show_header=True, header_style="bold")
        table.add_column("Type", style="cyan")
        table.add_column("Count", style="green", justify="right")
        for file_type, count in sorted(file_types.items()):
            table.add_row(file_type, str(count))

        self._console.print(table)

    def print_errors(self, stats: Statistics, limit: int = 10) -> None:
        """Print the first ``limit`` recorded errors.

        Errors are shown even in quiet mode.
        """
        entries = stats.error_entries(limit)
        if not entries:
            return

        table = Table(title=f"Errors ({stats.errors_total} total)", show_header=True, header_style="bold red")
        table.add_column("Time", style="dim")
        table.add_column("Operation", style="yellow")
        table.add_column("File", style="white")
        table.add_column("Error", style="red")
        for entry in entries:
            table.add_row(
                f"{entry.timestamp:%H:%M:%S}",
                entry.operation,
                entry.file_path,
                entry.error,
            )

        self._console.print(table)
        if stats.errors_total > len(entries):
            self._console.print(f"[dim]  ... and {stats.errors_total - len(entries)} more errors[/dim]")

    # --- Context Managers ---

    def __enter__(self) -> "RichProgressReporter":
        return self

    def __exit__(self, *args) -> None:
        self.end_phase()


class QuietProgressReporter:
    """Minimal progress reporter that only shows warnings and errors."""

    def start_phase(self, name: str, total: int) -> None:
        pass

    def advance_phase(self, amount: int = 1) -> None:
        pass

    def end_phase(self) -> None:
        pass

    def info(self, message: str) -> None:
        pass

    def success(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        print(f"WARNING: {message}", file=sys.stderr)

    def error(self, message: str) -> None:
        print(f"ERROR: {message}", file=sys.stderr)

    def debug(self, message: str) -> None:
        pass

    def print_outcome(self, outcome: ProcessingOutcome) -> None:
        pass

    def print_header(self, title: str) -> None:
        pass

    def print_config(self, config_items: dict, title: str = "Configuration") -> None:
        pass

    def print_stats(self, stats: Statistics) -> None:
        pass

    def print_file_types(self, stats: Statistics) -> None:
        pass

    def print_errors(self, stats: Statistics, limit: int = 10) -> None:
        for entry in stats.error_entries(limit):
            print(f"ERROR: {entry.operation}: {entry.file_path} - {entry.error}", file=sys.stderr)

    def __enter__(self) -> "QuietProgressReporter":
        return self

    def __exit__(self, *args) -> None:
        pass
