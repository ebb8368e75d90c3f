"""Terminal output handling using Rich library.

This module provides the OutputHandler class for all CLI terminal output:
progress bars, spinners, colored messages and the library sync summary.
Supports verbosity levels and the --no-color flag.
"""

from contextlib import contextmanager
from typing import Iterator, List

from rich.console import Console
from rich.live import Live
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)
from rich.spinner import Spinner
from rich.table import Table

from bibsync.sync.error_policy import help_for
from bibsync.sync.models import BulkSyncReport, SyncFailure


class OutputHandler:
    """Handles all terminal output using Rich library.

    Attributes:
        verbosity: Verbosity level (0=summary, 1=info, 2=debug)
        console: Rich Console instance for output

    Example:
        >>> handler = OutputHandler(verbosity=1, no_color=False)
        >>> handler.success("Record posted")
        >>> with handler.spinner("Checking credentials..."):
        ...     pass
    """

    def __init__(self, verbosity: int = 0, no_color: bool = False):
        """Initialize output handler.

        Args:
            verbosity: Verbosity level (0=summary, 1=info, 2=debug)
            no_color: Disable color output if True
        """
        self.verbosity = verbosity
        self.console = Console(
            force_terminal=not no_color,
            no_color=no_color,
            highlight=False,
        )

    def success(self, message: str) -> None:
        """Display success message in green."""
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        """Display error message in red."""
        self.console.print(f"[red]✗[/red] {message}", style="red")

    def warning(self, message: str) -> None:
        """Display warning message in yellow."""
        self.console.print(f"[yellow]⚠[/yellow] {message}", style="yellow")

    def info(self, message: str) -> None:
        """Display info message (only if verbosity >= 1)."""
        if self.verbosity >= 1:
            self.console.print(message)

    def debug(self, message: str) -> None:
        """Display debug message (only if verbosity >= 2)."""
        if self.verbosity >= 2:
            self.console.print(f"[dim]{message}[/dim]")

    def print(self, message: str) -> None:
        """Display message without formatting."""
        self.console.print(message)

    @contextmanager
    def spinner(self, message: str) -> Iterator[None]:
        """Display spinner for single operations.

        Args:
            message: Message to display with spinner
        """
        spinner = Spinner("dots", text=message)
        with Live(spinner, console=self.console, refresh_per_second=10):
            yield

    @contextmanager
    def progress_bar(self, description: str = "Synchronizing") -> Iterator[Progress]:
        """Display progress bar for the library sync.

        The bulk driver reports progress as a fraction, so the bar runs
        from 0 to 1.

        Example:
            >>> with handler.progress_bar("Synchronizing library") as progress:
            ...     task = progress.add_task("Synchronizing library", total=1.0)
            ...     progress.update(task, completed=0.5, description="Synchronized 1 of 2 records")
        """
        progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeRemainingColumn(),
            console=self.console,
        )
        with progress:
            yield progress

    def print_summary(self, report: BulkSyncReport) -> None:
        """Display library sync summary with color coding."""
        self.console.print("\n[bold]Library Sync Summary:[/bold]")

        if report.synced > 0:
            self.console.print(f"  [green]↑[/green] Synchronized: {report.synced} record(s)")

        if report.skipped > 0:
            self.console.print(f"  [dim]─[/dim] Skipped (busy): {report.skipped} record(s)")

        if report.failed > 0:
            self.console.print(f"  [red]✗[/red] Failed: {report.failed} record(s)")

        if report.cancelled:
            self.console.print("\n[yellow]Library sync was cancelled[/yellow]")
        elif report.total == 0:
            self.console.print("\n[yellow]No records to sync[/yellow]")
        elif report.failed > 0:
            self.console.print("\n[red]Library sync completed with errors[/red]")
        else:
            self.console.print("\n[green]Library sync completed successfully[/green]")

    def print_error_table(self, failures: List[SyncFailure]) -> None:
        """Display the error log of a library sync, with help per entry."""
        if not failures:
            return

        table = Table(title="Errors", show_lines=True)
        table.add_column("Record")
        table.add_column("Error")
        table.add_column("Help")

        for failure in failures:
            title = failure.record.title or failure.record.record_id
            table.add_row(title, str(failure.error), help_for(failure.kind))

        self.console.print(table)
