"""UI helpers for CLI interaction.

Keeps Rich presentation apart from the verification logic.
"""

from collections.abc import Callable
import functools
from typing import ParamSpec, TypeVar

from rich.console import Console
from rich.table import Table
import typer

from crosstrack.config import get_logger
from crosstrack.domain.entities import (
    BatchVerification,
    ResolutionReport,
    RunStatus,
    VerificationStatus,
)

console = Console()
logger = get_logger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

STATUS_STYLES = {
    VerificationStatus.VERIFIED: "green",
    VerificationStatus.FAILED: "red",
    VerificationStatus.SKIPPED: "yellow",
}


def command_error_handler(func: Callable[P, R]) -> Callable[P, R]:
    """Decorator to standardize error handling for CLI commands.

    Logs the failure with context, prints a short message and converts it
    into a non-zero exit code.
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        operation = func.__name__.removesuffix("_command").replace("_", " ")
        with logger.contextualize(operation=operation):
            try:
                logger.debug(f"Executing {operation}")
                return func(*args, **kwargs)
            except (typer.Exit, typer.Abort):
                raise
            except Exception as e:
                logger.exception(f"Error during {operation}")
                console.print(f"\n[bold red]✗ Error during {operation}:[/bold red] {e}")
                raise typer.Exit(code=1) from e

    return wrapper


def render_verification(batch: BatchVerification, show_tracks: bool = True) -> None:
    """Print per-track outcomes and the batch summary."""
    summary = batch.summary

    if show_tracks and batch.resolved:
        tracks = Table(title="Tracks", show_lines=False)
        tracks.add_column("#", justify="right", style="dim")
        tracks.add_column("Track")
        tracks.add_column("Status")
        tracks.add_column("Source", style="cyan")
        tracks.add_column("Confidence", justify="right")
        tracks.add_column("Platforms", style="dim")
        for index, track in enumerate(batch.resolved, start=1):
            style = STATUS_STYLES[track.status]
            platforms = ", ".join(
                p for p in ("spotify", "apple", "youtube", "tidal", "qobuz")
                if getattr(track.platform_ids, p) is not None
            )
            tracks.add_row(
                str(index),
                track.query.label,
                f"[{style}]{track.status.value}[/{style}]",
                track.source.value if track.source else "-",
                f"{track.confidence:.0%}" if track.verified else "-",
                platforms or "-",
            )
        console.print(tracks)

    table = Table(title="Verification Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Total", str(summary.total))
    table.add_row("[green]Verified[/green]", str(summary.verified))
    table.add_row("[red]Failed[/red]", str(summary.failed))
    table.add_row("[yellow]Skipped[/yellow]", str(summary.skipped))
    if summary.unprocessed:
        table.add_row("[dim]Not processed[/dim]", str(summary.unprocessed))
    console.print(table)

    if summary.status is not RunStatus.COMPLETED:
        console.print(f"[yellow]Run {summary.status.value.replace('_', ' ')}[/yellow]")

    for failed in summary.failed_songs:
        console.print(f"  [red]✗[/red] {failed.artist} - {failed.title}: [dim]{failed.error}[/dim]")


def render_report(report: ResolutionReport) -> None:
    """Print the tier breakdown of a resolution report."""
    table = Table(title=f"Resolution on {report.platform.value}")
    table.add_column("Tier", style="cyan")
    table.add_column("Tracks", justify="right")
    for tier, count in report.breakdown().items():
        table.add_row(tier, str(count))
    console.print(table)
    console.print(
        f"Success rate: [bold]{report.success_rate:.0%}[/bold]  "
        f"Average confidence: [bold]{report.average_confidence:.0%}[/bold]"
    )
