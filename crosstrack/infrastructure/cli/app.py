"""crosstrack CLI - verify and resolve track lists from JSON files."""

import asyncio
from collections.abc import Sequence
import json
from pathlib import Path
from typing import Annotated, Any

from attrs import asdict
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
import typer

from crosstrack import __version__
from crosstrack.application.services import TieredResolver, VerificationOrchestrator
from crosstrack.application.utilities.progress import RunControl, VerificationProgress
from crosstrack.config import get_logger, settings, setup_loguru_logger
from crosstrack.domain.entities import BatchVerification, Platform, ResolutionReport, TrackQuery
from crosstrack.infrastructure.connectors import (
    BasePlatformAdapter,
    create_adapter,
    get_available_platforms,
)

from .ui import command_error_handler, render_report, render_verification

console = Console(width=100)
logger = get_logger(__name__)

app = typer.Typer(
    help=f"🎵 crosstrack v{__version__} - cross-platform track verification",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
)


def load_tracks(path: Path) -> list[TrackQuery]:
    """Read tracks from a JSON list, or an object with a ``tracks`` list."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("tracks", [])
    if not isinstance(data, list):
        raise typer.BadParameter(f"{path} must contain a list of tracks")
    return [TrackQuery.from_mapping(item) for item in data]


def _split(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def _write_json(path: Path, payload: Any) -> None:
    path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
    console.print(f"[dim]Results written to {path}[/dim]")


async def _close_all(adapters: Sequence[BasePlatformAdapter]) -> None:
    for adapter in adapters:
        await adapter.aclose()


async def run_verification(
    tracks: list[TrackQuery],
    cascade: list[str] | None,
    enrichment: list[str] | None,
    timeout: float | None,
) -> BatchVerification:
    cascade = cascade or settings.verification.cascade
    enrichment = enrichment if enrichment is not None else settings.verification.enrichment
    adapters = {
        Platform(name): create_adapter(name) for name in dict.fromkeys(cascade + enrichment)
    }
    try:
        orchestrator = VerificationOrchestrator(adapters, cascade=cascade, enrichment=enrichment)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Verifying", total=len(tracks))

            def on_progress(event: VerificationProgress) -> None:
                progress.update(task, completed=event.current, description=event.label[:40])

            return await orchestrator.verify_batch(
                tracks, on_progress=on_progress, control=RunControl(timeout=timeout)
            )
    finally:
        await _close_all(list(adapters.values()))


async def run_resolution(tracks: list[TrackQuery], platform: str) -> ResolutionReport:
    adapter = create_adapter(platform)
    try:
        if not await adapter.is_available():
            raise typer.BadParameter(f"{platform} is not available: no credentials configured")
        return await TieredResolver().resolve_batch(tracks, adapter)
    finally:
        await adapter.aclose()


@app.command(name="verify", rich_help_panel="🎵 Tracks")
@command_error_handler
def verify_command(
    tracks_file: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="JSON file with tracks")],
    cascade: Annotated[
        str | None, typer.Option("--cascade", "-c", help="Comma-separated primary platforms")
    ] = None,
    enrich: Annotated[
        str | None, typer.Option("--enrich", "-e", help="Comma-separated enrichment platforms")
    ] = None,
    timeout: Annotated[
        float | None, typer.Option("--timeout", "-t", help="Abandon the run after N seconds")
    ] = None,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write results as JSON")
    ] = None,
    show_tracks: Annotated[
        bool, typer.Option("--show-tracks/--summary-only", help="List every track")
    ] = True,
) -> None:
    """Verify that tracks exist and collect their platform ids."""
    tracks = load_tracks(tracks_file)
    batch = asyncio.run(
        run_verification(tracks, _split(cascade), _split(enrich), timeout)
    )
    render_verification(batch, show_tracks=show_tracks)
    if output is not None:
        _write_json(output, asdict(batch))
    if batch.summary.failed:
        raise typer.Exit(code=2)


@app.command(name="resolve", rich_help_panel="🎵 Tracks")
@command_error_handler
def resolve_command(
    tracks_file: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="JSON file with tracks")],
    platform: Annotated[
        str, typer.Option("--platform", "-p", help="Target platform")
    ] = "spotify",
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write results as JSON")
    ] = None,
) -> None:
    """Resolve tracks on one platform and report the tier breakdown."""
    if platform not in get_available_platforms():
        raise typer.BadParameter(
            f"Unknown platform {platform!r}. Available: {', '.join(get_available_platforms())}"
        )
    tracks = load_tracks(tracks_file)
    report = asyncio.run(run_resolution(tracks, platform))
    render_report(report)
    if output is not None:
        _write_json(output, asdict(report))


@app.command(name="platforms", rich_help_panel="⚙️ System")
def platforms_command() -> None:
    """List platforms with a search adapter."""
    for name in get_available_platforms():
        console.print(f"• {name}")


@app.command(name="version", rich_help_panel="⚙️ System")
def version_command() -> None:
    """Show version information."""
    console.print(f"[bold bright_blue]🎵 crosstrack[/bold bright_blue] [dim]v{__version__}[/dim]")


@app.callback()
def init_cli(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output"),
    ] = False,
) -> None:
    """Initialize crosstrack CLI."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_loguru_logger(verbose)


def main() -> int:
    """Application entry point."""
    try:
        return app() or 0
    except Exception:
        logger.exception("Unhandled exception")
        return 1
