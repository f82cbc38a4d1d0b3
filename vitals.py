#!/usr/bin/env python3
"""
Vitals CLI Tool

Import health and fitness exports into a local normalized store.

Usage:
    vitals import export.xml
    vitals import heart_rate.csv --data-dir ~/.vitals
    vitals history
    vitals summary
    vitals export --format csv --output all.csv
    vitals clear weight
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from vitals_ingest import __version__
from vitals_ingest.config import Settings
from vitals_ingest.exceptions import HealthImportError
from vitals_ingest.export import export_csv, export_json
from vitals_ingest.importer import HealthImporter
from vitals_ingest.messages import CompleteMessage, ProgressMessage, StatusMessage, WorkerMessage
from vitals_ingest.schema import ImportResult, MetricKind
from vitals_ingest.stats import summarize_series
from vitals_ingest.store import HealthStore
from vitals_ingest.worker import CancellationToken

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="vitals",
    help="Vitals CLI - Health data import tool",
    no_args_is_help=True,
)

KIND_LABELS = {
    MetricKind.HEART_RATE: "Heart rate",
    MetricKind.STEPS: "Steps",
    MetricKind.WEIGHT: "Weight",
    MetricKind.SLEEP: "Sleep",
    MetricKind.VO2MAX: "VO2 max",
    MetricKind.WORKOUTS: "Workouts",
    MetricKind.NUTRITION: "Nutrition",
}


def version_callback(value: bool):
    """Show version and exit."""
    if value:
        console.print(f"[bold cyan]Vitals CLI[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Verbose logging"),
):
    """Vitals CLI - Health data import tool."""
    settings = Settings.from_env()
    level = "DEBUG" if verbose else settings.log_level
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


# ============================================================================
# Helper Functions
# ============================================================================

def _open_store(data_dir: Optional[Path]) -> tuple[Settings, HealthStore]:
    """Load settings and open the store they point at."""
    settings = Settings.from_env()
    if data_dir is not None:
        settings = settings.model_copy(update={"data_dir": data_dir.expanduser()})
    store = HealthStore.open(settings.data_dir, local_mode=settings.local_mode)
    return settings, store


def _fail(error: HealthImportError):
    """Print a fatal import error and exit with status 1."""
    console.print(f"[red]❌ {escape(error.message)}[/red]")
    console.print(f"   [dim]stage: {error.stage}[/dim]")
    raise typer.Exit(1)


def _print_result(result: ImportResult):
    table = Table(title="Imported Records")
    table.add_column("Metric", style="cyan")
    table.add_column("Records", justify="right", style="green")
    for kind, count in result.per_kind_counts.items():
        table.add_row(KIND_LABELS[kind], str(count))
    console.print(table)

    if result.observed_date_range is not None:
        span = result.observed_date_range
        console.print(f"📅 Date range: [cyan]{span.start:%Y-%m-%d}[/cyan] to [cyan]{span.end:%Y-%m-%d}[/cyan]")
    if result.skipped_count:
        console.print(f"[yellow]⚠️  Skipped {result.skipped_count} malformed records[/yellow]")
        for reason in result.skip_reasons[:5]:
            console.print(f"   [dim]{escape(reason)}[/dim]")


# ============================================================================
# IMPORT Command
# ============================================================================

@app.command("import")
def import_(
    file: Path = typer.Argument(..., help="Export file (.csv, .json or .xml)"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Store directory"),
):
    """
    Import a health export file.

    Example:
        vitals import export.xml
        vitals import steps.json --data-dir ./data
    """
    settings, store = _open_store(data_dir)
    importer = HealthImporter(store, settings)
    token = CancellationToken()

    console.print(f"📥 Importing [cyan]{escape(file.name)}[/cyan]...")

    progress = Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    )
    try:
        with progress:
            task = progress.add_task("Reading file...", total=100)

            def on_progress(message: WorkerMessage):
                if isinstance(message, StatusMessage):
                    progress.update(task, description=message.message)
                elif isinstance(message, ProgressMessage):
                    progress.update(task, completed=message.percent)
                elif isinstance(message, CompleteMessage):
                    progress.update(task, completed=100)

            result = importer.import_file(file, on_progress=on_progress, cancel_token=token)
    except HealthImportError as e:
        _fail(e)
    except KeyboardInterrupt:
        token.cancel()
        console.print("[yellow]⚠️  Import cancelled, store unchanged[/yellow]")
        raise typer.Exit(130)

    console.print(f"[green]✅ Imported {result.total} records from {escape(file.name)}[/green]")
    console.print()
    _print_result(result)


# ============================================================================
# STORE Commands
# ============================================================================

@app.command()
def history(
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Store directory"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of imports to show"),
):
    """Show the import history."""
    _, store = _open_store(data_dir)
    try:
        entries = store.history()
    except HealthImportError as e:
        _fail(e)

    if not entries:
        console.print("[yellow]No imports yet[/yellow]")
        raise typer.Exit(0)

    shown = entries[-limit:]
    table = Table(title=f"Import History (last {len(shown)})")
    table.add_column("Imported", style="dim")
    table.add_column("File", style="cyan")
    table.add_column("Format", style="yellow")
    table.add_column("Size", justify="right")
    table.add_column("Records", justify="right", style="green")
    table.add_column("Range", style="magenta")

    for entry in reversed(shown):
        span = entry.observed_date_range
        table.add_row(
            f"{entry.imported_at:%Y-%m-%d %H:%M}",
            entry.source_file_name,
            entry.source_format.value,
            f"{entry.source_file_size_bytes / 1024:.1f} KB",
            str(sum(entry.per_kind_counts.values())),
            f"{span.start:%Y-%m-%d} to {span.end:%Y-%m-%d}" if span else "-",
        )
    console.print(table)


@app.command()
def summary(
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Store directory"),
):
    """Show stored record counts and value statistics per metric."""
    _, store = _open_store(data_dir)
    try:
        snapshot = store.read_all()
    except HealthImportError as e:
        _fail(e)

    table = Table(title="Stored Health Data")
    table.add_column("Metric", style="cyan")
    table.add_column("Records", justify="right", style="green")
    table.add_column("From", style="dim")
    table.add_column("To", style="dim")
    table.add_column("Mean", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")

    for kind in MetricKind:
        stats = summarize_series(kind, snapshot.series.get(kind, []))
        if not stats["count"]:
            table.add_row(KIND_LABELS[kind], "0", "-", "-", "-", "-", "-")
            continue
        table.add_row(
            KIND_LABELS[kind],
            str(stats["count"]),
            f"{stats['first']:%Y-%m-%d}",
            f"{stats['last']:%Y-%m-%d}",
            f"{stats['mean']:.1f}",
            f"{stats['min']:.1f}",
            f"{stats['max']:.1f}",
        )
    console.print(table)


@app.command()
def export(
    format: str = typer.Option("csv", "--format", "-f", help="Output format: csv or json"),
    kind: Optional[MetricKind] = typer.Option(None, "--kind", "-k", help="Export a single metric"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Store directory"),
):
    """
    Export stored data.

    Example:
        vitals export --format json --output health.json
        vitals export --kind heartRate
    """
    if format not in ("csv", "json"):
        console.print(f"[red]❌ Unknown format: {escape(format)} (use csv or json)[/red]")
        raise typer.Exit(1)

    _, store = _open_store(data_dir)
    try:
        snapshot = store.read_all()
    except HealthImportError as e:
        _fail(e)

    text = export_csv(snapshot, kind) if format == "csv" else export_json(snapshot, kind)

    if output is None:
        typer.echo(text, nl=False)
        return

    try:
        output.write_text(text, encoding="utf-8")
    except OSError as e:
        console.print(f"[red]❌ Could not write {escape(str(output))}: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✅ Exported to[/green] [cyan]{escape(str(output))}[/cyan]")


@app.command()
def clear(
    kind: MetricKind = typer.Argument(..., help="Metric to clear (heartRate, steps, weight, ...)"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Store directory"),
    force: bool = typer.Option(False, "--force", help="Clear without confirmation"),
):
    """Delete the stored series of one metric. The import history is kept."""
    if not force:
        typer.confirm(f"Clear all stored {KIND_LABELS[kind].lower()} data?", abort=True)

    _, store = _open_store(data_dir)
    try:
        store.clear_kind(kind)
    except HealthImportError as e:
        _fail(e)
    console.print(f"[green]✅ Cleared {KIND_LABELS[kind].lower()} data[/green]")


# ============================================================================
# VERSION Command
# ============================================================================

@app.command()
def version():
    """Show version information."""
    console.print("[bold]Vitals CLI[/bold]")
    console.print(f"Version: [cyan]{__version__}[/cyan]")


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    app()
