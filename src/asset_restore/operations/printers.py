"""
Human-readable output formatting.

Centralizes all CLI output formatting so commands stay thin. Uses rich tables
when rich is installed and plain typer.echo otherwise.
"""
from __future__ import annotations

from typing import Dict, Optional

import typer

from ..costs import RetrievalCostEstimate
from ..downloader import DownloadReport
from ..manifest import ManifestStats
from ..monitor import ObjectRestoreState

# Optional Rich support for enhanced output
try:
    from rich.console import Console
    from rich.table import Table
    _RICH = True
    _console = Console()
except ImportError:
    _RICH = False
    _console = None


def print_manifest_summary(stats: ManifestStats, manifest_path: str,
                           estimate: Optional[RetrievalCostEstimate] = None) -> None:
    """
    Print manifest statistics and, when given, the retrieval cost estimate.

    Args:
        stats: Stats returned by the manifest builder
        manifest_path: Where the manifest was written
        estimate: Optional cost estimate for both speed classes
    """
    if _RICH:
        _console.print(f"[bold]Manifest:[/] {manifest_path}")
        _console.print(f"[bold]Files:[/] {stats.file_count}")
        _console.print(f"[bold]Size:[/] {_format_bytes(stats.total_size)}")
        if estimate is not None:
            table = Table(title="Estimated retrieval cost")
            table.add_column("Retrieval", style="cyan")
            table.add_column("USD", style="yellow", justify="right")
            table.add_row("standard", f"{estimate.standard:.2f}")
            table.add_row("bulk", f"{estimate.bulk:.2f}")
            _console.print(table)
        return

    typer.echo(f"Manifest: {manifest_path}")
    typer.echo(f"Files: {stats.file_count}")
    typer.echo(f"Size: {_format_bytes(stats.total_size)}")
    if estimate is not None:
        typer.echo("Estimated retrieval cost:")
        typer.echo(f"  standard: ${estimate.standard:.2f}")
        typer.echo(f"  bulk: ${estimate.bulk:.2f}")


def print_status_summary(counts: Dict[ObjectRestoreState, int]) -> None:
    """Print how many manifest objects are in each restore state."""
    total = sum(counts.values())
    if _RICH:
        table = Table(title=f"Restore status ({total} objects)")
        table.add_column("State", style="cyan")
        table.add_column("Objects", justify="right")
        for state in ObjectRestoreState:
            table.add_row(state.value, str(counts.get(state, 0)))
        _console.print(table)
        return

    typer.echo(f"Objects: {total}")
    for state in ObjectRestoreState:
        typer.echo(f"  {state.value}: {counts.get(state, 0)}")


def print_download_report(report: DownloadReport, max_display: int = 5) -> None:
    """
    Print download totals and the first few failures.

    Args:
        report: Report returned by the downloader
        max_display: Maximum number of failures to list
    """
    failed = report.failed
    typer.echo(f"Downloaded {len(report.succeeded)} files to {report.base_path} "
               f"({_format_bytes(report.total_bytes)})")
    if not failed:
        return

    if _RICH:
        table = Table(title=f"Failed downloads ({len(failed)})")
        table.add_column("Object", style="red")
        table.add_column("Error", style="yellow")
        for outcome in failed[:max_display]:
            table.add_row(str(outcome.entry), outcome.error or "")
        _console.print(table)
        if len(failed) > max_display:
            _console.print(f"[dim]… and {len(failed) - max_display} more[/]")
        return

    typer.echo(f"Failed downloads: {len(failed)}")
    for outcome in failed[:max_display]:
        typer.echo(f"  {outcome.entry}: {outcome.error}")
    if len(failed) > max_display:
        typer.echo(f"  ... and {len(failed) - max_display} more")


def print_job_failure(error) -> None:
    """Print the remote failure reasons carried by a JobFailed error."""
    typer.echo(f"Job {error.job_id} {error.status}:", err=True)
    for code, reason in error.reasons:
        typer.echo(f"  {code}: {reason}", err=True)


def _format_bytes(size_bytes: int) -> str:
    """
    Format byte count as human-readable string.

    Returns:
        Formatted string (e.g., "1.5 MB", "42 KB")
    """
    if size_bytes == 0:
        return "0 B"
    elif size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"
