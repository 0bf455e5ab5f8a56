"""
Asset Restore CLI

Implements 4 CLI verbs with Operations facade integration:
- run: Full restore pipeline for one request
- manifest: Build the restore manifest and estimate its cost
- status: One restore-status round over a manifest file
- download: Download every object listed in a manifest file
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from .operations import Operations, OpsConfig, run_and_exit
from .operations.printers import (
    print_download_report, print_manifest_summary, print_status_summary
)
from .costs import estimate_retrieval_costs
from .request import RestoreRequest

app = typer.Typer(name="asset-restore", help="Cold storage asset restore")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
) -> None:
    """Restore archived project assets from cold storage."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)
    # boto3 is very chatty at DEBUG
    for name in ("botocore", "boto3", "urllib3", "s3transfer"):
        logging.getLogger(name).setLevel(logging.WARNING)


@app.command()
def run(
    params: Optional[Path] = typer.Option(None, "--params", help="JSON request file (default: RESTORE_PARAMS env var)"),
    skip_manifest: bool = typer.Option(False, "--skip-manifest", help="Reuse the manifest already published for this request"),
) -> None:
    """Run the full restore pipeline for one request."""

    def _run() -> None:
        request = RestoreRequest.from_file(params) if params else RestoreRequest.from_env()
        ops = Operations(config=OpsConfig(skip_manifest=skip_manifest))
        result = ops.run(request)

        if result.stats is not None:
            print_manifest_summary(result.stats, request.manifest_local_path,
                                   estimate_retrieval_costs(result.stats))
        typer.echo(f"Job: {result.job_id}")
        print_download_report(result.report)

    run_and_exit(_run)


@app.command()
def manifest(
    prefix: str = typer.Argument(..., help="Key prefix to restore, e.g. 'Proj/Clips/'"),
    buckets: List[str] = typer.Option(..., "--bucket", "-b", help="Asset bucket (repeatable, earlier wins)"),
    output: Path = typer.Option(Path("manifest.csv"), "--output", "-o", help="Manifest file to write"),
) -> None:
    """Build the restore manifest and estimate the retrieval cost."""

    def _manifest() -> None:
        ops = Operations(config=OpsConfig())
        stats, estimate = ops.manifest(prefix, list(buckets), str(output))
        print_manifest_summary(stats, str(output), estimate)

    run_and_exit(_manifest)


@app.command()
def status(
    manifest_path: Path = typer.Argument(..., help="Manifest CSV to check"),
) -> None:
    """Check once how many manifest objects are restored."""

    def _status() -> None:
        ops = Operations(config=OpsConfig())
        print_status_summary(ops.status(str(manifest_path)))

    run_and_exit(_status)


@app.command()
def download(
    manifest_path: Path = typer.Argument(..., help="Manifest CSV to download"),
    dest: Path = typer.Option(..., "--dest", "-d", help="Destination root"),
    uid: Optional[int] = typer.Option(None, "--uid", help="Owner uid for created files"),
    gid: Optional[int] = typer.Option(None, "--gid", help="Owner gid for created files"),
) -> None:
    """Download every object listed in a manifest file."""

    def _download():
        ops = Operations(config=OpsConfig())
        report = ops.download(str(manifest_path), dest, uid=uid, gid=gid)
        print_download_report(report)
        return report

    report = run_and_exit(_download)
    if report.failed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
