"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and a CLI command wrapper
so every Typer command fails the same way. The launcher only sees the exit
code; the cause is logged before exiting.
"""
from __future__ import annotations

import logging
from typing import Callable, TypeVar

import typer

T = TypeVar('T')

logger = logging.getLogger(__name__)

EXIT_CODES = {
    # Configuration errors
    "InvalidRequest": 2,
    "InvalidPrefix": 2,
    "EmptyBucketList": 2,
    "InvalidManifestPath": 2,
    "ValidationError": 2,
    "ValueError": 2,
    # Nothing to restore
    "NoObjectsFound": 4,
    # Manifest publication
    "ManifestMissing": 5,
    "ETagResolutionFailed": 5,
    # Batch job lifecycle
    "JobSubmissionFailed": 6,
    "JobNotReady": 6,
    "JobFailed": 6,
    "JobStartFailed": 6,
    # Monitoring stopped early
    "RestoreCancelled": 7,
    "MonitorDeadlineExceeded": 7,
}

FALLBACK_EXIT_CODE = 3


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    Returns:
    - 2: invalid request or configuration
    - 3: storage/network error or anything unknown
    - 4: no objects under the restore prefix
    - 5: manifest could not be published or its ETag not read
    - 6: batch job could not be submitted, failed, or never started
    - 7: monitoring cancelled or past its deadline
    """
    return EXIT_CODES.get(type(exc).__name__, FALLBACK_EXIT_CODE)


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function and maps any exceptions to appropriate
    exit codes using typer.Exit, so commands don't need their own
    try/except blocks.

    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    try:
        return func()
    except Exception as e:
        if type(e).__name__ == "JobFailed" and getattr(e, "reasons", None):
            from .printers import print_job_failure
            print_job_failure(e)
        logger.error(f"{type(e).__name__}: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=exit_code_for(e)) from e
