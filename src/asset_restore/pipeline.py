"""
Restore pipeline.

Runs the four stages in order for one RestoreRequest: build the manifest,
start the batch restore job, wait for every object to thaw, download. The
first stage that raises stops the pipeline; later stages are not attempted.
Individual download failures do not fail the pipeline, they are carried in
the result's report.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .downloader import Downloader, DownloadReport
from .initiator import RestoreInitiator
from .manifest import ManifestStats, build_manifest
from .monitor import StatusMonitor
from .request import RestoreRequest
from .settings import Settings
from .storage.base import BatchJobControl, IdentityResolver, ObjectStore

__all__ = ["RestorePipeline", "RestoreResult"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RestoreResult:
    """
    Outcome of a completed pipeline run.

    stats is None when the manifest was not built by this run.
    """
    job_id: str
    stats: Optional[ManifestStats]
    report: DownloadReport


class RestorePipeline:
    """
    Sequential orchestration of the restore stages.

    Stage objects may be injected; otherwise they are built from the
    collaborators and settings.
    """

    def __init__(self, store: ObjectStore, control: BatchJobControl,
                 identity: IdentityResolver, *, settings: Settings,
                 initiator: Optional[RestoreInitiator] = None,
                 monitor: Optional[StatusMonitor] = None,
                 cancel: Optional[threading.Event] = None) -> None:
        self._store = store
        self._settings = settings
        self.initiator = initiator or RestoreInitiator(store, control, identity)
        self.monitor = monitor or StatusMonitor(
            store,
            min_minutes=settings.poll_min_minutes,
            max_minutes=settings.poll_max_minutes,
            cancel=cancel,
            deadline_s=settings.monitor_deadline_s,
        )

    def cancel(self) -> None:
        """Ask the monitor stage, injected or built here, to stop."""
        self.monitor.cancel()

    def run(self, request: RestoreRequest, *, skip_manifest: bool = False) -> RestoreResult:
        """
        Run all stages for request.

        Args:
            request: The restore to perform
            skip_manifest: Reuse the manifest already published at the request's
                manifest location instead of listing the asset buckets again
        """
        logger.info(f"Starting restore of {request.restore_path} "
                    f"(project {request.project_id}, user {request.user})")

        stats: Optional[ManifestStats] = None
        if skip_manifest:
            self.fetch_manifest(request)
        else:
            stats = build_manifest(self._store, request.restore_path,
                                   request.asset_bucket_list, request.manifest_local_path)

        job_id = self.initiator.initiate(request)
        logger.info(f"S3 Batch Restore initiated with job ID: {job_id}")

        entries = self.monitor.wait_for_manifest(request.manifest_local_path)

        downloader = Downloader(self._store, workers=self._settings.download_workers,
                                ownership=request.ownership)
        report = downloader.download_all(entries, request.base_path)

        logger.info("Restore process completed")
        return RestoreResult(job_id=job_id, stats=stats, report=report)

    def fetch_manifest(self, request: RestoreRequest) -> Path:
        """Copy the published manifest to the request's local manifest path."""
        target = Path(request.manifest_local_path)
        logger.info(f"Fetching manifest s3://{request.manifest_bucket}/{request.manifest_key} to {target}")
        body = self._store.open_object(request.manifest_bucket, request.manifest_key)
        try:
            target.write_bytes(body.read())
        finally:
            body.close()
        return target
