"""
Operations Facade - Application service layer.

Provides a clean interface between the CLI and the restore stages,
centralizing command orchestration and configuration while keeping CLI
commands thin and testable.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..costs import RetrievalCostEstimate, estimate_retrieval_costs
from ..downloader import Downloader, DownloadReport
from ..manifest import ManifestStats, build_manifest, read_manifest
from ..monitor import ObjectRestoreState, StatusMonitor, remove_directories
from ..pipeline import RestorePipeline, RestoreResult
from ..request import RestoreRequest
from ..settings import Settings
from ..storage.base import BatchJobControl, IdentityResolver, ObjectStore


@dataclass(frozen=True)
class OpsConfig:
    """
    Configuration for Operations facade.

    Per-invocation policy that does not belong in Settings.
    """
    skip_manifest: bool = False   # Reuse the published manifest in `run`


class Operations:
    """
    Application service facade for CLI operations.

    One method per CLI verb. Adapters are created from settings on first
    use, so commands that never touch S3 Batch Operations or STS never
    build those clients. Exceptions bubble up for central mapping.
    """

    def __init__(self, config: OpsConfig, settings: Optional[Settings] = None, *,
                 store: Optional[ObjectStore] = None,
                 control: Optional[BatchJobControl] = None,
                 identity: Optional[IdentityResolver] = None):
        """
        Initialize Operations facade.

        Args:
            config: Configuration settings
            settings: Optional settings (if None, loaded from environment)
            store: Object store (if None, an S3ObjectStore is built from settings)
            control: Batch job control (if None, built from settings on first use)
            identity: Account resolver (if None, built from settings on first use)
        """
        self.cfg = config

        if settings is None:
            from ..settings import create_settings_from_env
            settings = create_settings_from_env()
        self.settings = settings

        self._store = store
        self._control = control
        self._identity = identity

    @property
    def store(self) -> ObjectStore:
        if self._store is None:
            from ..storage.s3 import S3ObjectStore
            self._store = S3ObjectStore(settings=self.settings)
        return self._store

    @property
    def control(self) -> BatchJobControl:
        if self._control is None:
            from ..storage.s3 import S3BatchJobControl
            self._control = S3BatchJobControl(settings=self.settings)
        return self._control

    @property
    def identity(self) -> IdentityResolver:
        if self._identity is None:
            from ..storage.s3 import StsIdentity
            self._identity = StsIdentity(settings=self.settings)
        return self._identity

    def run(self, request: RestoreRequest) -> RestoreResult:
        """Run the whole restore pipeline for request."""
        pipeline = RestorePipeline(self.store, self.control, self.identity, settings=self.settings)
        return pipeline.run(request, skip_manifest=self.cfg.skip_manifest)

    def manifest(self, prefix: str, buckets: List[str],
                 manifest_path: str) -> Tuple[ManifestStats, RetrievalCostEstimate]:
        """
        Build a manifest file and estimate what restoring it would cost.

        Returns:
            Manifest stats and the cost estimate for both retrieval classes
        """
        stats = build_manifest(self.store, prefix, buckets, manifest_path)
        return stats, estimate_retrieval_costs(stats)

    def status(self, manifest_path: str) -> Dict[ObjectRestoreState, int]:
        """
        Run one monitoring round over a manifest file without waiting.

        Returns:
            Number of objects per restore state
        """
        monitor = StatusMonitor(
            self.store,
            min_minutes=self.settings.poll_min_minutes,
            max_minutes=self.settings.poll_max_minutes,
        )
        states = monitor.check(remove_directories(read_manifest(manifest_path)))
        counts = {state: 0 for state in ObjectRestoreState}
        for state in states.values():
            counts[state] += 1
        return counts

    def download(self, manifest_path: str, base_path: Path, *,
                 uid: Optional[int] = None, gid: Optional[int] = None) -> DownloadReport:
        """
        Download every object listed in a manifest file.

        Args:
            manifest_path: Local manifest CSV
            base_path: Destination root
            uid: Optional owner applied to created files and directories
            gid: Optional group applied to created files and directories
        """
        ownership = None
        if uid is not None or gid is not None:
            ownership = (uid if uid is not None else -1, gid if gid is not None else -1)

        entries = remove_directories(read_manifest(manifest_path))
        downloader = Downloader(self.store, workers=self.settings.download_workers,
                                ownership=ownership)
        return downloader.download_all(entries, base_path)
