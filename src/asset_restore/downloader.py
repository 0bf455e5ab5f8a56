"""
Concurrent download of restored objects.

A fixed-size thread pool copies each object to ``base_path / key``. Every
entry is independent: a failure removes that entry's partial file and is
recorded in the report, but never stops the other downloads. Existing files
are never overwritten; a numeric suffix is inserted before the extension
instead.
"""
from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence, Tuple, Union

from .manifest import ManifestEntry
from .path_safety import safe_relpath
from .storage.base import ObjectStore

__all__ = ["DownloadOutcome", "DownloadReport", "Downloader", "open_unique", "prepare_base_path"]

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1 MiB
DEFAULT_WORKERS = 10


@dataclass(frozen=True)
class DownloadOutcome:
    """Result of downloading one manifest entry."""
    entry: ManifestEntry
    path: Optional[Path] = None
    bytes_written: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DownloadReport:
    """Per-entry outcomes of a download run."""
    base_path: Path
    outcomes: List[DownloadOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[DownloadOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> List[DownloadOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def total_bytes(self) -> int:
        return sum(o.bytes_written for o in self.succeeded)


def prepare_base_path(base_path: Union[str, Path],
                      ownership: Optional[Tuple[int, int]] = None) -> Path:
    """
    Normalize and create the destination root.

    When ownership is given, every directory this call creates gets it;
    directories that already existed are left alone.

    Raises:
        OSError: If the directory cannot be created, is not a directory
            afterwards, or its ownership cannot be set
    """
    base = Path(os.path.normpath(str(base_path)))
    missing = [p for p in (base, *base.parents) if not p.exists()]
    base.mkdir(parents=True, exist_ok=True)
    if not base.is_dir():
        raise NotADirectoryError(f"failed to verify base path creation {base}")
    if ownership is not None:
        for p in reversed(missing):
            os.chown(p, *ownership)
    return base


def open_unique(target: Path) -> Tuple[Path, BinaryIO]:
    """
    Exclusively create target, or the first free ``name_N.ext`` next to it.

    Exclusive creation makes this safe against other workers picking the same
    name at the same time.
    """
    stem, ext = os.path.splitext(target.name)
    counter = 0
    while True:
        candidate = target if counter == 0 else target.with_name(f"{stem}_{counter}{ext}")
        try:
            return candidate, open(candidate, "xb")
        except FileExistsError:
            counter += 1


def _make_parents(base: Path, rel: str) -> List[Path]:
    """
    Create the directories between base and the file named by rel.

    Returns the directories this call created; directories that already exist,
    including ones another worker creates concurrently, are not an error.
    """
    created = []
    current = base
    for part in Path(rel).parts[:-1]:
        current = current / part
        try:
            current.mkdir()
            created.append(current)
        except FileExistsError:
            if not current.is_dir():
                raise
    return created


class Downloader:
    """
    Bounded worker pool downloading restored objects.

    Args:
        store: Object store to stream bodies from
        workers: Fixed number of concurrent downloads
        ownership: Optional (uid, gid) applied to created directories and files
        chunk_size: Streaming buffer size
    """

    def __init__(self, store: ObjectStore, *, workers: int = DEFAULT_WORKERS,
                 ownership: Optional[Tuple[int, int]] = None,
                 chunk_size: int = CHUNK_SIZE) -> None:
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")
        self._store = store
        self._workers = workers
        self._ownership = ownership
        self._chunk_size = chunk_size

    def download_all(self, entries: Sequence[ManifestEntry],
                     base_path: Union[str, Path]) -> DownloadReport:
        """
        Download every entry under base_path.

        Only the destination root is fatal; individual failures end up in the
        report.

        Raises:
            OSError: If base_path cannot be created
        """
        base = prepare_base_path(base_path, self._ownership)
        logger.info(f"Downloading {len(entries)} files to {base} with {self._workers} workers")

        report = DownloadReport(base_path=base)
        with ThreadPoolExecutor(max_workers=self._workers,
                                thread_name_prefix="restore-download") as executor:
            for outcome in executor.map(lambda e: self.download_one(e, base), entries):
                if not outcome.ok:
                    logger.error(f"Error downloading {outcome.entry}: {outcome.error}")
                report.outcomes.append(outcome)

        logger.info(f"Downloaded {len(report.succeeded)}/{len(entries)} files "
                    f"({report.total_bytes} bytes), {len(report.failed)} failed")
        return report

    def download_one(self, entry: ManifestEntry, base: Path) -> DownloadOutcome:
        """Download one entry; never raises."""
        try:
            rel = safe_relpath(entry.key)
            created_dirs = _make_parents(base, rel)
            path, out = open_unique(base / rel)
        except (ValueError, OSError) as e:
            return DownloadOutcome(entry=entry, error=f"failed to create file for {entry}: {e}")

        try:
            written = self._stream(entry, out)
        except Exception as e:
            out.close()
            _remove_quietly(path)
            return DownloadOutcome(entry=entry, error=f"failed to download {entry}: {e}")
        out.close()

        logger.info(f"Downloaded {entry} to {path} ({written} bytes)")

        if self._ownership is not None:
            try:
                self._apply_ownership(created_dirs + [path])
            except OSError as e:
                return DownloadOutcome(entry=entry, path=path, bytes_written=written,
                                       error=f"failed to set ownership on {path}: {e}")

        return DownloadOutcome(entry=entry, path=path, bytes_written=written)

    def _stream(self, entry: ManifestEntry, out: BinaryIO) -> int:
        body = self._store.open_object(entry.bucket, entry.key)
        written = 0
        try:
            while True:
                chunk = body.read(self._chunk_size)
                if not chunk:
                    break
                out.write(chunk)
                written += len(chunk)
        finally:
            close = getattr(body, "close", None)
            if close is not None:
                close()
        out.flush()
        return written

    def _apply_ownership(self, paths: Sequence[Path]) -> None:
        uid, gid = self._ownership
        for p in paths:
            os.chown(p, uid, gid)


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
