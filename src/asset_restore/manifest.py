"""
Restore manifest construction and persistence.

The manifest is the durable hand-off artifact between pipeline stages: a CSV
file with one ``bucket,key`` record per line and no header, in the format S3
Batch Operations expects. It may be re-read by a different process than the
one that wrote it.
"""
from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple, Union

from .errors import EmptyBucketList, InvalidManifestPath, InvalidPrefix, NoObjectsFound
from .storage.base import ObjectStore

__all__ = [
    "ManifestEntry",
    "ManifestStats",
    "build_manifest",
    "collect_entries",
    "write_manifest",
    "read_manifest",
]

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class ManifestEntry:
    """A single object to restore."""
    bucket: str
    key: str

    @property
    def is_directory(self) -> bool:
        """Zero-byte folder placeholders end with the separator."""
        return self.key.endswith("/")

    def __str__(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


@dataclass(frozen=True)
class ManifestStats:
    """Aggregate size of a manifest, used for cost estimates and reporting."""
    file_count: int
    total_size: int


def _check_scope(prefix: str, buckets: Sequence[str]) -> None:
    if not prefix or prefix == "/":
        raise InvalidPrefix(f"invalid prefix: {prefix!r}")
    if not buckets:
        raise EmptyBucketList("no asset buckets provided")


def collect_entries(store: ObjectStore, prefix: str,
                    buckets: Sequence[str]) -> Tuple[Dict[str, str], ManifestStats]:
    """
    Discover objects under prefix across buckets, deduplicating by key.

    Buckets are scanned in list order and the first bucket that holds a key
    owns it. Count and size only include the owning copy.

    Returns:
        (key -> bucket mapping, stats)

    Raises:
        InvalidPrefix: If prefix is empty or "/"
        EmptyBucketList: If no buckets are given
        NoObjectsFound: If nothing matches in any bucket
        StorageError: If a listing call fails
    """
    _check_scope(prefix, buckets)

    owners: Dict[str, str] = {}
    total_size = 0

    for bucket in buckets:
        logger.info(f"Checking bucket {bucket} for prefix {prefix}")
        found = 0
        for obj in store.list_objects(bucket, prefix):
            if obj.key in owners:
                continue
            owners[obj.key] = bucket
            total_size += obj.size
            found += 1
        logger.debug(f"Bucket {bucket}: {found} new objects")

    if not owners:
        raise NoObjectsFound(f"no objects found in any bucket with prefix: {prefix}")

    return owners, ManifestStats(file_count=len(owners), total_size=total_size)


def write_manifest(path: PathLike, entries: Iterable[ManifestEntry]) -> int:
    """
    Write entries as bucket,key records, replacing any existing file.

    Keys containing commas or quotes are quoted by the csv module.

    Returns:
        Number of records written
    """
    count = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, lineterminator="\n")
        for entry in entries:
            writer.writerow([entry.bucket, entry.key])
            count += 1
    return count


def read_manifest(path: PathLike) -> List[ManifestEntry]:
    """
    Read a manifest file. Records that are not exactly two fields are skipped.

    Raises:
        FileNotFoundError: If the manifest does not exist
    """
    entries: List[ManifestEntry] = []
    with open(path, "r", newline="", encoding="utf-8") as f:
        for lineno, row in enumerate(csv.reader(f), start=1):
            if len(row) != 2:
                if row:
                    logger.warning(f"Skipping malformed manifest line {lineno} in {path}")
                continue
            entries.append(ManifestEntry(bucket=row[0], key=row[1]))
    return entries


def build_manifest(store: ObjectStore, prefix: str, buckets: Sequence[str],
                   manifest_path: PathLike) -> ManifestStats:
    """
    Build the restore manifest for prefix and write it to manifest_path.

    Raises:
        InvalidPrefix, EmptyBucketList, InvalidManifestPath: Before any listing
        NoObjectsFound: If no bucket holds anything under prefix
    """
    _check_scope(prefix, buckets)
    if not manifest_path:
        raise InvalidManifestPath("invalid file path: manifest path is empty")

    owners, stats = collect_entries(store, prefix, buckets)
    write_manifest(manifest_path, (ManifestEntry(bucket=b, key=k) for k, b in owners.items()))

    logger.info(f"Generated manifest with {stats.file_count} unique objects "
                f"({stats.total_size} bytes) from {len(buckets)} buckets")
    return stats
