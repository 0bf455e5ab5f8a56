"""
Restore error classes.

Provides a clear taxonomy of errors that can occur while restoring assets
from cold storage. Storage adapters map SDK exceptions onto these classes so
the pipeline and the CLI see one consistent error interface regardless of
the underlying client.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple


class RestoreError(Exception):
    """Base class for all restore errors."""
    pass


# Configuration errors: fatal, raised before any remote mutation

class InvalidRequest(RestoreError):
    """
    Restore request is malformed.

    Raised when:
    - RESTORE_PARAMS is missing or not valid JSON
    - a required request field is missing or has the wrong type
    """
    pass


class InvalidPrefix(RestoreError):
    """Restore path prefix is empty or the root separator."""
    pass


class EmptyBucketList(RestoreError):
    """No candidate asset buckets were supplied."""
    pass


class InvalidManifestPath(RestoreError):
    """Local manifest path is empty."""
    pass


class NoObjectsFound(RestoreError):
    """No bucket contains any object under the restore prefix."""
    pass


# Storage errors: raised by adapters, transient unless stated otherwise

class StorageError(RestoreError):
    """
    Remote storage call failed.

    Raised when:
    - network errors or throttling from the object store
    - unexpected service errors from the batch-job control plane
    """

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class ObjectNotFound(StorageError):
    """
    Object does not exist.

    Raised when:
    - HTTP 404 / NoSuchKey on head or get
    """
    pass


class StaleManifestTag(StorageError):
    """
    Batch job rejected the manifest.

    Raised when the service answers InvalidManifest, which in practice means the
    ETag sent with the job request no longer matches the manifest object.
    """
    pass


# Initiation errors

class ManifestMissing(RestoreError):
    """Published manifest object cannot be found after ETag retries ran out."""
    pass


class ETagResolutionFailed(RestoreError):
    """Manifest exists but its ETag could not be resolved within the retry budget."""
    pass


class JobSubmissionFailed(RestoreError):
    """Bulk-retrieval job request was rejected."""
    pass


class JobStartFailed(RestoreError):
    """Job could not be moved from suspended into the ready state."""
    pass


class JobNotReady(RestoreError):
    """Job never reached the suspended state within the polling bound."""
    pass


class JobFailed(RestoreError):
    """
    Job reached a terminal failed or cancelled state.

    Carries the remote failure reasons verbatim as (code, reason) pairs.
    """

    def __init__(self, message: str, job_id: str, status: str,
                 reasons: Sequence[Tuple[str, str]] = ()):
        super().__init__(message)
        self.job_id = job_id
        self.status = status
        self.reasons: List[Tuple[str, str]] = list(reasons)


# Monitor errors

class RestoreCancelled(RestoreError):
    """Monitoring was cancelled by the caller."""
    pass


class MonitorDeadlineExceeded(RestoreError):
    """Objects were still thawing when the monitor deadline passed."""

    def __init__(self, message: str, pending: int):
        super().__init__(message)
        self.pending = pending


__all__ = [
    "RestoreError",
    "InvalidRequest",
    "InvalidPrefix",
    "EmptyBucketList",
    "InvalidManifestPath",
    "NoObjectsFound",
    "StorageError",
    "ObjectNotFound",
    "StaleManifestTag",
    "ManifestMissing",
    "ETagResolutionFailed",
    "JobSubmissionFailed",
    "JobStartFailed",
    "JobNotReady",
    "JobFailed",
    "RestoreCancelled",
    "MonitorDeadlineExceeded",
]
