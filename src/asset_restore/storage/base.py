"""
Storage interfaces for asset restores.

These protocols define the boundary between the restore pipeline and the
cloud services it drives, enabling clean dependency injection and testing
with fakes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Iterator, List, Optional, Protocol, Tuple, runtime_checkable


class JobStatus(str, Enum):
    """Batch job states as reported by the storage-control service."""
    NEW = "New"
    PREPARING = "Preparing"
    SUSPENDED = "Suspended"    # waiting for confirmation: ready to start
    READY = "Ready"            # start requested
    ACTIVE = "Active"          # executing
    PAUSING = "Pausing"
    PAUSED = "Paused"
    COMPLETING = "Completing"
    COMPLETE = "Complete"
    FAILING = "Failing"
    FAILED = "Failed"
    CANCELLING = "Cancelling"
    CANCELLED = "Cancelled"

    @property
    def is_terminal_failure(self) -> bool:
        return self in (JobStatus.FAILING, JobStatus.FAILED,
                        JobStatus.CANCELLING, JobStatus.CANCELLED)


class RetrievalTier(str, Enum):
    """Glacier retrieval tiers accepted by batch restore jobs."""
    STANDARD = "STANDARD"
    BULK = "BULK"


@dataclass(frozen=True)
class ObjectSummary:
    """One listing result."""
    key: str
    size: int
    storage_class: Optional[str] = None


@dataclass(frozen=True)
class ObjectHead:
    """
    Head metadata for a stored object.

    Invariants:
    - etag: quoted or unquoted entity tag exactly as returned by the service
    - storage_class: None means the service omitted it, which S3 does for STANDARD
    - restore: raw x-amz-restore header, e.g. 'ongoing-request="false", expiry-date="..."'
    """
    etag: Optional[str] = None
    size: int = 0
    storage_class: Optional[str] = None
    restore: Optional[str] = None


@dataclass(frozen=True)
class JobDescription:
    """Observed state of a bulk-retrieval job."""
    job_id: str
    status: JobStatus
    failure_reasons: Tuple[Tuple[str, str], ...] = ()
    tasks_total: Optional[int] = None
    tasks_succeeded: Optional[int] = None
    tasks_failed: Optional[int] = None


@dataclass(frozen=True)
class CreateJobRequest:
    """
    Everything needed to submit a batch restore job for a CSV manifest.

    The manifest fields are always Bucket,Key. The report sink is the manifest
    bucket under report_prefix.
    """
    account_id: str
    manifest_bucket: str
    manifest_key: str
    manifest_etag: str
    tier: RetrievalTier
    role_arn: str
    expiration_days: int = 7
    priority: int = 10
    report_prefix: str = "batch-job-reports/"
    confirmation_required: bool = True
    description: Optional[str] = None
    tags: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def manifest_arn(self) -> str:
        return f"arn:aws:s3:::{self.manifest_bucket}/{self.manifest_key}"

    @property
    def report_bucket_arn(self) -> str:
        return f"arn:aws:s3:::{self.manifest_bucket}"


__all__ = [
    "JobStatus",
    "RetrievalTier",
    "ObjectSummary",
    "ObjectHead",
    "JobDescription",
    "CreateJobRequest",
    "ObjectStore",
    "BatchJobControl",
    "IdentityResolver",
]


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol for object storage operations, keyed by bucket + key."""

    def list_objects(self, bucket: str, prefix: str) -> Iterator[ObjectSummary]:
        """
        List every object under prefix, following pagination.

        Raises:
            StorageError: If a listing page cannot be fetched
        """
        ...

    def head_object(self, bucket: str, key: str) -> ObjectHead:
        """
        Get object metadata without fetching content.

        Raises:
            ObjectNotFound: If the object does not exist
            StorageError: For other service errors
        """
        ...

    def open_object(self, bucket: str, key: str) -> IO[bytes]:
        """
        Open a streamed body for the object. Caller closes it.

        Raises:
            ObjectNotFound: If the object does not exist
            StorageError: For other service errors (including InvalidObjectState
                when the object is still archived)
        """
        ...

    def put_object(self, bucket: str, key: str, data: bytes, *,
                   content_md5: Optional[str] = None) -> ObjectHead:
        """
        Store an object, overwriting any previous version.

        Args:
            bucket: Target bucket
            key: Target key
            data: Object content
            content_md5: Base64 MD5 digest the service must verify

        Returns:
            Head metadata of the stored object (ETag may be absent)
        """
        ...


@runtime_checkable
class BatchJobControl(Protocol):
    """Protocol for the storage-control (batch operations) service."""

    def create_job(self, request: CreateJobRequest) -> str:
        """
        Submit a batch restore job and return its id.

        Raises:
            StaleManifestTag: If the service rejects the manifest location/ETag
            StorageError: For any other rejection
        """
        ...

    def describe_job(self, account_id: str, job_id: str) -> JobDescription:
        """Describe a job's current status and failure reasons."""
        ...

    def update_job_status(self, account_id: str, job_id: str,
                          status: JobStatus) -> JobStatus:
        """Request a status transition. Returns the status the service reports."""
        ...


@runtime_checkable
class IdentityResolver(Protocol):
    """Protocol for resolving the caller's account."""

    def account_id(self) -> str:
        ...
