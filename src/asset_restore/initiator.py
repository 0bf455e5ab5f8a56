"""
Bulk-retrieval job initiation.

Publishes the manifest, submits an S3 Batch Operations restore job for it and
drives the job from its initial states through Suspended (awaiting
confirmation) into Ready. Completion of the restore itself is observed later
by the StatusMonitor, not here.
"""
from __future__ import annotations

import base64
import hashlib
import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, Optional

from tenacity import RetryError, retry_if_exception_type, retry_if_result

from .errors import (
    ETagResolutionFailed,
    JobFailed,
    JobNotReady,
    JobStartFailed,
    JobSubmissionFailed,
    ManifestMissing,
    ObjectNotFound,
    StaleManifestTag,
    StorageError,
)
from .request import RestoreRequest
from .retry import ETAG_POLICY, JOB_READY_POLICY, BackoffPolicy, log_before_sleep
from .storage.base import (
    BatchJobControl,
    CreateJobRequest,
    IdentityResolver,
    JobDescription,
    JobStatus,
    ObjectStore,
    RetrievalTier,
)

__all__ = ["RestoreInitiator", "retrieval_tier_for"]

logger = logging.getLogger(__name__)

RESTORE_EXPIRATION_DAYS = 7


def retrieval_tier_for(retrieval_type: str) -> RetrievalTier:
    """
    Map the requested speed class onto the batch job tier vocabulary.

    "standard" maps to STANDARD, the fastest tier batch restores accept
    (EXPEDITED is not supported there). Anything else maps to BULK.
    """
    if (retrieval_type or "").strip().lower() == "standard":
        return RetrievalTier.STANDARD
    return RetrievalTier.BULK


class RestoreInitiator:
    """
    Starts the batch restore job for a published manifest.

    Collaborators and backoff policies are injected; sleep is injectable so the
    retry loops can run instantly under test.
    """

    def __init__(self, store: ObjectStore, control: BatchJobControl,
                 identity: IdentityResolver, *,
                 etag_policy: BackoffPolicy = ETAG_POLICY,
                 ready_policy: BackoffPolicy = JOB_READY_POLICY,
                 sleep: Callable[[float], None] = time.sleep) -> None:
        self._store = store
        self._control = control
        self._identity = identity
        self._etag_policy = etag_policy
        self._ready_policy = ready_policy
        self._sleep = sleep

    def initiate(self, request: RestoreRequest) -> str:
        """
        Publish the manifest and start a restore job for it.

        Returns:
            The job id, once the job has been moved to Ready

        Raises:
            ManifestMissing / ETagResolutionFailed: If the manifest tag cannot be read
            JobSubmissionFailed: If the job request is rejected
            JobFailed: If the job fails or is cancelled before it can start
            JobNotReady: If the job never becomes startable within the poll bound
            JobStartFailed: If the start transition is rejected
        """
        logger.info("Initiating S3 Batch Operations restore job")

        self.publish_manifest(request)
        account_id = self._identity.account_id()
        etag = self.resolve_manifest_etag(request.manifest_bucket, request.manifest_key)

        job_request = CreateJobRequest(
            account_id=account_id,
            manifest_bucket=request.manifest_bucket,
            manifest_key=request.manifest_key,
            manifest_etag=etag,
            tier=retrieval_tier_for(request.retrieval_type),
            role_arn=request.role_arn,
            expiration_days=RESTORE_EXPIRATION_DAYS,
            description=_job_description(request),
        )
        job_id = self.submit_job(job_request)
        logger.info(f"S3 Batch Operations job created. Job ID: {job_id}")

        self.wait_until_startable(account_id, job_id)
        self.start_job(account_id, job_id)
        logger.info(f"S3 Batch Operations job {job_id} has been started")
        return job_id

    def publish_manifest(self, request: RestoreRequest) -> None:
        """Upload the local manifest to its durable location, overwriting any earlier copy."""
        data = Path(request.manifest_local_path).read_bytes()
        md5 = base64.b64encode(hashlib.md5(data).digest()).decode("ascii")
        logger.info(f"Uploading manifest to s3://{request.manifest_bucket}/{request.manifest_key}")
        self._store.put_object(request.manifest_bucket, request.manifest_key, data, content_md5=md5)

    def resolve_manifest_etag(self, bucket: str, key: str) -> str:
        """
        Read the manifest ETag, retrying under the ETag policy.

        After the retries run out, one more head request decides between a
        missing manifest and a tag that simply could not be read.
        """
        logger.info(f"Resolving ETag for manifest s3://{bucket}/{key}")

        def _etag() -> str:
            head = self._store.head_object(bucket, key)
            if not head.etag:
                raise StorageError(f"ETag is missing for s3://{bucket}/{key}")
            return head.etag

        retrying = self._etag_policy.retrying(
            sleep=self._sleep,
            retry=retry_if_exception_type(StorageError),
            before_sleep=log_before_sleep("Manifest ETag lookup"),
        )
        try:
            etag = retrying(_etag)
        except RetryError as e:
            last = e.last_attempt.exception()
            logger.error(f"Failed to get manifest ETag after retries: {last}")
            try:
                self._store.head_object(bucket, key)
            except ObjectNotFound as missing:
                raise ManifestMissing(
                    f"manifest file s3://{bucket}/{key} does not exist") from missing
            except StorageError as inaccessible:
                raise ManifestMissing(
                    f"manifest file s3://{bucket}/{key} is not accessible: {inaccessible}"
                ) from inaccessible
            raise ETagResolutionFailed(f"get manifest ETag: {last}") from last

        logger.info(f"Resolved manifest ETag: {etag}")
        return etag

    def submit_job(self, job_request: CreateJobRequest) -> str:
        """Create the job, refreshing the ETag once if the service reports it stale."""
        try:
            return self._control.create_job(job_request)
        except StaleManifestTag:
            logger.warning("ETag mismatch detected. Re-resolving manifest ETag and resubmitting")
        except StorageError as e:
            raise JobSubmissionFailed(f"failed to create S3 Batch Operations job: {e}") from e

        etag = self.resolve_manifest_etag(job_request.manifest_bucket, job_request.manifest_key)
        refreshed = _replace_etag(job_request, etag)
        try:
            return self._control.create_job(refreshed)
        except StorageError as e:
            raise JobSubmissionFailed(
                f"failed to create S3 Batch Operations job with updated ETag: {e}") from e

    def wait_until_startable(self, account_id: str, job_id: str) -> JobDescription:
        """
        Poll the job until it is Suspended, i.e. waiting for confirmation.

        Describe errors are retried within the same bound as not-ready states.
        """
        def _describe() -> JobDescription:
            desc = self._control.describe_job(account_id, job_id)
            logger.info(f"Job {job_id} status: {desc.status.value}")
            for i, (code, reason) in enumerate(desc.failure_reasons, start=1):
                logger.warning(f"Failure reason {i} - code: {code}, reason: {reason}")
            if desc.status.is_terminal_failure:
                raise JobFailed(
                    f"job {job_id} {desc.status.value.lower()}: "
                    + "; ".join(f"{c}: {r}" for c, r in desc.failure_reasons),
                    job_id=job_id,
                    status=desc.status.value,
                    reasons=desc.failure_reasons,
                )
            return desc

        retrying = self._ready_policy.retrying(
            sleep=self._sleep,
            retry=(retry_if_exception_type(StorageError)
                   | retry_if_result(lambda d: d.status != JobStatus.SUSPENDED)),
            before_sleep=log_before_sleep(f"Job {job_id} readiness"),
        )
        try:
            return retrying(_describe)
        except RetryError as e:
            last = e.last_attempt
            if last.failed:
                detail = f"last error: {last.exception()}"
            else:
                detail = f"last status: {last.result().status.value}"
            raise JobNotReady(
                f"job {job_id} did not reach a startable state within "
                f"{e.last_attempt.attempt_number} checks ({detail})") from e

    def start_job(self, account_id: str, job_id: str) -> None:
        try:
            self._control.update_job_status(account_id, job_id, JobStatus.READY)
        except StorageError as e:
            logger.error(f"Failed to start S3 Batch Operations job {job_id}: {e}")
            raise JobStartFailed(f"failed to start S3 Batch Operations job {job_id}: {e}") from e


def _replace_etag(job_request: CreateJobRequest, etag: str) -> CreateJobRequest:
    return replace(job_request, manifest_etag=etag)


def _job_description(request: RestoreRequest) -> Optional[str]:
    if request.project_id is None:
        return None
    return f"Asset restore for project {request.project_id}"
