"""
AWS adapters for the storage protocols.

Implements ObjectStore on S3, BatchJobControl on S3 Control (Batch
Operations) and IdentityResolver on STS, all via boto3. SDK exceptions are
mapped onto the restore error taxonomy at this boundary.
"""
from __future__ import annotations

import logging
import uuid
from typing import IO, Iterator, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import ObjectNotFound, StaleManifestTag, StorageError
from ..settings import Settings
from .base import (
    BatchJobControl,
    CreateJobRequest,
    IdentityResolver,
    JobDescription,
    JobStatus,
    ObjectHead,
    ObjectStore,
    ObjectSummary,
)

__all__ = ["S3ObjectStore", "S3BatchJobControl", "StsIdentity"]

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound", "NoSuchBucket"}

MANIFEST_FORMAT = "S3BatchOperations_CSV_20180820"
REPORT_FORMAT = "Report_CSV_20180820"


def _client_config(settings: Settings) -> Config:
    return Config(retries={"max_attempts": settings.max_attempts, "mode": "standard"})


def _client_kwargs(settings: Settings) -> dict:
    kwargs: dict = {"config": _client_config(settings)}
    if settings.aws_region:
        kwargs["region_name"] = settings.aws_region
    return kwargs


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


def _map_error(e: Exception, what: str) -> StorageError:
    """Translate a botocore exception into a StorageError subclass."""
    if isinstance(e, ClientError):
        code = _error_code(e)
        if code in _NOT_FOUND_CODES:
            return ObjectNotFound(f"{what}: not found", code=code)
        return StorageError(f"{what}: {e}", code=code)
    return StorageError(f"{what}: {e}")


class S3ObjectStore(ObjectStore):
    """
    ObjectStore adapter for Amazon S3.

    Supports a custom endpoint for S3-compatible services. Retries of single
    API calls are left to botocore's standard retry mode.
    """

    def __init__(self, *, settings: Settings, client=None) -> None:
        self._settings = settings
        if client is None:
            kwargs = _client_kwargs(settings)
            if settings.s3_endpoint_url:
                kwargs["endpoint_url"] = settings.s3_endpoint_url
            client = boto3.client("s3", **kwargs)
        self._s3 = client

        if settings.s3_endpoint_url:
            logger.debug(f"S3 adapter using custom endpoint: {settings.s3_endpoint_url}")
        logger.debug(f"S3 adapter region: {settings.aws_region or 'default'}, "
                     f"max_attempts: {settings.max_attempts}")

    def list_objects(self, bucket: str, prefix: str) -> Iterator[ObjectSummary]:
        paginator = self._s3.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    yield ObjectSummary(
                        key=obj["Key"],
                        size=int(obj.get("Size", 0)),
                        storage_class=obj.get("StorageClass"),
                    )
        except (ClientError, BotoCoreError) as e:
            raise _map_error(e, f"failed to list objects in bucket {bucket}") from e

    def head_object(self, bucket: str, key: str) -> ObjectHead:
        try:
            resp = self._s3.head_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _map_error(e, f"head object failed for s3://{bucket}/{key}") from e

        return ObjectHead(
            etag=resp.get("ETag"),
            size=int(resp.get("ContentLength", 0)),
            storage_class=resp.get("StorageClass"),
            restore=resp.get("Restore"),
        )

    def open_object(self, bucket: str, key: str) -> IO[bytes]:
        try:
            resp = self._s3.get_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _map_error(e, f"failed to get s3://{bucket}/{key}") from e
        return resp["Body"]

    def put_object(self, bucket: str, key: str, data: bytes, *,
                   content_md5: Optional[str] = None) -> ObjectHead:
        kwargs = {"Bucket": bucket, "Key": key, "Body": data}
        if content_md5:
            kwargs["ContentMD5"] = content_md5
        try:
            resp = self._s3.put_object(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise _map_error(e, f"failed to upload s3://{bucket}/{key}") from e

        logger.info(f"Uploaded s3://{bucket}/{key} ({len(data)} bytes)")
        return ObjectHead(etag=resp.get("ETag"), size=len(data))


class S3BatchJobControl(BatchJobControl):
    """BatchJobControl adapter for S3 Batch Operations restore jobs."""

    def __init__(self, *, settings: Settings, client=None) -> None:
        self._settings = settings
        self._control = client or boto3.client("s3control", **_client_kwargs(settings))

    def create_job(self, request: CreateJobRequest) -> str:
        kwargs = {
            "AccountId": request.account_id,
            "ConfirmationRequired": request.confirmation_required,
            "Operation": {
                "S3InitiateRestoreObject": {
                    "ExpirationInDays": request.expiration_days,
                    "GlacierJobTier": request.tier.value,
                }
            },
            "Report": {
                "Enabled": True,
                "Bucket": request.report_bucket_arn,
                "Prefix": request.report_prefix,
                "Format": REPORT_FORMAT,
                "ReportScope": "AllTasks",
            },
            "Manifest": {
                "Spec": {"Format": MANIFEST_FORMAT, "Fields": ["Bucket", "Key"]},
                "Location": {"ObjectArn": request.manifest_arn, "ETag": request.manifest_etag},
            },
            "Priority": request.priority,
            "RoleArn": request.role_arn,
            "ClientRequestToken": str(uuid.uuid4()),
        }
        if request.description:
            kwargs["Description"] = request.description
        if request.tags:
            kwargs["Tags"] = [{"Key": k, "Value": v} for k, v in request.tags]

        try:
            resp = self._control.create_job(**kwargs)
        except ClientError as e:
            code = _error_code(e)
            if code == "InvalidManifest":
                raise StaleManifestTag(f"job rejected manifest {request.manifest_arn}: {e}",
                                       code=code) from e
            raise StorageError(f"failed to create batch job: {e}", code=code) from e
        except BotoCoreError as e:
            raise StorageError(f"failed to create batch job: {e}") from e

        return resp["JobId"]

    def describe_job(self, account_id: str, job_id: str) -> JobDescription:
        try:
            resp = self._control.describe_job(AccountId=account_id, JobId=job_id)
        except (ClientError, BotoCoreError) as e:
            raise _map_error(e, f"failed to describe job {job_id}") from e

        job = resp.get("Job", {})
        progress = job.get("ProgressSummary", {}) or {}
        reasons = tuple(
            (r.get("FailureCode", ""), r.get("FailureReason", ""))
            for r in job.get("FailureReasons", []) or []
        )
        return JobDescription(
            job_id=job.get("JobId", job_id),
            status=JobStatus(job["Status"]),
            failure_reasons=reasons,
            tasks_total=progress.get("TotalNumberOfTasks"),
            tasks_succeeded=progress.get("NumberOfTasksSucceeded"),
            tasks_failed=progress.get("NumberOfTasksFailed"),
        )

    def update_job_status(self, account_id: str, job_id: str,
                          status: JobStatus) -> JobStatus:
        try:
            resp = self._control.update_job_status(
                AccountId=account_id,
                JobId=job_id,
                RequestedJobStatus=status.value,
            )
        except (ClientError, BotoCoreError) as e:
            raise _map_error(e, f"failed to update job {job_id} to {status.value}") from e
        return JobStatus(resp.get("Status", status.value))


class StsIdentity(IdentityResolver):
    """Resolves the account id of the current credentials via STS."""

    def __init__(self, *, settings: Settings, client=None) -> None:
        self._sts = client or boto3.client("sts", **_client_kwargs(settings))

    def account_id(self) -> str:
        try:
            return self._sts.get_caller_identity()["Account"]
        except (ClientError, BotoCoreError) as e:
            raise _map_error(e, "failed to get caller identity") from e
