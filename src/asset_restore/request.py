"""
Restore request model.

A RestoreRequest is created once per restore operation, either by the launch
layer (serialized into the RESTORE_PARAMS environment variable of the worker
process) or from a project path by the CLI. It is the sole configuration
source for every pipeline stage and is never mutated.
"""
from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidRequest

__all__ = ["RestoreRequest", "RESTORE_PARAMS_ENV", "split_project_path"]

RESTORE_PARAMS_ENV = "RESTORE_PARAMS"

ASSETS_MARKER = "/Assets/"
MANIFEST_KEY_PREFIX = "batch-manifests/"


class RestoreRequest(BaseModel):
    """
    Immutable description of one restore.

    Field aliases match the camelCase JSON produced by the launcher. Unknown
    keys (credentials, SMTP settings) are ignored; credentials come from the
    environment's default AWS chain instead.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    restore_path: str = Field(..., alias="restorePath", description="Key prefix to restore")
    asset_bucket_list: List[str] = Field(default_factory=list, alias="assetBucketList",
                                         description="Candidate buckets in precedence order")
    manifest_local_path: str = Field(default="/tmp/manifest.csv", alias="manifestLocalPath")
    manifest_bucket: str = Field(..., alias="manifestBucket")
    manifest_key: str = Field(..., alias="manifestKey")
    role_arn: str = Field(default="", alias="roleArn", description="IAM role assumed by the batch job")
    retrieval_type: str = Field(default="bulk", alias="retrievalType",
                                description="Speed class: 'standard' or 'bulk'")
    base_path: str = Field(..., alias="basePath", description="Local destination root")
    file_owner_uid: Optional[int] = Field(default=None, alias="fileOwnerUid")
    file_owner_gid: Optional[int] = Field(default=None, alias="fileOwnerGid")
    project_id: Optional[int] = Field(default=None, alias="projectId")
    user: Optional[str] = Field(default=None)

    @field_validator("asset_bucket_list")
    @classmethod
    def strip_bucket_names(cls, v: List[str]) -> List[str]:
        """Drop blanks produced by splitting an empty ASSET_BUCKET_LIST."""
        return [b.strip() for b in v if b and b.strip()]

    @field_validator("retrieval_type")
    @classmethod
    def normalize_retrieval_type(cls, v: str) -> str:
        return (v or "bulk").strip().lower()

    @field_validator("file_owner_uid", "file_owner_gid")
    @classmethod
    def validate_owner_id(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError(f"owner id must be non-negative, got {v}")
        return v

    @property
    def ownership(self) -> Optional[Tuple[int, int]]:
        """
        (uid, gid) to apply to restored files, or None when not configured.

        A missing half is returned as -1 so os.chown leaves it unchanged.
        """
        if self.file_owner_uid is None and self.file_owner_gid is None:
            return None
        uid = self.file_owner_uid if self.file_owner_uid is not None else -1
        gid = self.file_owner_gid if self.file_owner_gid is not None else -1
        return uid, gid

    @classmethod
    def from_json(cls, blob: str) -> RestoreRequest:
        """
        Parse the launcher's serialized configuration blob.

        Raises:
            InvalidRequest: If the blob is not JSON or misses required fields
        """
        try:
            data = json.loads(blob)
        except (TypeError, json.JSONDecodeError) as e:
            raise InvalidRequest(f"Restore parameters are not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidRequest("Restore parameters must be a JSON object")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidRequest(f"Invalid restore parameters: {e}") from e

    @classmethod
    def from_env(cls) -> RestoreRequest:
        """Load the request from the RESTORE_PARAMS environment variable."""
        blob = os.getenv(RESTORE_PARAMS_ENV)
        if not blob:
            raise InvalidRequest(f"{RESTORE_PARAMS_ENV} environment variable is required")
        return cls.from_json(blob)

    @classmethod
    def from_file(cls, path: Path) -> RestoreRequest:
        if not path.exists():
            raise InvalidRequest(f"Restore parameters file not found: {path}")
        return cls.from_json(path.read_text(encoding="utf-8"))

    @classmethod
    def from_project_path(
        cls,
        project_path: str,
        *,
        project_id: int,
        user: str,
        asset_buckets: List[str],
        manifest_bucket: str,
        role_arn: str,
        retrieval_type: str = "bulk",
        manifest_local_path: str = "/tmp/manifest.csv",
        uid: Optional[int] = None,
        gid: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> RestoreRequest:
        """
        Build a request from a full project path on the working filesystem.

        The path is split at its '/Assets/' component: the part after it is the
        key prefix inside the asset buckets, the part up to and including it is
        the local destination root.
        """
        restore_path, base_path = split_project_path(project_path)
        return cls(
            restore_path=restore_path,
            asset_bucket_list=asset_buckets,
            manifest_local_path=manifest_local_path,
            manifest_bucket=manifest_bucket,
            manifest_key=manifest_key_for(project_id, user, now or datetime.now()),
            role_arn=role_arn,
            retrieval_type=retrieval_type,
            base_path=base_path,
            file_owner_uid=uid,
            file_owner_gid=gid,
            project_id=project_id,
            user=user,
        )


def split_project_path(full_path: str) -> Tuple[str, str]:
    """
    Split a project path into (bucket prefix, local base path).

    Examples:
        >>> split_project_path("/srv/Media/Assets/Proj/Clips")
        ('Proj/Clips/', '/srv/Media/Assets/')

        >>> split_project_path("Proj/Clips")
        ('Proj/Clips/', 'Proj/Clips')
    """
    head, sep, tail = full_path.partition(ASSETS_MARKER)
    if sep:
        return tail + "/", head + ASSETS_MARKER
    return full_path + "/", full_path


def manifest_key_for(project_id: int, user: str, when: datetime) -> str:
    """Timestamped manifest key: batch-manifests/<id>_<user>_<YYYY-mm-dd_HH-MM-SS>.csv."""
    local_part = user.split("@", 1)[0].replace(".", "_", 1)
    return f"{MANIFEST_KEY_PREFIX}{project_id}_{local_part}_{when.strftime('%Y-%m-%d_%H-%M-%S')}.csv"
