"""
Settings and configuration for asset restores.

Centralizes process-level configuration values and provides validation with
fail-fast behavior. Per-restore values live in RestoreRequest; these settings
only tune how the worker talks to AWS and how aggressively it polls.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

__all__ = ["Settings", "create_settings_from_env"]


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for the restore worker.

    AWS Settings:
        aws_region: Region for S3, S3 Control and STS clients (None = boto3 default)
        s3_endpoint_url: Custom S3 endpoint (MinIO/LocalStack)
        max_attempts: botocore retry attempts per API call

    Pipeline Settings:
        download_workers: Fixed size of the download worker pool
        poll_min_minutes: Lower bound of the randomized monitor sleep
        poll_max_minutes: Upper bound (exclusive) of the randomized monitor sleep
        monitor_deadline_s: Optional overall monitor deadline in seconds
    """
    # AWS settings
    aws_region: Optional[str] = None
    s3_endpoint_url: Optional[str] = None
    max_attempts: int = 5

    # Pipeline settings
    download_workers: int = 10
    poll_min_minutes: int = 15
    poll_max_minutes: int = 45
    monitor_deadline_s: Optional[float] = None

    def __post_init__(self):
        """Validate settings on construction."""
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

        if self.download_workers < 1:
            raise ValueError(f"download_workers must be at least 1, got {self.download_workers}")

        if self.poll_min_minutes < 0:
            raise ValueError(f"poll_min_minutes must be non-negative, got {self.poll_min_minutes}")

        if self.poll_max_minutes <= self.poll_min_minutes:
            raise ValueError(
                f"poll_max_minutes must be greater than poll_min_minutes, "
                f"got {self.poll_max_minutes} <= {self.poll_min_minutes}"
            )

        if self.monitor_deadline_s is not None and self.monitor_deadline_s <= 0:
            raise ValueError(f"monitor_deadline_s must be positive, got {self.monitor_deadline_s}")

        if self.s3_endpoint_url and not self.s3_endpoint_url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid s3_endpoint_url format: {self.s3_endpoint_url}")


def create_settings_from_env() -> Settings:
    """
    Load settings from environment variables.

    Environment Variables:
        - AWS_DEFAULT_REGION or AWS_REGION (optional)
        - ASSET_RESTORE_S3_ENDPOINT (optional)
        - ASSET_RESTORE_HTTP_RETRY (default: 5)
        - ASSET_RESTORE_DOWNLOAD_WORKERS (default: 10)
        - ASSET_RESTORE_POLL_MIN_MINUTES (default: 15)
        - ASSET_RESTORE_POLL_MAX_MINUTES (default: 45)
        - ASSET_RESTORE_MONITOR_DEADLINE (optional, seconds)

    Returns:
        Settings object with validated configuration

    Raises:
        ValueError: If configuration is invalid

    Note:
        Creates a fresh Settings instance every time (no caching).
        Credentials are not read here; boto3's default chain handles them.
    """
    def get_float(key: str) -> Optional[float]:
        value = os.getenv(key)
        return float(value) if value else None

    def get_int(key: str, default: int) -> int:
        value = os.getenv(key)
        return int(value) if value else default

    return Settings(
        aws_region=os.getenv("AWS_DEFAULT_REGION") or os.getenv("AWS_REGION"),
        s3_endpoint_url=os.getenv("ASSET_RESTORE_S3_ENDPOINT"),
        max_attempts=get_int("ASSET_RESTORE_HTTP_RETRY", 5),
        download_workers=get_int("ASSET_RESTORE_DOWNLOAD_WORKERS", 10),
        poll_min_minutes=get_int("ASSET_RESTORE_POLL_MIN_MINUTES", 15),
        poll_max_minutes=get_int("ASSET_RESTORE_POLL_MAX_MINUTES", 45),
        monitor_deadline_s=get_float("ASSET_RESTORE_MONITOR_DEADLINE"),
    )
