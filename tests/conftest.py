"""Root pytest configuration for asset-restore tests."""
import pytest

from asset_restore.request import RestoreRequest
from asset_restore.retry import BackoffPolicy
from asset_restore.settings import Settings
from .storage.fakes import FakeBatchJobControl, FakeIdentity, FakeObjectStore


_ENV_VARS = (
    "RESTORE_PARAMS",
    "AWS_DEFAULT_REGION",
    "AWS_REGION",
    "ASSET_RESTORE_S3_ENDPOINT",
    "ASSET_RESTORE_HTTP_RETRY",
    "ASSET_RESTORE_DOWNLOAD_WORKERS",
    "ASSET_RESTORE_POLL_MIN_MINUTES",
    "ASSET_RESTORE_POLL_MAX_MINUTES",
    "ASSET_RESTORE_MONITOR_DEADLINE",
)


# Set up test environment variables
@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Keep the developer's AWS and restore configuration out of tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# Standardized test fixtures
@pytest.fixture
def settings():
    """Standard test settings."""
    return Settings(aws_region="us-east-1", download_workers=4)


@pytest.fixture
def store():
    """Empty in-memory object store."""
    return FakeObjectStore()


@pytest.fixture
def control():
    """Batch job service whose jobs are immediately startable."""
    return FakeBatchJobControl()


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def sleeps():
    """Records requested sleeps instead of sleeping."""
    return []


@pytest.fixture
def fast_policy():
    """Small bounded policy so exhaustion tests stay readable."""
    return BackoffPolicy(initial=1.0, multiplier=2.0, max_interval=4.0, max_attempts=3)


@pytest.fixture
def make_request(tmp_path):
    """Factory for restore requests rooted in tmp_path."""
    def _make(**overrides) -> RestoreRequest:
        fields = dict(
            restore_path="Proj/Clips/",
            asset_bucket_list=["assets-a", "assets-b"],
            manifest_local_path=str(tmp_path / "manifest.csv"),
            manifest_bucket="manifests",
            manifest_key="batch-manifests/42_jane_doe_2024-01-02_03-04-05.csv",
            role_arn="arn:aws:iam::123456789012:role/batch-restore",
            retrieval_type="bulk",
            base_path=str(tmp_path / "restored"),
            project_id=42,
            user="jane.doe@example.com",
        )
        fields.update(overrides)
        return RestoreRequest(**fields)
    return _make
