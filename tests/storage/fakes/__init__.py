# Fake implementations for testing

from .fake_batch_job_control import FakeBatchJobControl, FakeIdentity
from .fake_object_store import FakeObject, FakeObjectStore

__all__ = ["FakeBatchJobControl", "FakeIdentity", "FakeObject", "FakeObjectStore"]
