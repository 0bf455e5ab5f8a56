"""
Fake object store implementation for testing.

This implementation explicitly subclasses ObjectStore to ensure interface changes
break CI immediately, preventing silent drift.
"""
from __future__ import annotations

import base64
import hashlib
import io
from dataclasses import dataclass
from typing import IO, Dict, Iterator, List, Optional, Tuple

from asset_restore.errors import ObjectNotFound, StorageError
from asset_restore.storage.base import ObjectHead, ObjectStore, ObjectSummary

__all__ = ["FakeObject", "FakeObjectStore"]


@dataclass
class FakeObject:
    data: bytes = b""
    size: int = 0
    storage_class: Optional[str] = None
    restore: Optional[str] = None
    etag: Optional[str] = None


class _BrokenBody(io.BytesIO):
    """Body that returns its first bytes and then fails, like a dropped connection."""

    def __init__(self, data: bytes, fail_after: int) -> None:
        super().__init__(data[:fail_after])

    def read(self, size: int = -1) -> bytes:
        chunk = super().read(size)
        if chunk:
            return chunk
        raise ConnectionError("connection reset while reading body")


class FakeObjectStore(ObjectStore):
    """
    In-memory object store keyed by (bucket, key) for testing.

    This is a test double; not for production use. Every call is recorded so
    tests can assert on the exact remote traffic a stage produced.
    """

    def __init__(self) -> None:
        self._objects: Dict[Tuple[str, str], FakeObject] = {}
        self._head_errors: Dict[Tuple[str, str], List[Exception]] = {}
        self._open_errors: Dict[Tuple[str, str], Exception] = {}
        self._broken_bodies: Dict[Tuple[str, str], int] = {}
        self._hidden_etags: set = set()

        self.list_calls: List[Tuple[str, str]] = []
        self.head_calls: List[Tuple[str, str]] = []
        self.open_calls: List[Tuple[str, str]] = []
        self.puts: List[Tuple[str, str, bytes, Optional[str]]] = []

    # Seeding helpers

    def add(self, bucket: str, key: str, data: bytes = b"", *,
            size: Optional[int] = None,
            storage_class: Optional[str] = None,
            restore: Optional[str] = None,
            etag: Optional[str] = None) -> FakeObject:
        """Add or replace an object. Size defaults to len(data)."""
        obj = FakeObject(
            data=data,
            size=len(data) if size is None else size,
            storage_class=storage_class,
            restore=restore,
            etag=etag or f'"{hashlib.md5(data).hexdigest()}"',
        )
        self._objects[(bucket, key)] = obj
        return obj

    def set_restore(self, bucket: str, key: str, *, storage_class: Optional[str],
                    restore: Optional[str]) -> None:
        obj = self._objects[(bucket, key)]
        obj.storage_class = storage_class
        obj.restore = restore

    def fail_head(self, bucket: str, key: str, *errors: Exception) -> None:
        """Raise errors, one per call, from the next head requests for (bucket, key)."""
        self._head_errors.setdefault((bucket, key), []).extend(errors)

    def fail_open(self, bucket: str, key: str, error: Exception) -> None:
        self._open_errors[(bucket, key)] = error

    def break_body(self, bucket: str, key: str, fail_after: int) -> None:
        """Make the body of (bucket, key) fail after fail_after bytes."""
        self._broken_bodies[(bucket, key)] = fail_after

    def hide_etag(self, bucket: str, key: str) -> None:
        """Report the object without an ETag, as some S3-compatible stores do."""
        self._hidden_etags.add((bucket, key))

    def get(self, bucket: str, key: str) -> FakeObject:
        return self._objects[(bucket, key)]

    def exists(self, bucket: str, key: str) -> bool:
        return (bucket, key) in self._objects

    # ObjectStore protocol

    def list_objects(self, bucket: str, prefix: str) -> Iterator[ObjectSummary]:
        self.list_calls.append((bucket, prefix))
        keys = sorted(k for (b, k) in self._objects if b == bucket and k.startswith(prefix))
        for key in keys:
            obj = self._objects[(bucket, key)]
            yield ObjectSummary(key=key, size=obj.size, storage_class=obj.storage_class)

    def head_object(self, bucket: str, key: str) -> ObjectHead:
        self.head_calls.append((bucket, key))
        errors = self._head_errors.get((bucket, key))
        if errors:
            raise errors.pop(0)
        obj = self._objects.get((bucket, key))
        if obj is None:
            raise ObjectNotFound(f"head object failed for s3://{bucket}/{key}: not found",
                                 code="404")
        etag = None if (bucket, key) in self._hidden_etags else obj.etag
        return ObjectHead(etag=etag, size=obj.size, storage_class=obj.storage_class,
                          restore=obj.restore)

    def open_object(self, bucket: str, key: str) -> IO[bytes]:
        self.open_calls.append((bucket, key))
        if (bucket, key) in self._open_errors:
            raise self._open_errors[(bucket, key)]
        obj = self._objects.get((bucket, key))
        if obj is None:
            raise ObjectNotFound(f"failed to get s3://{bucket}/{key}: not found", code="NoSuchKey")
        if obj.storage_class and obj.storage_class not in ("STANDARD",) \
                and not (obj.restore and 'ongoing-request="false"' in obj.restore):
            raise StorageError(f"failed to get s3://{bucket}/{key}: object is archived",
                               code="InvalidObjectState")
        if (bucket, key) in self._broken_bodies:
            return _BrokenBody(obj.data, self._broken_bodies[(bucket, key)])
        return io.BytesIO(obj.data)

    def put_object(self, bucket: str, key: str, data: bytes, *,
                   content_md5: Optional[str] = None) -> ObjectHead:
        if content_md5 is not None:
            actual = base64.b64encode(hashlib.md5(data).digest()).decode("ascii")
            if content_md5 != actual:
                raise StorageError(f"failed to upload s3://{bucket}/{key}: BadDigest",
                                   code="BadDigest")
        self.puts.append((bucket, key, data, content_md5))
        obj = self.add(bucket, key, data)
        return ObjectHead(etag=obj.etag, size=obj.size)
