"""
Shared pytest fixtures and configuration for corpus tests.

This module provides:
- A parametrized ``backend`` fixture running contract tests against the
  Memory, File (temporary directory) and Cloud-pair (fake S3 + in-memory
  SQLite) backends
- ``FakeS3Client``: an in-process stand-in for a boto3 S3 client
- Deterministic clocks for ordering tests

Usage:
    @pytest.mark.asyncio
    async def test_something(backend):
        store = Store(backend, codec, "posts/1/abc")
        ...
"""

import io
import sys
import threading
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError
from pydantic import BaseModel

# Ensure corpus package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from corpus.backends import FileBackend, MemoryBackend
from corpus.backends.base import Backend
from corpus.backends.cloud import (
    CloudBackend,
    S3DataClient,
    SqlMetadataClient,
    create_metadata_engine,
)
from corpus.codecs import JsonCodec, json_codec
from corpus.posts import PostContent


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Fake S3
# =============================================================================


def _client_error(code: str, operation: str, message: str = "") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


class _FakePaginator:
    def __init__(self, client: "FakeS3Client"):
        self._client = client

    def paginate(self, Bucket: str, Prefix: str = "") -> Iterator[dict[str, Any]]:
        self._client.calls.append(("list_objects_v2", Prefix))
        keys = sorted(k for k in self._client.objects if k.startswith(Prefix))
        size = self._client.page_size
        if not keys:
            yield {"KeyCount": 0}
            return
        for start in range(0, len(keys), size):
            page = keys[start : start + size]
            yield {
                "KeyCount": len(page),
                "Contents": [
                    {
                        "Key": key,
                        "LastModified": self._client.objects[key]["LastModified"],
                        "Size": len(self._client.objects[key]["Body"]),
                    }
                    for key in page
                ],
            }


class FakeS3Client:
    """
    Minimal in-process S3 client.

    Supports the calls the cloud backend makes: ``put_object`` (including
    ``IfNoneMatch="*"``), ``get_object``, ``head_object``,
    ``get_paginator("list_objects_v2")`` and ``delete_objects``. Pages are
    small so pagination is exercised.
    """

    def __init__(self, page_size: int = 2):
        self.objects: dict[str, dict[str, Any]] = {}
        self.page_size = page_size
        self.calls: list[tuple[str, Any]] = []
        self.fail_with: str | None = None
        self._lock = threading.Lock()

    def _maybe_fail(self, operation: str) -> None:
        if self.fail_with is not None:
            raise _client_error(self.fail_with, operation, "injected failure")

    def put_object(
        self,
        Bucket: str,
        Key: str,
        Body: bytes,
        Metadata: dict[str, str] | None = None,
        ContentType: str | None = None,
        IfNoneMatch: str | None = None,
    ) -> dict[str, Any]:
        self._maybe_fail("PutObject")
        with self._lock:
            self.calls.append(("put_object", Key))
            if IfNoneMatch == "*" and Key in self.objects:
                raise _client_error("PreconditionFailed", "PutObject")
            self.objects[Key] = {
                "Body": bytes(Body),
                "Metadata": {k.lower(): v for k, v in (Metadata or {}).items()},
                "ContentType": ContentType,
                "LastModified": datetime.now(UTC),
            }
        return {"ETag": '"fake"'}

    def get_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        self._maybe_fail("GetObject")
        obj = self.objects.get(Key)
        if obj is None:
            raise _client_error("NoSuchKey", "GetObject")
        return {"Body": io.BytesIO(obj["Body"]), "Metadata": dict(obj["Metadata"])}

    def head_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        obj = self.objects.get(Key)
        if obj is None:
            raise _client_error("404", "HeadObject", "Not Found")
        return {"Metadata": dict(obj["Metadata"]), "ContentLength": len(obj["Body"])}

    def get_paginator(self, name: str) -> _FakePaginator:
        assert name == "list_objects_v2"
        self._maybe_fail("ListObjectsV2")
        return _FakePaginator(self)

    def delete_objects(self, Bucket: str, Delete: dict[str, Any]) -> dict[str, Any]:
        self._maybe_fail("DeleteObjects")
        keys = [o["Key"] for o in Delete["Objects"]]
        self.calls.append(("delete_objects", len(keys)))
        with self._lock:
            for key in keys:
                self.objects.pop(key, None)
        return {}


# =============================================================================
# Backend Fixtures
# =============================================================================


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def metadata_engine():
    engine = create_metadata_engine("sqlite://")
    yield engine
    engine.dispose()


@pytest.fixture
def cloud_backend(fake_s3: FakeS3Client, metadata_engine) -> CloudBackend:
    return CloudBackend(
        metadata=SqlMetadataClient(metadata_engine),
        data=S3DataClient(fake_s3, "corpus-test"),
    )


@pytest.fixture
def file_backend(tmp_path: Path) -> FileBackend:
    return FileBackend(tmp_path / "corpus")


@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture(params=["memory", "file", "cloud"])
def backend(request: pytest.FixtureRequest) -> Backend:
    """Every backend implementation, one test run each."""
    return request.getfixturevalue(f"{request.param}_backend")


# =============================================================================
# Content Fixtures
# =============================================================================


class Note(BaseModel):
    text: str
    tags: list[str] = []


@pytest.fixture
def note_codec() -> JsonCodec[Note]:
    return json_codec(Note)


@pytest.fixture
def post_codec() -> JsonCodec[PostContent]:
    return json_codec(PostContent)


# =============================================================================
# Deterministic Time
# =============================================================================


class StepClock:
    """Clock advancing by a fixed step per reading."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.current = start or datetime(2026, 1, 1, tzinfo=UTC)
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value


@pytest.fixture
def step_clock() -> StepClock:
    return StepClock()
