"""In-process backend for tests and local iteration.

Blobs live in a nested map ``directory -> leaf -> entry`` where the directory
is everything before the last ``/`` of the key (``posts/1/abc/v`` for a
version blob). Nothing is persisted; each ``MemoryBackend()`` is an
independent, explicitly owned instance.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from corpus.backends.base import (
    Backend,
    BlobInfo,
    DataClient,
    MetadataClient,
    MetadataRecord,
    check_key,
)
from corpus.core.errors import NotFoundError
from corpus.core.logging import get_logger
from corpus.core.result import Err, Ok, Result
from corpus.core.timestamps import utc_now

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Entry:
    data: bytes
    metadata: dict[str, str]
    written_at: datetime


def _split(key: str) -> tuple[str, str]:
    directory, _, leaf = key.rpartition("/")
    return directory, leaf


class MemoryDataClient(DataClient):
    def __init__(self) -> None:
        self._blobs: dict[str, dict[str, _Entry]] = {}

    async def write_blob(
        self,
        key: str,
        data: bytes,
        metadata: Mapping[str, str] | None = None,
        *,
        overwrite: bool = True,
    ) -> Result[bool]:
        directory, leaf = _split(check_key(key))
        entries = self._blobs.setdefault(directory, {})

        if not overwrite and leaf in entries:
            return Ok(False)

        entries[leaf] = _Entry(bytes(data), dict(metadata or {}), utc_now())
        logger.debug("memory_blob_written", key=key, size=len(data))
        return Ok(True)

    async def read_blob(self, key: str) -> Result[bytes]:
        directory, leaf = _split(check_key(key))
        entry = self._blobs.get(directory, {}).get(leaf)
        if entry is None:
            return Err(NotFoundError(f"No blob at {key}"))
        return Ok(entry.data)

    async def list_blobs(self, prefix: str) -> Result[list[BlobInfo]]:
        check_key(prefix)
        found: list[BlobInfo] = []
        for directory, entries in self._blobs.items():
            for leaf, entry in entries.items():
                key = f"{directory}/{leaf}" if directory else leaf
                if key.startswith(prefix):
                    found.append(
                        BlobInfo(
                            key=key,
                            metadata=dict(entry.metadata),
                            written_at=entry.written_at,
                            size_bytes=len(entry.data),
                        )
                    )
        return Ok(found)

    async def delete_blobs(self, keys: Sequence[str]) -> Result[int]:
        for key in keys:
            directory, leaf = _split(check_key(key))
            entries = self._blobs.get(directory)
            if entries is None:
                continue
            entries.pop(leaf, None)
            if not entries:
                del self._blobs[directory]
        logger.debug("memory_blobs_deleted", count=len(keys))
        return Ok(len(keys))

    def clear(self) -> None:
        self._blobs.clear()


class MemoryMetadataClient(MetadataClient):
    def __init__(self) -> None:
        self._records: dict[str, MetadataRecord] = {}

    async def put_record(self, key: str, record: Mapping[str, Any]) -> Result[None]:
        check_key(key)
        self._records[key] = MetadataRecord(key=key, value=dict(record), written_at=utc_now())
        return Ok(None)

    async def get_record(self, key: str) -> Result[MetadataRecord]:
        record = self._records.get(check_key(key))
        if record is None:
            return Err(NotFoundError(f"No record at {key}"))
        return Ok(record)

    async def list_records(self, prefix: str) -> Result[list[MetadataRecord]]:
        check_key(prefix)
        return Ok([r for k, r in self._records.items() if k.startswith(prefix)])

    async def delete_records(self, keys: Sequence[str]) -> Result[int]:
        for key in keys:
            self._records.pop(check_key(key), None)
        return Ok(len(keys))

    def clear(self) -> None:
        self._records.clear()


class MemoryBackend(Backend):
    """Backend over in-process maps."""

    name = "memory"

    def __init__(self) -> None:
        super().__init__(metadata=MemoryMetadataClient(), data=MemoryDataClient())

    def clear(self) -> None:
        """Drop everything (for test isolation)."""
        self.data.clear()
        self.metadata.clear()
