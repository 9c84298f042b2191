"""
Backend contract: the storage substrate behind every store.

A ``Backend`` pairs two clients addressed by opaque ``/``-separated keys:

- ``DataClient``: byte blobs with a small ``str -> str`` metadata map riding
  on the same write (write/read/list/delete).
- ``MetadataClient``: small structured JSON records (put/get/list/delete).

All operations are ``async`` and return ``Result`` values. Expected
conditions never raise: a missing key is ``Err(NotFoundError)``, a storage
fault is ``Err(StorageIOError)`` with the original exception as ``cause``.
Malformed keys are programmer errors and raise ``ValueError``.

Architecture:
    ::

        ┌──────────────────────────── Backend ────────────────────────────┐
        │  metadata: MetadataClient          data: DataClient             │
        │  put_record / get_record           write_blob / read_blob       │
        │  list_records / delete_records     list_blobs / delete_blobs    │
        └─────────────────────────────────────────────────────────────────┘
                 │                      │                      │
          MemoryBackend            FileBackend           CloudBackend
          (dicts, tests)        (directory tree, dev)  (SQL + S3, production)

Tags:
    storage, backend, protocol, blob, corpus
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from corpus.core.errors import StorageIOError
from corpus.core.logging import get_logger
from corpus.core.result import Err, Result

logger = get_logger(__name__)


@dataclass(frozen=True)
class BlobInfo:
    """Listing entry for a stored blob."""

    key: str
    metadata: dict[str, str]
    written_at: datetime
    size_bytes: int = 0


@dataclass(frozen=True)
class MetadataRecord:
    """A structured record from the metadata store."""

    key: str
    value: dict[str, Any] = field(default_factory=dict)
    written_at: datetime | None = None


def check_key(key: str) -> str:
    """
    Validate a storage key or prefix.

    Keys are relative, ``/``-separated, with no empty, ``.`` or ``..``
    segments and no backslashes. A single trailing ``/`` is allowed so
    prefixes like ``posts/1/abc/v/`` pass.

    Raises:
        ValueError: If the key is malformed
    """
    if not key:
        raise ValueError("Storage key must not be empty")
    if key.startswith("/") or "\\" in key:
        raise ValueError(f"Invalid storage key: {key!r}")
    body = key[:-1] if key.endswith("/") else key
    for segment in body.split("/"):
        if segment in ("", ".", ".."):
            raise ValueError(f"Invalid storage key: {key!r}")
    return key


def storage_fault(operation: str, key: str, error: Exception) -> Err[Any]:
    """Log an unexpected backend exception and wrap it as io_error."""
    logger.warning(
        "storage_operation_failed",
        operation=operation,
        key=key,
        error=str(error),
        exc_info=error,
    )
    return Err(StorageIOError(f"{operation} failed for {key}: {error}", cause=error))


class DataClient(ABC):
    """Blob half of a backend."""

    @abstractmethod
    async def write_blob(
        self,
        key: str,
        data: bytes,
        metadata: Mapping[str, str] | None = None,
        *,
        overwrite: bool = True,
    ) -> Result[bool]:
        """
        Write ``data`` (and its metadata, atomically) at ``key``.

        Returns:
            Ok(True) if written, Ok(False) if ``overwrite`` is False and the
            key already existed (nothing changed)
        """
        ...

    @abstractmethod
    async def read_blob(self, key: str) -> Result[bytes]:
        """Bytes at ``key`` or Err(NotFoundError)."""
        ...

    @abstractmethod
    async def list_blobs(self, prefix: str) -> Result[list[BlobInfo]]:
        """All blobs whose key starts with ``prefix``. Empty list if none."""
        ...

    @abstractmethod
    async def delete_blobs(self, keys: Sequence[str]) -> Result[int]:
        """Delete ``keys``. Missing keys are ignored. Returns count requested."""
        ...


class MetadataClient(ABC):
    """Structured-record half of a backend."""

    @abstractmethod
    async def put_record(self, key: str, record: Mapping[str, Any]) -> Result[None]:
        ...

    @abstractmethod
    async def get_record(self, key: str) -> Result[MetadataRecord]:
        ...

    @abstractmethod
    async def list_records(self, prefix: str) -> Result[list[MetadataRecord]]:
        ...

    @abstractmethod
    async def delete_records(self, keys: Sequence[str]) -> Result[int]:
        ...


class Backend:
    """A metadata client and a data client used together by stores."""

    name = "backend"

    def __init__(self, metadata: MetadataClient, data: DataClient):
        self.metadata = metadata
        self.data = data

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


__all__ = [
    "Backend",
    "BlobInfo",
    "DataClient",
    "MetadataClient",
    "MetadataRecord",
    "check_key",
    "storage_fault",
]
