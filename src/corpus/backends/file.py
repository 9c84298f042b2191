"""Local filesystem backend for development.

Layout under ``base_path``::

    <base>/<key>.json            one blob, e.g. posts/1/abc/v/<hash>.json
    <base>/.meta/<key>.json      one metadata record

A blob file is a readable JSON envelope rather than raw bytes::

    {"content": {...decoded JSON...}, "parent": "<hash>" | null,
     "created_at": "2026-01-01T00:00:00+00:00"}

``content`` is only used when re-serializing it canonically reproduces the
original bytes exactly; otherwise the bytes are kept as ``content_base64``.
Either way ``read_blob`` returns what was written, byte for byte.

Blocking filesystem calls run in ``asyncio.to_thread``. ``OSError`` becomes
``Err(StorageIOError)``.
"""

from __future__ import annotations

import asyncio
import base64
import json
import os
import tempfile
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from corpus.backends.base import (
    Backend,
    BlobInfo,
    DataClient,
    MetadataClient,
    MetadataRecord,
    check_key,
    storage_fault,
)
from corpus.core.errors import InvalidContentError, NotFoundError
from corpus.core.logging import get_logger
from corpus.core.result import Err, Ok, Result
from corpus.core.timestamps import from_iso8601, to_iso8601, utc_now

logger = get_logger(__name__)

META_DIR = ".meta"
SUFFIX = ".json"

_RESERVED_METADATA = ("parent", "created_at")


def _canonical_json(data: bytes) -> Any | None:
    """Parsed JSON if ``data`` is exactly its compact UTF-8 rendering."""
    try:
        parsed = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    rendered = json.dumps(parsed, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return parsed if rendered == data else None


def _envelope(data: bytes, metadata: Mapping[str, str], written_at: datetime) -> dict[str, Any]:
    entry: dict[str, Any] = {}
    parsed = _canonical_json(data)
    if parsed is not None:
        entry["content"] = parsed
    else:
        entry["content_base64"] = base64.b64encode(data).decode("ascii")
    entry["parent"] = metadata.get("parent")
    entry["created_at"] = metadata.get("created_at") or to_iso8601(written_at)
    extra = {k: v for k, v in metadata.items() if k not in _RESERVED_METADATA}
    if extra:
        entry["metadata"] = extra
    return entry


def _unwrap(entry: dict[str, Any]) -> bytes:
    if "content" in entry:
        return json.dumps(entry["content"], separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.b64decode(entry["content_base64"])


def _entry_metadata(entry: dict[str, Any]) -> dict[str, str]:
    extra = entry.get("metadata")
    metadata = {
        k: v for k, v in (extra.items() if isinstance(extra, dict) else ()) if isinstance(v, str)
    }
    for name in _RESERVED_METADATA:
        value = entry.get(name)
        if value and isinstance(value, str):
            metadata[name] = value
    return metadata


def _parse_timestamp(raw: Any) -> datetime | None:
    """Aware datetime from an ISO-8601 string; None when missing or malformed."""
    if not isinstance(raw, str):
        return None
    try:
        return from_iso8601(raw)
    except ValueError:
        return None


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=SUFFIX)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def _read_entry(path: Path) -> dict[str, Any] | None:
    """Parsed envelope, or None if the file is not a valid envelope."""
    try:
        entry = json.loads(path.read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if not isinstance(entry, dict):
        return None
    if "content" not in entry and "content_base64" not in entry:
        return None
    return entry


class _FileTree:
    """Key -> path mapping rooted at one directory."""

    def __init__(self, root: Path):
        self.root = root

    def path_for(self, key: str) -> Path:
        full_path = self.root / f"{check_key(key)}{SUFFIX}"
        try:
            full_path.resolve().relative_to(self.root.resolve())
        except ValueError:
            raise ValueError(f"Invalid key: {key} (outside base directory)")
        return full_path

    def key_for(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()[: -len(SUFFIX)]

    def scan(self, prefix: str, *, skip: str | None = None) -> list[Path]:
        """Files whose key starts with ``prefix``, sorted by name."""
        check_key(prefix)
        search_dir = self.root / prefix
        if not prefix.endswith("/"):
            search_dir = search_dir.parent
        if not search_dir.is_dir():
            return []

        found = []
        for file_path in sorted(search_dir.rglob(f"*{SUFFIX}")):
            rel = file_path.relative_to(self.root)
            if skip is not None and rel.parts[0] == skip:
                continue
            if file_path.name.startswith(".tmp-"):
                continue
            if self.key_for(file_path).startswith(prefix):
                found.append(file_path)
        return found

    def prune(self, directory: Path) -> None:
        """Remove empty directories from ``directory`` up to (not including) root."""
        root = self.root.resolve()
        current = directory.resolve()
        while current != root and root in current.parents:
            try:
                current.rmdir()
            except OSError:
                return
            current = current.parent


async def _run(operation: str, key: str, fn: Callable[[], Result[Any]]) -> Result[Any]:
    try:
        return await asyncio.to_thread(fn)
    except OSError as e:
        return storage_fault(operation, key, e)


class FileDataClient(DataClient):
    def __init__(self, base_path: Path):
        self._tree = _FileTree(base_path)

    async def write_blob(
        self,
        key: str,
        data: bytes,
        metadata: Mapping[str, str] | None = None,
        *,
        overwrite: bool = True,
    ) -> Result[bool]:
        path = self._tree.path_for(key)

        def write() -> Result[bool]:
            if not overwrite and path.exists():
                return Ok(False)
            entry = _envelope(data, metadata or {}, utc_now())
            _atomic_write(path, json.dumps(entry, indent=2, ensure_ascii=False))
            logger.debug("file_blob_written", key=key, size=len(data))
            return Ok(True)

        return await _run("write_blob", key, write)

    async def read_blob(self, key: str) -> Result[bytes]:
        path = self._tree.path_for(key)

        def read() -> Result[bytes]:
            if not path.is_file():
                return Err(NotFoundError(f"No blob at {key}"))
            entry = _read_entry(path)
            if entry is None:
                return Err(InvalidContentError(f"Failed to parse corpus entry at {key}"))
            try:
                return Ok(_unwrap(entry))
            except (TypeError, ValueError) as e:
                return Err(InvalidContentError(f"Corrupt content in corpus entry at {key}", cause=e))

        return await _run("read_blob", key, read)

    async def list_blobs(self, prefix: str) -> Result[list[BlobInfo]]:
        def scan() -> Result[list[BlobInfo]]:
            found: list[BlobInfo] = []
            for file_path in self._tree.scan(prefix, skip=META_DIR):
                entry = _read_entry(file_path)
                key = self._tree.key_for(file_path)
                if entry is None:
                    logger.warning("file_blob_unreadable", key=key)
                    continue
                stat = file_path.stat()
                metadata = _entry_metadata(entry)
                written_at = _parse_timestamp(entry.get("created_at"))
                if written_at is None:
                    if entry.get("created_at") is not None:
                        logger.warning(
                            "file_blob_timestamp_invalid", key=key, value=entry["created_at"]
                        )
                    metadata.pop("created_at", None)
                    written_at = datetime.fromtimestamp(stat.st_mtime).astimezone()
                found.append(
                    BlobInfo(
                        key=key,
                        metadata=metadata,
                        written_at=written_at,
                        size_bytes=stat.st_size,
                    )
                )
            return Ok(found)

        return await _run("list_blobs", prefix, scan)

    async def delete_blobs(self, keys: Sequence[str]) -> Result[int]:
        paths = [self._tree.path_for(key) for key in keys]

        def delete() -> Result[int]:
            for path in paths:
                path.unlink(missing_ok=True)
            for directory in {path.parent for path in paths}:
                self._tree.prune(directory)
            logger.debug("file_blobs_deleted", count=len(paths))
            return Ok(len(paths))

        return await _run("delete_blobs", ",".join(keys), delete)


class FileMetadataClient(MetadataClient):
    def __init__(self, base_path: Path):
        self._tree = _FileTree(base_path / META_DIR)

    def _record(self, path: Path) -> MetadataRecord | None:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
        if not isinstance(raw, dict) or not isinstance(raw.get("value", {}), dict):
            return None
        return MetadataRecord(
            key=self._tree.key_for(path),
            value=raw.get("value", {}),
            written_at=_parse_timestamp(raw.get("written_at")),
        )

    async def put_record(self, key: str, record: Mapping[str, Any]) -> Result[None]:
        path = self._tree.path_for(key)

        def write() -> Result[None]:
            payload = {"value": dict(record), "written_at": to_iso8601(utc_now())}
            _atomic_write(path, json.dumps(payload, indent=2, ensure_ascii=False, default=str))
            return Ok(None)

        return await _run("put_record", key, write)

    async def get_record(self, key: str) -> Result[MetadataRecord]:
        path = self._tree.path_for(key)

        def read() -> Result[MetadataRecord]:
            if not path.is_file():
                return Err(NotFoundError(f"No record at {key}"))
            record = self._record(path)
            if record is None:
                return Err(InvalidContentError(f"Failed to parse metadata record at {key}"))
            return Ok(record)

        return await _run("get_record", key, read)

    async def list_records(self, prefix: str) -> Result[list[MetadataRecord]]:
        def scan() -> Result[list[MetadataRecord]]:
            records = [self._record(path) for path in self._tree.scan(prefix)]
            return Ok([r for r in records if r is not None])

        return await _run("list_records", prefix, scan)

    async def delete_records(self, keys: Sequence[str]) -> Result[int]:
        paths = [self._tree.path_for(key) for key in keys]

        def delete() -> Result[int]:
            for path in paths:
                path.unlink(missing_ok=True)
                self._tree.prune(path.parent)
            return Ok(len(paths))

        return await _run("delete_records", ",".join(keys), delete)


class FileBackend(Backend):
    """Backend over a directory tree."""

    name = "file"

    def __init__(self, base_path: str | Path):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        super().__init__(
            metadata=FileMetadataClient(self.base_path),
            data=FileDataClient(self.base_path),
        )
        logger.info("file_backend_initialized", base_path=str(self.base_path))
