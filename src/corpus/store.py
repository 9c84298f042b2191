"""
Content-addressed, versioned store over a backend.

A ``Store`` binds a backend, a codec and a store id. Every document under it
is addressed by a path and owns an append-only history of immutable
versions::

    <store_id>/<path>/v/<hash>        one version blob
                                      metadata: created_at, parent?

The version id is the SHA-256 of the exact encoded bytes, so identical
content collapses into one version and ``get(put(x).hash)`` returns ``x``.
Versions are never overwritten: a repeated put of the same content keeps the
first write's ``created_at`` and ``parent``.

Public operations never raise for data or storage conditions; they return
``Ok``/``Err`` with a ``CorpusError`` carrying the path and version. Malformed
paths are programmer errors and raise ``ValueError``.

Usage::

    store = Store(MemoryBackend(), json_codec(Note), "notes")
    first = (await store.put({"text": "v1"}, path="a")).unwrap()
    await store.put({"text": "v2"}, parent=first.hash, path="a")

    versions = (await store.list_versions(path="a")).unwrap()
    versions[0].parent == first.hash     # newest first

Tags:
    store, versioning, content-addressing, lineage, corpus
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, TypeVar

from corpus.backends.base import Backend, BlobInfo, check_key
from corpus.codecs import Codec
from corpus.core.errors import CorpusError, InvalidContentError, NotFoundError, StorageIOError
from corpus.core.hashing import compute_version_hash, is_version_hash
from corpus.core.logging import LogContext, get_logger
from corpus.core.result import Err, Ok, Result
from corpus.core.timestamps import from_iso8601, monotonic_utc_now, to_iso8601

logger = get_logger(__name__)

T = TypeVar("T")

VERSIONS_DIR = "v"


@dataclass(frozen=True)
class VersionInfo:
    """Metadata of one version, as listed."""

    hash: str
    parent: str | None
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "parent": self.parent,
            "created_at": to_iso8601(self.created_at),
        }


@dataclass(frozen=True)
class Version(Generic[T]):
    """A version with its decoded content."""

    info: VersionInfo
    content: T

    @property
    def hash(self) -> str:
        return self.info.hash

    @property
    def parent(self) -> str | None:
        return self.info.parent

    @property
    def created_at(self) -> datetime:
        return self.info.created_at


@dataclass(frozen=True)
class PutResult:
    hash: str


def _with_context(error: Exception, path: str, version: str | None = None) -> Exception:
    if isinstance(error, CorpusError):
        return error.with_context(path=path, version=version)
    return StorageIOError(str(error), path=path, version=version, cause=error)


def _created_at(blob: BlobInfo) -> datetime:
    raw = blob.metadata.get("created_at")
    if raw:
        try:
            parsed = from_iso8601(raw)
        except (TypeError, ValueError):
            logger.warning("version_created_at_unparseable", key=blob.key, value=raw)
        else:
            if parsed is not None:
                return parsed
    return blob.written_at


class Store(Generic[T]):
    """
    Versioned content store for one codec under one store id.

    Args:
        backend: Storage substrate
        codec: Serializer/validator for the content type
        store_id: Key prefix of every document in this store
        clock: Source of ``created_at``; strictly increasing by default
    """

    def __init__(
        self,
        backend: Backend,
        codec: Codec[T],
        store_id: str,
        *,
        clock: Callable[[], datetime] = monotonic_utc_now,
    ):
        self.backend = backend
        self.codec = codec
        self.store_id = store_id
        self._clock = clock

    def __repr__(self) -> str:
        return f"Store(store_id={self.store_id!r}, codec={self.codec.name!r}, backend={self.backend.name!r})"

    # ── keys ─────────────────────────────────────────────────────

    def document_path(self, path: str = "") -> str:
        """Full path of a document: ``<store_id>/<path>``.

        Raises:
            ValueError: If the resulting path is empty or malformed
        """
        joined = "/".join(p for p in (self.store_id, path) if p)
        check_key(joined)
        if joined.endswith("/"):
            raise ValueError(f"Invalid path: {joined!r} (trailing '/')")
        return joined

    @staticmethod
    def _prefix(document: str) -> str:
        return f"{document}/{VERSIONS_DIR}/"

    def _version_blobs(self, prefix: str, blobs: Sequence[BlobInfo]) -> list[BlobInfo]:
        # nested documents share the prefix; their leaves are not version ids
        return [b for b in blobs if is_version_hash(b.key[len(prefix) :])]

    # ── operations ───────────────────────────────────────────────

    async def put(self, content: T, parent: str | None = None, *, path: str = "") -> Result[PutResult]:
        """
        Store ``content`` as a new version of the document at ``path``.

        Idempotent: identical content yields the same hash and leaves the
        existing version (and its metadata) untouched. ``parent`` is recorded
        as given and is not checked for existence.
        """
        document = self.document_path(path)
        try:
            data = self.codec.encode(content)
        except InvalidContentError as e:
            logger.info("version_rejected", path=document, error=e.message)
            return Err(e.with_context(path=document))

        version = compute_version_hash(data)
        metadata = {"created_at": to_iso8601(self._clock())}
        if parent is not None:
            metadata["parent"] = parent

        written = await self.backend.data.write_blob(
            self._prefix(document) + version, data, metadata, overwrite=False
        )
        match written:
            case Err(error):
                return Err(_with_context(error, document, version))
            case Ok(True):
                logger.info(
                    "version_written",
                    path=document,
                    hash=version,
                    parent=parent,
                    size=len(data),
                )
            case Ok(False):
                logger.debug("version_already_present", path=document, hash=version)
        return Ok(PutResult(hash=version))

    async def get(self, hash: str, *, path: str = "") -> Result[T]:
        """Decoded content of one version. Malformed ids are not_found."""
        document = self.document_path(path)
        if not is_version_hash(hash):
            return Err(NotFoundError(path=document, version=hash))

        read = await self.backend.data.read_blob(self._prefix(document) + hash)
        return read.flat_map(lambda data: self._decode(data, hash)).map_err(
            lambda e: _with_context(e, document, hash)
        )

    def _decode(self, data: bytes, hash: str) -> Result[T]:
        if compute_version_hash(data) != hash:
            logger.warning(
                "version_rejected", store_id=self.store_id, hash=hash, reason="hash_mismatch"
            )
            return Err(InvalidContentError("Stored bytes do not match version hash"))
        decoded = self.codec.decode(data)
        if decoded.is_err():
            logger.warning("version_decode_failed", store_id=self.store_id, hash=hash)
        return decoded

    async def list_versions(self, *, path: str = "") -> Result[list[VersionInfo]]:
        """All versions of the document, newest ``created_at`` first."""
        document = self.document_path(path)
        prefix = self._prefix(document)
        listed = await self.backend.data.list_blobs(prefix)

        def to_infos(blobs: list[BlobInfo]) -> list[VersionInfo]:
            infos = [
                VersionInfo(
                    hash=blob.key[len(prefix) :],
                    parent=blob.metadata.get("parent") or None,
                    created_at=_created_at(blob),
                )
                for blob in self._version_blobs(prefix, blobs)
            ]
            # stable: ties keep backend listing order
            infos.sort(key=lambda info: info.created_at, reverse=True)
            return infos

        return listed.map(to_infos).map_err(lambda e: _with_context(e, document))

    async def delete(self, *, path: str = "") -> Result[None]:
        """Remove every version of the document. Unused paths succeed."""
        document = self.document_path(path)
        prefix = self._prefix(document)

        async with LogContext(store_id=self.store_id, path=document):
            listed = await self.backend.data.list_blobs(prefix)
            if isinstance(listed, Err):
                return Err(_with_context(listed.error, document))

            keys = [b.key for b in self._version_blobs(prefix, listed.value)]
            if not keys:
                return Ok(None)

            deleted = await self.backend.data.delete_blobs(keys)
            if isinstance(deleted, Err):
                return Err(_with_context(deleted.error, document))

            logger.info("versions_deleted", count=len(keys))
            return Ok(None)

    async def latest(self, *, path: str = "") -> Result[Version[T]]:
        """Newest version with its content. not_found for an empty path."""
        document = self.document_path(path)
        listed = await self.list_versions(path=path)
        if isinstance(listed, Err):
            return Err(listed.error)
        if not listed.value:
            return Err(NotFoundError("No versions", path=document))

        info = listed.value[0]
        fetched = await self.get(info.hash, path=path)
        return fetched.map(lambda content: Version(info=info, content=content))

    async def lineage(self, hash: str, *, path: str = "") -> Result[list[VersionInfo]]:
        """
        Parent chain from ``hash`` back to its root, ``hash`` first.

        Stops at a parent that is not stored under this path.
        """
        document = self.document_path(path)
        listed = await self.list_versions(path=path)
        if isinstance(listed, Err):
            return Err(listed.error)

        by_hash = {info.hash: info for info in listed.value}
        if hash not in by_hash:
            return Err(NotFoundError(path=document, version=hash))

        chain: list[VersionInfo] = []
        current: str | None = hash
        while current is not None and current in by_hash:
            info = by_hash.pop(current)
            chain.append(info)
            current = info.parent
        return Ok(chain)

    def document(self, path: str) -> Document[T]:
        """Handle bound to one document path."""
        self.document_path(path)
        return Document(self, path)


class Document(Generic[T]):
    """A ``Store`` with the path argument fixed."""

    def __init__(self, store: Store[T], path: str):
        self.store = store
        self.path = path

    @property
    def full_path(self) -> str:
        return self.store.document_path(self.path)

    def __repr__(self) -> str:
        return f"Document({self.full_path!r})"

    async def put(self, content: T, parent: str | None = None) -> Result[PutResult]:
        return await self.store.put(content, parent, path=self.path)

    async def get(self, hash: str) -> Result[T]:
        return await self.store.get(hash, path=self.path)

    async def list_versions(self) -> Result[list[VersionInfo]]:
        return await self.store.list_versions(path=self.path)

    async def delete(self) -> Result[None]:
        return await self.store.delete(path=self.path)

    async def latest(self) -> Result[Version[T]]:
        return await self.store.latest(path=self.path)

    async def lineage(self, hash: str) -> Result[list[VersionInfo]]:
        return await self.store.lineage(hash, path=self.path)


__all__ = ["Document", "PutResult", "Store", "Version", "VersionInfo"]
