"""Cloud-pair backend: SQL metadata store + S3-compatible blob bucket.

Production backend. Version blobs live in the bucket at ``<path>/v/<hash>``
with ``parent`` and ``created_at`` attached as S3 user metadata on the same
``put_object`` call, so a put either lands with both content and metadata or
not at all. The SQL side (SQLAlchemy 2.0, any dialect) holds small
structured records such as the store catalog; it never holds a second copy
of version metadata.

Works with AWS S3, MinIO, Cloudflare R2, LocalStack and other S3-compatible
services. boto3 and SQLAlchemy are synchronous; calls run in
``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import datetime
from collections.abc import Mapping, Sequence
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import JSON, DateTime, String, delete, event, select
from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column
from sqlalchemy.pool import StaticPool

from corpus.backends.base import (
    Backend,
    BlobInfo,
    DataClient,
    MetadataClient,
    MetadataRecord,
    check_key,
    storage_fault,
)
from corpus.core.errors import NotFoundError, StorageIOError
from corpus.core.logging import get_logger
from corpus.core.result import Err, Ok, Result, collect_results
from corpus.core.timestamps import utc_now

logger = get_logger(__name__)

# S3 DeleteObjects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
_ALREADY_EXISTS_CODES = {"PreconditionFailed", "412"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value


# =============================================================================
# BLOB BUCKET (S3)
# =============================================================================


class S3DataClient(DataClient):
    """Blob client over a boto3 S3 client."""

    def __init__(self, client: Any, bucket: str):
        self.client = client
        self.bucket = bucket

    async def write_blob(
        self,
        key: str,
        data: bytes,
        metadata: Mapping[str, str] | None = None,
        *,
        overwrite: bool = True,
    ) -> Result[bool]:
        check_key(key)
        extra_args: dict[str, Any] = {"Metadata": dict(metadata or {})}
        if not overwrite:
            extra_args["IfNoneMatch"] = "*"

        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType="application/json",
                **extra_args,
            )
        except ClientError as e:
            if not overwrite and _error_code(e) in _ALREADY_EXISTS_CODES:
                return Ok(False)
            return storage_fault("write_blob", key, e)
        except BotoCoreError as e:
            return storage_fault("write_blob", key, e)

        logger.debug("s3_blob_written", bucket=self.bucket, key=key, size=len(data))
        return Ok(True)

    async def read_blob(self, key: str) -> Result[bytes]:
        check_key(key)

        def read() -> bytes:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()

        try:
            return Ok(await asyncio.to_thread(read))
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return Err(NotFoundError(f"No blob at {key}"))
            return storage_fault("read_blob", key, e)
        except BotoCoreError as e:
            return storage_fault("read_blob", key, e)

    def _list_objects(self, prefix: str) -> list[dict[str, Any]]:
        paginator = self.client.get_paginator("list_objects_v2")
        objects: list[dict[str, Any]] = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            objects.extend(page.get("Contents", []))
        return objects

    async def _head(self, obj: dict[str, Any]) -> Result[BlobInfo | None]:
        key = obj["Key"]
        try:
            response = await asyncio.to_thread(self.client.head_object, Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                # deleted between list and head
                return Ok(None)
            return storage_fault("head_object", key, e)
        except BotoCoreError as e:
            return storage_fault("head_object", key, e)

        return Ok(
            BlobInfo(
                key=key,
                metadata=dict(response.get("Metadata") or {}),
                written_at=_as_utc(obj["LastModified"]),
                size_bytes=obj.get("Size", 0),
            )
        )

    async def list_blobs(self, prefix: str) -> Result[list[BlobInfo]]:
        check_key(prefix)
        try:
            objects = await asyncio.to_thread(self._list_objects, prefix)
        except (ClientError, BotoCoreError) as e:
            return storage_fault("list_blobs", prefix, e)

        heads = await asyncio.gather(*(self._head(obj) for obj in objects))
        return collect_results(list(heads)).map(
            lambda infos: [info for info in infos if info is not None]
        )

    async def delete_blobs(self, keys: Sequence[str]) -> Result[int]:
        for key in keys:
            check_key(key)

        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start : start + DELETE_BATCH_SIZE]
            try:
                response = await asyncio.to_thread(
                    self.client.delete_objects,
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                )
            except (ClientError, BotoCoreError) as e:
                return storage_fault("delete_blobs", batch[0], e)

            errors = response.get("Errors") or []
            if errors:
                first = errors[0]
                logger.warning("s3_delete_partial_failure", bucket=self.bucket, errors=len(errors))
                return Err(
                    StorageIOError(
                        f"delete failed for {first.get('Key')}: {first.get('Message', first.get('Code'))}"
                    )
                )

        logger.info("s3_blobs_deleted", bucket=self.bucket, count=len(keys))
        return Ok(len(keys))


# =============================================================================
# METADATA STORE (SQL)
# =============================================================================


class CorpusBase(DeclarativeBase):
    """Declarative base for corpus tables."""

    type_annotation_map = {
        str: String(1024),
        dict: JSON,
        datetime.datetime: DateTime(timezone=True),
    }


class MetadataRow(CorpusBase):
    __tablename__ = "corpus_metadata"

    key: Mapped[str] = mapped_column(primary_key=True)
    value: Mapped[dict] = mapped_column(nullable=False)
    written_at: Mapped[datetime.datetime] = mapped_column(nullable=False)

    def to_record(self) -> MetadataRecord:
        return MetadataRecord(key=self.key, value=dict(self.value), written_at=_as_utc(self.written_at))


def create_metadata_engine(url: str = "sqlite:///corpus_metadata.db", *, echo: bool = False, **kwargs: Any) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    In-memory SQLite (``sqlite://``) shares one connection across threads so
    every ``asyncio.to_thread`` call sees the same database.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs.setdefault("poolclass", StaticPool)
            return _sa_create_engine(url, echo=echo, **kwargs)

        engine = _sa_create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        return engine

    return _sa_create_engine(url, echo=echo, pool_pre_ping=True, **kwargs)


class SqlMetadataClient(MetadataClient):
    """Metadata records in the ``corpus_metadata`` table."""

    def __init__(self, engine: Engine, *, create_schema: bool = True):
        self.engine = engine
        if create_schema:
            CorpusBase.metadata.create_all(engine)

    async def _run(self, operation: str, key: str, fn: Any) -> Result[Any]:
        try:
            return await asyncio.to_thread(fn)
        except SQLAlchemyError as e:
            return storage_fault(operation, key, e)

    async def put_record(self, key: str, record: Mapping[str, Any]) -> Result[None]:
        check_key(key)

        def write() -> Result[None]:
            with Session(self.engine) as session, session.begin():
                session.merge(MetadataRow(key=key, value=dict(record), written_at=utc_now()))
            return Ok(None)

        return await self._run("put_record", key, write)

    async def get_record(self, key: str) -> Result[MetadataRecord]:
        check_key(key)

        def read() -> Result[MetadataRecord]:
            with Session(self.engine) as session:
                row = session.get(MetadataRow, key)
                if row is None:
                    return Err(NotFoundError(f"No record at {key}"))
                return Ok(row.to_record())

        return await self._run("get_record", key, read)

    async def list_records(self, prefix: str) -> Result[list[MetadataRecord]]:
        check_key(prefix)

        def scan() -> Result[list[MetadataRecord]]:
            stmt = (
                select(MetadataRow)
                .where(MetadataRow.key.startswith(prefix, autoescape=True))
                .order_by(MetadataRow.key)
            )
            with Session(self.engine) as session:
                return Ok([row.to_record() for row in session.scalars(stmt)])

        return await self._run("list_records", prefix, scan)

    async def delete_records(self, keys: Sequence[str]) -> Result[int]:
        for key in keys:
            check_key(key)

        def remove() -> Result[int]:
            if keys:
                with Session(self.engine) as session, session.begin():
                    session.execute(delete(MetadataRow).where(MetadataRow.key.in_(list(keys))))
            return Ok(len(keys))

        return await self._run("delete_records", ",".join(keys), remove)


# =============================================================================
# BACKEND
# =============================================================================


class CloudBackend(Backend):
    """SQL metadata store + S3 blob bucket."""

    name = "cloud"

    def __init__(self, metadata: SqlMetadataClient, data: S3DataClient):
        super().__init__(metadata=metadata, data=data)

    @classmethod
    def connect(
        cls,
        bucket: str,
        *,
        metadata_url: str = "sqlite:///corpus_metadata.db",
        endpoint_url: str | None = None,
        region: str = "us-east-1",
        access_key: str | None = None,
        secret_key: str | None = None,
    ) -> CloudBackend:
        """Build boto3 + SQLAlchemy clients and wrap them."""
        client_kwargs: dict[str, Any] = {
            "service_name": "s3",
            "region_name": region,
            "config": Config(signature_version="s3v4"),
        }
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url
        if access_key and secret_key:
            client_kwargs["aws_access_key_id"] = access_key
            client_kwargs["aws_secret_access_key"] = secret_key

        client = boto3.client(**client_kwargs)
        engine = create_metadata_engine(metadata_url)

        logger.info(
            "cloud_backend_initialized",
            bucket=bucket,
            endpoint=endpoint_url,
            region=region,
        )
        return cls(metadata=SqlMetadataClient(engine), data=S3DataClient(client, bucket))
