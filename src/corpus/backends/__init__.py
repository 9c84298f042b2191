"""
Storage backends for corpus.

Three implementations of one contract (``Backend`` = metadata client + data
client):

- ``memory``: in-process maps, for tests
- ``file``:   a directory of JSON envelopes, for local development
- ``cloud``:  SQL metadata store + S3-compatible bucket, for production

Usage:
    from corpus.backends import create_backend
    from corpus.core.settings import CorpusSettings

    backend = create_backend(CorpusSettings(backend="file", data_dir="./data"))
"""

from corpus.backends.base import (
    Backend,
    BlobInfo,
    DataClient,
    MetadataClient,
    MetadataRecord,
)
from corpus.backends.file import FileBackend
from corpus.backends.memory import MemoryBackend
from corpus.core.errors import ConfigError
from corpus.core.settings import CorpusSettings


def create_backend(settings: CorpusSettings | None = None) -> Backend:
    """
    Create a backend based on settings.

    Every call builds a new backend; callers own the instance.

    Raises:
        ConfigError: If the selected backend is missing required settings
    """
    settings = settings or CorpusSettings()

    if settings.backend == "memory":
        return MemoryBackend()

    if settings.backend == "file":
        return FileBackend(settings.data_dir)

    if settings.backend == "cloud":
        if not settings.s3_bucket:
            raise ConfigError("s3_bucket", "CORPUS_S3_BUCKET is required for the cloud backend")

        from corpus.backends.cloud import CloudBackend

        return CloudBackend.connect(
            settings.s3_bucket,
            metadata_url=settings.metadata_url,
            endpoint_url=settings.s3_endpoint,
            region=settings.s3_region,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
        )

    raise ConfigError("backend", f"Unknown backend: {settings.backend}")


__all__ = [
    "Backend",
    "BlobInfo",
    "DataClient",
    "MetadataClient",
    "MetadataRecord",
    "MemoryBackend",
    "FileBackend",
    "create_backend",
]
