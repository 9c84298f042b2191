"""
Corpus - versioned, content-addressed document store.

Each document (a blog post, for example) is addressed by a path and owns an
append-only history of immutable versions identified by the SHA-256 of their
encoded content, linked by optional parent references.

Packages:
- corpus.core: errors, Result envelope, hashing, timestamps, logging, settings
- corpus.backends: Memory, File and Cloud-pair (SQL + S3) storage
- corpus.store / corpus.registry: Store, Document, Corpus
- corpus.posts: post content adapter
"""

__version__ = "0.1.0"

from corpus.backends import Backend, FileBackend, MemoryBackend, create_backend
from corpus.codecs import Codec, JsonCodec, json_codec
from corpus.core import (
    ConfigError,
    CorpusError,
    Err,
    ErrorKind,
    InvalidContentError,
    NotFoundError,
    Ok,
    Result,
    StorageIOError,
)
from corpus.registry import Corpus, CorpusBuilder, StoreDefinition, define_store
from corpus.store import Document, PutResult, Store, Version, VersionInfo

__all__ = [
    "__version__",
    "Backend",
    "MemoryBackend",
    "FileBackend",
    "create_backend",
    "Codec",
    "JsonCodec",
    "json_codec",
    "ConfigError",
    "CorpusError",
    "ErrorKind",
    "InvalidContentError",
    "NotFoundError",
    "StorageIOError",
    "Ok",
    "Err",
    "Result",
    "Corpus",
    "CorpusBuilder",
    "StoreDefinition",
    "define_store",
    "Document",
    "PutResult",
    "Store",
    "Version",
    "VersionInfo",
]
