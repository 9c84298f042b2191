"""
Structured error types for the corpus store.

Every failure that can reach a caller of the store is one of three kinds:

- **not_found:** path or version absent. Expected, non-fatal, drives
  404-style responses at the consumer boundary.
- **invalid_content:** decode/validation failure. Signals corruption or a
  codec/schema mismatch. Never retryable.
- **io_error:** transport or storage fault. Retryable by the caller, with
  the underlying exception preserved as ``cause``.

Errors are not raised across the Store/Corpus boundary. They travel inside
``Err`` values (see ``corpus.core.result``) and callers branch on ``kind``.

Manifesto:
    - **Typed kinds:** Callers switch on ``ErrorKind``, never on messages
    - **Explicit retry semantics:** Each error knows if it's retryable
    - **Error chaining:** The original exception survives as ``cause``
    - **Stable payload:** ``to_dict()`` is the shape consumers serialize

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                      CorpusError                          │
        │        (kind, retryable, path, version, cause)            │
        ├──────────────────┬──────────────────┬─────────────────────┤
        │  NotFoundError   │ InvalidContent-  │  StorageIOError     │
        │  (not_found)     │ Error            │  (io_error,         │
        │                  │ (invalid_content)│   retryable=True)   │
        └──────────────────┴──────────────────┴─────────────────────┘

        ConfigError  -- raised (not returned) for invalid configuration

Examples:
    >>> err = NotFoundError(path="posts/1/abc", version="deadbeef")
    >>> err.to_dict()
    {'type': 'not_found', 'path': 'posts/1/abc', 'version': 'deadbeef', 'message': 'Version not found'}

    >>> StorageIOError("bucket unreachable").retryable
    True

Tags:
    error-handling, exception-hierarchy, retry-logic, corpus
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Failure kinds surfaced to consumers of the store."""

    NOT_FOUND = "not_found"
    INVALID_CONTENT = "invalid_content"
    IO_ERROR = "io_error"


class CorpusError(Exception):
    """
    Base exception for all corpus errors.

    Subclasses set ``default_kind``, ``default_retryable`` and
    ``default_message`` so call sites only pass what they know (path,
    version, cause).

    Examples:
        >>> try:
        ...     raise OSError("disk full")
        ... except OSError as e:
        ...     error = StorageIOError("write failed", path="posts/1/a", cause=e)
        >>> error.cause
        OSError('disk full')
        >>> error.kind
        <ErrorKind.IO_ERROR: 'io_error'>
    """

    default_kind: ErrorKind = ErrorKind.IO_ERROR
    default_retryable: bool = False
    default_message: str = "Corpus error"

    def __init__(
        self,
        message: str | None = None,
        *,
        path: str | None = None,
        version: str | None = None,
        retryable: bool | None = None,
        cause: Exception | None = None,
    ):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.kind = self.default_kind
        self.path = path
        self.version = version
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, *, path: str | None = None, version: str | None = None) -> CorpusError:
        """Fill in path/version if not already set. Returns self."""
        if path is not None and self.path is None:
            self.path = path
        if version is not None and self.version is None:
            self.version = version
        return self

    def to_dict(self) -> dict[str, Any]:
        """Consumer-facing payload: ``{type, path, version?, message?}``."""
        result: dict[str, Any] = {"type": self.kind.value, "path": self.path}
        if self.version is not None:
            result["version"] = self.version
        if self.message:
            result["message"] = self.message
        return result

    def __repr__(self) -> str:
        parts = [f"{self.message!r}"]
        if self.path is not None:
            parts.append(f"path={self.path!r}")
        if self.version is not None:
            parts.append(f"version={self.version!r}")
        return f"{type(self).__name__}({', '.join(parts)})"


class NotFoundError(CorpusError):
    """Path or version absent. Callers branch on it, it is not a fault."""

    default_kind = ErrorKind.NOT_FOUND
    default_retryable = False
    default_message = "Version not found"


class InvalidContentError(CorpusError):
    """Stored or supplied bytes failed to decode/validate."""

    default_kind = ErrorKind.INVALID_CONTENT
    default_retryable = False
    default_message = "Invalid content"


class StorageIOError(CorpusError):
    """Transport or storage failure. Safe to retry."""

    default_kind = ErrorKind.IO_ERROR
    default_retryable = True
    default_message = "Storage error"


class ConfigError(Exception):
    """Invalid or missing configuration. Raised at construction time."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Invalid configuration: {key}")


# =============================================================================
# ERROR UTILITIES
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable. Non-corpus errors are not."""
    if isinstance(error, CorpusError):
        return error.retryable
    return False


def error_kind(error: Exception) -> ErrorKind:
    """Kind of an arbitrary exception. Unknown exceptions count as io_error."""
    if isinstance(error, CorpusError):
        return error.kind
    return ErrorKind.IO_ERROR


__all__ = [
    "ErrorKind",
    "CorpusError",
    "NotFoundError",
    "InvalidContentError",
    "StorageIOError",
    "ConfigError",
    "is_retryable",
    "error_kind",
]
