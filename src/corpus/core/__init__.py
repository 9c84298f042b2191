"""Corpus core -- errors, results, hashing, timestamps, logging, settings.

Architecture::

    errors.py          Error kinds (not_found / invalid_content / io_error)
    result.py          Result[T] envelope (Ok / Err / try_result)
    hashing.py         SHA-256 version ids
    timestamps.py      UTC + monotonic clock helpers (stdlib-only)
    logging.py         structlog configuration
    settings.py        CorpusSettings (pydantic-settings)
"""

from corpus.core.errors import (
    ConfigError,
    CorpusError,
    ErrorKind,
    InvalidContentError,
    NotFoundError,
    StorageIOError,
    is_retryable,
)
from corpus.core.result import Err, Ok, Result, collect_results, try_result

__all__ = [
    "ConfigError",
    "CorpusError",
    "ErrorKind",
    "InvalidContentError",
    "NotFoundError",
    "StorageIOError",
    "is_retryable",
    "Ok",
    "Err",
    "Result",
    "try_result",
    "collect_results",
]
