"""
Codecs: typed content <-> bytes.

A codec turns an application value into the exact bytes a store hashes and
writes, and validates bytes on the way back. Encoding must be canonical
(same logical value → same bytes, no timestamps), otherwise identical
content would hash differently and deduplication breaks.

Decoding never raises. Malformed UTF-8, malformed JSON and schema violations
all come back as ``Err(InvalidContentError)``; nothing is coerced silently.

Examples:
    >>> from pydantic import BaseModel
    >>> class Note(BaseModel):
    ...     text: str
    >>> codec = json_codec(Note)
    >>> codec.encode({"text": "hi"})
    b'{"text":"hi"}'
    >>> codec.decode(b'{"text": 1}').is_err()
    True

Tags:
    codec, serialization, validation, pydantic, corpus
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ValidationError

from corpus.core.errors import InvalidContentError
from corpus.core.result import Result, try_result_with

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


@runtime_checkable
class Codec(Protocol[T]):
    """Serializer/validator for one content type."""

    name: str
    content_type: str

    def encode(self, value: T) -> bytes:
        """Canonical bytes for ``value``. Raises InvalidContentError if invalid."""
        ...

    def decode(self, data: bytes) -> Result[T]:
        """Validated value, or Err(InvalidContentError)."""
        ...


def _describe(error: Exception) -> str:
    if isinstance(error, ValidationError):
        details = "; ".join(
            f"{'.'.join(str(p) for p in e['loc']) or '<root>'}: {e['msg']}"
            for e in error.errors()
        )
        return f"{error.error_count()} validation error(s): {details}"
    return str(error)


def _to_invalid_content(error: Exception) -> Exception:
    return InvalidContentError(_describe(error), cause=error)


class JsonCodec(Generic[M]):
    """
    JSON codec backed by a pydantic model.

    Canonical form: model field order, ``None`` fields omitted, compact
    separators, UTF-8 without ASCII escaping.
    """

    content_type = "application/json"

    def __init__(self, model: type[M]):
        self.model = model
        self.name = f"json:{model.__name__}"

    def encode(self, value: M | Mapping[str, Any]) -> bytes:
        if isinstance(value, self.model):
            instance = value
        else:
            try:
                instance = self.model.model_validate(value, strict=True)
            except ValidationError as e:
                raise InvalidContentError(_describe(e), cause=e) from e

        payload = instance.model_dump(mode="json", exclude_none=True)
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def decode(self, data: bytes) -> Result[M]:
        return try_result_with(
            lambda: self.model.model_validate_json(data, strict=True),
            _to_invalid_content,
        )

    def __repr__(self) -> str:
        return f"JsonCodec({self.model.__name__})"


def json_codec(model: type[M]) -> JsonCodec[M]:
    """Build a JSON codec for ``model``."""
    return JsonCodec(model)


__all__ = ["Codec", "JsonCodec", "json_codec"]
