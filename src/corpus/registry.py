"""Corpus: named store definitions composed over one backend.

Manifesto:
    Consumers should never wire a backend and a codec together by hand at
    every call site. A ``StoreDefinition`` names a content type once; a
    ``Corpus`` pairs the definitions with a backend and hands out ``Store``
    objects by name.

Features:
    - ``define_store()``: name + codec → ``StoreDefinition``
    - ``Corpus.builder()``: fluent ``with_backend`` / ``with_store`` / ``build``
    - ``Corpus.store()``: store by name, optionally under a per-document id
    - ``register_stores()`` / ``catalog()``: definitions recorded in the
      backend metadata store under ``_corpus/stores/<name>``

Usage::

    corpus = (
        Corpus.builder()
        .with_backend(MemoryBackend())
        .with_store(define_store("posts", json_codec(PostContent)))
        .build()
    )
    store = corpus.store("posts", store_id="posts/1/abc")

Tags:
    corpus, registry, builder, store, factory
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from corpus.backends.base import Backend, MetadataRecord
from corpus.codecs import Codec
from corpus.core.errors import ConfigError
from corpus.core.logging import get_logger
from corpus.core.result import Err, Ok, Result
from corpus.core.timestamps import to_iso8601, utc_now
from corpus.store import Store

logger = get_logger(__name__)

T = TypeVar("T")

CATALOG_PREFIX = "_corpus/stores/"


@dataclass(frozen=True)
class StoreDefinition(Generic[T]):
    """A named content type."""

    name: str
    codec: Codec[T]

    def catalog_record(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "codec": self.codec.name,
            "content_type": self.codec.content_type,
            "registered_at": to_iso8601(utc_now()),
        }


def define_store(name: str, codec: Codec[T]) -> StoreDefinition[T]:
    """Define a store. ``name`` is also its default store id."""
    if not name or "/" in name:
        raise ValueError(f"Invalid store name: {name!r}")
    return StoreDefinition(name=name, codec=codec)


class Corpus:
    """A backend plus the store definitions it serves."""

    def __init__(self, backend: Backend, definitions: dict[str, StoreDefinition[Any]]):
        self.backend = backend
        self._definitions = dict(definitions)

    @staticmethod
    def builder() -> CorpusBuilder:
        return CorpusBuilder()

    @property
    def definitions(self) -> dict[str, StoreDefinition[Any]]:
        return dict(self._definitions)

    def list_stores(self) -> list[str]:
        """Defined store names."""
        return sorted(self._definitions)

    def store(self, name: str, *, store_id: str | None = None) -> Store[Any]:
        """
        Store for a definition.

        Args:
            name: Definition name
            store_id: Key prefix override for dynamic per-document stores

        Raises:
            KeyError: If no store with that name is defined
        """
        try:
            definition = self._definitions[name]
        except KeyError:
            raise KeyError(f"Unknown store: {name}") from None
        return Store(self.backend, definition.codec, store_id or definition.name)

    async def register_stores(self) -> Result[int]:
        """Record every definition in the backend catalog."""
        for name, definition in self._definitions.items():
            written = await self.backend.metadata.put_record(
                CATALOG_PREFIX + name, definition.catalog_record()
            )
            if isinstance(written, Err):
                return Err(written.error)
        logger.info("stores_registered", stores=self.list_stores(), backend=self.backend.name)
        return Ok(len(self._definitions))

    async def catalog(self) -> Result[list[dict[str, Any]]]:
        """Catalog records previously written by ``register_stores``."""
        listed = await self.backend.metadata.list_records(CATALOG_PREFIX)

        def values(records: list[MetadataRecord]) -> list[dict[str, Any]]:
            return sorted((r.value for r in records), key=lambda v: v.get("name", ""))

        return listed.map(values)

    async def unregister_stores(self) -> Result[int]:
        """Remove this corpus' definitions from the backend catalog."""
        keys = [CATALOG_PREFIX + name for name in self._definitions]
        return await self.backend.metadata.delete_records(keys)

    def __repr__(self) -> str:
        return f"Corpus(backend={self.backend.name!r}, stores={self.list_stores()!r})"


class CorpusBuilder:
    """Fluent builder for ``Corpus``."""

    def __init__(self) -> None:
        self._backend: Backend | None = None
        self._definitions: dict[str, StoreDefinition[Any]] = {}

    def with_backend(self, backend: Backend) -> CorpusBuilder:
        self._backend = backend
        return self

    def with_store(self, definition: StoreDefinition[Any]) -> CorpusBuilder:
        if definition.name in self._definitions:
            raise ConfigError("stores", f"Store already defined: {definition.name}")
        self._definitions[definition.name] = definition
        return self

    def with_stores(self, *definitions: StoreDefinition[Any]) -> CorpusBuilder:
        for definition in definitions:
            self.with_store(definition)
        return self

    def build(self) -> Corpus:
        if self._backend is None:
            raise ConfigError("backend", "Corpus requires a backend")
        return Corpus(self._backend, self._definitions)


__all__ = [
    "CATALOG_PREFIX",
    "Corpus",
    "CorpusBuilder",
    "StoreDefinition",
    "define_store",
]
