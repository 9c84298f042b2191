"""Tests for Corpus, CorpusBuilder and store definitions."""

import pytest

from corpus.backends.memory import MemoryBackend
from corpus.codecs import json_codec
from corpus.core.errors import ConfigError
from corpus.posts import PostContent, posts_store_definition
from corpus.registry import CATALOG_PREFIX, Corpus, define_store
from corpus.store import Store


@pytest.fixture
def corpus(backend) -> Corpus:
    return Corpus.builder().with_backend(backend).with_store(posts_store_definition).build()


class TestDefineStore:
    def test_fields(self):
        codec = json_codec(PostContent)
        definition = define_store("drafts", codec)
        assert definition.name == "drafts"
        assert definition.codec is codec

    @pytest.mark.parametrize("name", ["", "a/b"])
    def test_invalid_names(self, name):
        with pytest.raises(ValueError):
            define_store(name, json_codec(PostContent))


class TestBuilder:
    def test_requires_backend(self):
        with pytest.raises(ConfigError) as exc_info:
            Corpus.builder().with_store(posts_store_definition).build()
        assert exc_info.value.key == "backend"

    def test_rejects_duplicate_store(self):
        builder = Corpus.builder().with_store(posts_store_definition)
        with pytest.raises(ConfigError):
            builder.with_store(define_store("posts", json_codec(PostContent)))

    def test_with_stores(self):
        corpus = (
            Corpus.builder()
            .with_backend(MemoryBackend())
            .with_stores(posts_store_definition, define_store("drafts", json_codec(PostContent)))
            .build()
        )
        assert corpus.list_stores() == ["drafts", "posts"]

    def test_builders_are_independent(self):
        backend = MemoryBackend()
        a = Corpus.builder().with_backend(backend).with_store(posts_store_definition).build()
        b = Corpus.builder().with_backend(backend).build()
        assert a.list_stores() == ["posts"]
        assert b.list_stores() == []


class TestCorpusStore:
    def test_default_store_id_is_name(self, corpus):
        store = corpus.store("posts")
        assert isinstance(store, Store)
        assert store.store_id == "posts"

    def test_store_id_override(self, corpus):
        assert corpus.store("posts", store_id="posts/1/abc").store_id == "posts/1/abc"

    def test_unknown_store(self, corpus):
        with pytest.raises(KeyError):
            corpus.store("comments")

    @pytest.mark.asyncio
    async def test_stores_share_backend(self, corpus):
        h = (await corpus.store("posts", store_id="posts/1/a").put(
            {"title": "T", "content": "c", "format": "md"}
        )).unwrap().hash
        again = corpus.store("posts").document("1/a")
        assert (await again.get(h)).unwrap().title == "T"


class TestCatalog:
    @pytest.mark.asyncio
    async def test_register_and_read_back(self, corpus, backend):
        assert (await corpus.register_stores()).unwrap() == 1

        (entry,) = (await corpus.catalog()).unwrap()
        assert entry["name"] == "posts"
        assert entry["codec"] == "json:PostContent"
        assert entry["content_type"] == "application/json"
        assert "registered_at" in entry

        record = (await backend.metadata.get_record(CATALOG_PREFIX + "posts")).unwrap()
        assert record.value["name"] == "posts"

    @pytest.mark.asyncio
    async def test_register_is_repeatable(self, corpus):
        await corpus.register_stores()
        await corpus.register_stores()
        assert len((await corpus.catalog()).unwrap()) == 1

    @pytest.mark.asyncio
    async def test_empty_catalog(self, corpus):
        assert (await corpus.catalog()).unwrap() == []

    @pytest.mark.asyncio
    async def test_unregister(self, corpus):
        await corpus.register_stores()
        await corpus.unregister_stores()
        assert (await corpus.catalog()).unwrap() == []

    @pytest.mark.asyncio
    async def test_catalog_does_not_create_versions(self, corpus, backend):
        await corpus.register_stores()
        assert (await backend.data.list_blobs("_corpus/")).unwrap() == []
