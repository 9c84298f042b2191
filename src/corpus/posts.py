"""
Blog post content on top of a corpus.

Each post owns one document history at ``posts/<user_id>/<post_uuid>``. The
relational side (post rows, categories, tags) lives elsewhere and keeps a
pointer to the current version hash; this module only moves content in and
out of the corpus.

Every function builds a dynamic store whose id is the post path, so the
version blobs sit at ``posts/<user_id>/<post_uuid>/v/<hash>``.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from corpus.codecs import json_codec
from corpus.core.errors import CorpusError
from corpus.core.result import Result
from corpus.registry import Corpus, define_store
from corpus.store import PutResult, Store, VersionInfo

POSTS_STORE = "posts"


class PostContent(BaseModel):
    """Body of one post version."""

    title: str = Field(min_length=1)
    content: str
    description: str | None = None
    format: Literal["md", "adoc"]


posts_store_definition = define_store(POSTS_STORE, json_codec(PostContent))


def corpus_path(user_id: int, post_uuid: str) -> str:
    return f"posts/{user_id}/{post_uuid}"


def _store(corpus: Corpus, path: str) -> Store[PostContent]:
    return corpus.store(POSTS_STORE, store_id=path)


async def put_content(
    corpus: Corpus,
    path: str,
    content: PostContent | dict[str, Any],
    parent: str | None = None,
) -> Result[PutResult]:
    return await _store(corpus, path).put(content, parent)


async def get_content(corpus: Corpus, path: str, hash: str) -> Result[PostContent]:
    return await _store(corpus, path).get(hash)


async def list_versions(corpus: Corpus, path: str) -> Result[list[VersionInfo]]:
    return await _store(corpus, path).list_versions()


async def delete_content(corpus: Corpus, path: str) -> Result[None]:
    return await _store(corpus, path).delete()


def error_payload(error: Exception) -> dict[str, Any]:
    """``{type, path, version?, message?}`` for any error from this module."""
    if isinstance(error, CorpusError):
        return error.to_dict()
    return {"type": "io_error", "path": None, "message": str(error)}


__all__ = [
    "PostContent",
    "corpus_path",
    "delete_content",
    "error_payload",
    "get_content",
    "list_versions",
    "posts_store_definition",
    "put_content",
]
