"""Tests specific to the File backend: on-disk layout and corruption handling."""

import json

import pytest

from corpus.backends.file import FileBackend
from corpus.core.errors import ErrorKind
from corpus.store import Store

BLOB = b'{"title":"V1","content":"Hello","format":"md"}'
CREATED = "2026-01-01T00:00:00+00:00"
POST = {"title": "V1", "content": "Hello", "format": "md"}


class TestLayout:
    @pytest.mark.asyncio
    async def test_blob_is_readable_json_envelope(self, file_backend):
        await file_backend.data.write_blob("posts/1/abc/v/h1", BLOB, {"created_at": CREATED, "parent": "h0"})

        path = file_backend.base_path / "posts" / "1" / "abc" / "v" / "h1.json"
        entry = json.loads(path.read_text())
        assert entry == {
            "content": {"title": "V1", "content": "Hello", "format": "md"},
            "parent": "h0",
            "created_at": CREATED,
        }

    @pytest.mark.asyncio
    async def test_root_parent_is_null(self, file_backend):
        await file_backend.data.write_blob("p/v/h1", BLOB, {"created_at": CREATED})
        entry = json.loads((file_backend.base_path / "p" / "v" / "h1.json").read_text())
        assert entry["parent"] is None

    @pytest.mark.asyncio
    async def test_binary_payload_stored_base64(self, file_backend):
        await file_backend.data.write_blob("p/v/bin", b"\x00\xff")
        entry = json.loads((file_backend.base_path / "p" / "v" / "bin.json").read_text())
        assert "content" not in entry
        assert entry["content_base64"] == "AP8="

    @pytest.mark.asyncio
    async def test_extra_metadata_kept(self, file_backend):
        await file_backend.data.write_blob("p/v/h1", BLOB, {"created_at": CREATED, "codec": "json"})
        (info,) = (await file_backend.data.list_blobs("p/v/")).unwrap()
        assert info.metadata == {"created_at": CREATED, "codec": "json"}

    @pytest.mark.asyncio
    async def test_metadata_records_live_under_meta_dir(self, file_backend):
        await file_backend.metadata.put_record("_corpus/stores/posts", {"name": "posts"})
        path = file_backend.base_path / ".meta" / "_corpus" / "stores" / "posts.json"
        assert json.loads(path.read_text())["value"] == {"name": "posts"}

    @pytest.mark.asyncio
    async def test_delete_prunes_empty_directories(self, file_backend):
        await file_backend.data.write_blob("posts/1/abc/v/h1", BLOB)
        await file_backend.data.write_blob("posts/1/keep/v/h2", BLOB)

        await file_backend.data.delete_blobs(["posts/1/abc/v/h1"])

        assert not (file_backend.base_path / "posts" / "1" / "abc").exists()
        assert (file_backend.base_path / "posts" / "1" / "keep" / "v" / "h2.json").exists()
        assert file_backend.base_path.exists()

    @pytest.mark.asyncio
    async def test_no_temp_files_left_behind(self, file_backend):
        await file_backend.data.write_blob("p/v/h1", BLOB)
        leftovers = [p for p in file_backend.base_path.rglob("*") if p.name.startswith(".tmp-")]
        assert leftovers == []

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        first = FileBackend(tmp_path / "data")
        await first.data.write_blob("p/v/h1", BLOB, {"created_at": CREATED})

        second = FileBackend(tmp_path / "data")
        assert (await second.data.read_blob("p/v/h1")).unwrap() == BLOB


class TestCorruption:
    @pytest.mark.asyncio
    async def test_garbage_file_is_invalid_content(self, file_backend):
        path = file_backend.base_path / "p" / "v" / "bad.json"
        path.parent.mkdir(parents=True)
        path.write_text("{ not json")

        result = await file_backend.data.read_blob("p/v/bad")
        assert result.error.kind == ErrorKind.INVALID_CONTENT

    @pytest.mark.asyncio
    async def test_envelope_without_content_is_invalid(self, file_backend):
        path = file_backend.base_path / "p" / "v" / "bad.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"parent": None}))

        result = await file_backend.data.read_blob("p/v/bad")
        assert result.error.kind == ErrorKind.INVALID_CONTENT

    @pytest.mark.asyncio
    async def test_listing_skips_unreadable_entries(self, file_backend):
        await file_backend.data.write_blob("p/v/good", BLOB, {"created_at": CREATED})
        (file_backend.base_path / "p" / "v" / "bad.json").write_text("garbage")

        keys = [b.key for b in (await file_backend.data.list_blobs("p/v/")).unwrap()]
        assert keys == ["p/v/good"]

    @pytest.mark.asyncio
    async def test_os_error_becomes_io_error(self, file_backend, monkeypatch):
        def boom(*args, **kwargs):
            raise PermissionError("read-only filesystem")

        monkeypatch.setattr("corpus.backends.file._atomic_write", boom)
        result = await file_backend.data.write_blob("p/v/h1", BLOB)

        assert result.error.kind == ErrorKind.IO_ERROR
        assert result.error.retryable is True
        assert isinstance(result.error.cause, PermissionError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("created_at", ["yesterday", 123, ["2026"]])
    async def test_bad_created_at_falls_back_to_mtime(self, file_backend, post_codec, created_at):
        store = Store(file_backend, post_codec, "posts/1/test")
        h = (await store.put(POST)).unwrap().hash
        path = file_backend.base_path / "posts" / "1" / "test" / "v" / f"{h}.json"
        entry = json.loads(path.read_text())
        entry["created_at"] = created_at
        path.write_text(json.dumps(entry))

        (info,) = (await store.list_versions()).unwrap()
        assert info.hash == h
        assert info.created_at.tzinfo is not None
        assert (await store.latest()).unwrap().hash == h
        assert (await store.delete()).is_ok()
        assert (await store.list_versions()).unwrap() == []

    @pytest.mark.asyncio
    async def test_non_string_parent_is_dropped(self, file_backend):
        await file_backend.data.write_blob("p/v/h1", BLOB, {"created_at": CREATED})
        path = file_backend.base_path / "p" / "v" / "h1.json"
        entry = json.loads(path.read_text())
        entry["parent"] = {"not": "a hash"}
        entry["metadata"] = ["junk"]
        path.write_text(json.dumps(entry))

        (info,) = (await file_backend.data.list_blobs("p/v/")).unwrap()
        assert info.metadata == {"created_at": CREATED}

    @pytest.mark.asyncio
    async def test_bad_base64_is_invalid_content(self, file_backend):
        path = file_backend.base_path / "p" / "v" / "bad.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"content_base64": "abc", "parent": None}))

        result = await file_backend.data.read_blob("p/v/bad")
        assert result.error.kind == ErrorKind.INVALID_CONTENT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [[1, 2], "text", {"value": "not-a-dict"}])
    async def test_malformed_metadata_record(self, file_backend, raw):
        await file_backend.metadata.put_record("_corpus/stores/good", {"name": "good"})
        path = file_backend.base_path / ".meta" / "_corpus" / "stores" / "bad.json"
        path.write_text(json.dumps(raw))

        result = await file_backend.metadata.get_record("_corpus/stores/bad")
        assert result.error.kind == ErrorKind.INVALID_CONTENT
        records = (await file_backend.metadata.list_records("_corpus/stores/")).unwrap()
        assert [r.key for r in records] == ["_corpus/stores/good"]

    @pytest.mark.asyncio
    async def test_bad_record_timestamp_is_none(self, file_backend):
        path = file_backend.base_path / ".meta" / "r.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"value": {"a": 1}, "written_at": "soon"}))

        record = (await file_backend.metadata.get_record("r")).unwrap()
        assert record.value == {"a": 1}
        assert record.written_at is None


class TestPathSafety:
    @pytest.mark.asyncio
    async def test_symlink_escape_rejected(self, file_backend, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (file_backend.base_path / "link").symlink_to(outside)

        with pytest.raises(ValueError):
            await file_backend.data.write_blob("link/v/h1", BLOB)
