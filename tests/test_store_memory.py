"""Tests for the in-memory object store."""

import hashlib

import pytest

from r2vfs.store.memory import MemoryObjectStore


@pytest.fixture
async def populated(store: MemoryObjectStore) -> MemoryObjectStore:
    for key in ("a.txt", "Photos/", "Photos/b.png", "Photos/2024/c.png", "Videos/d.mp4"):
        await store.put_object(key, key.encode())
    return store


class TestPutAndGet:
    async def test_put_returns_md5(self, store):
        assert await store.put_object("k", b"data") == hashlib.md5(b"data").hexdigest()

    async def test_get_round_trip(self, store):
        await store.put_object("k", b"data")
        assert await store.get_object("k") == b"data"

    async def test_get_missing(self, store):
        with pytest.raises(FileNotFoundError):
            await store.get_object("missing")

    async def test_head(self, store):
        await store.put_object("k", b"12345")
        info = await store.head_object("k")
        assert info.size == 5
        assert info.etag == hashlib.md5(b"12345").hexdigest()
        assert info.last_modified is not None

    async def test_head_missing(self, store):
        with pytest.raises(FileNotFoundError):
            await store.head_object("missing")

    async def test_delete_idempotent(self, store):
        await store.put_object("k", b"x")
        await store.delete_object("k")
        await store.delete_object("k")
        assert store.keys() == []


class TestList:
    async def test_recursive_listing(self, populated):
        result = await populated.list_objects(prefix="Photos/")
        assert [o.key for o in result.contents] == ["Photos/", "Photos/2024/c.png", "Photos/b.png"]
        assert result.common_prefixes == []

    async def test_delimiter_rollup_at_root(self, populated):
        result = await populated.list_objects(delimiter="/")
        assert [o.key for o in result.contents] == ["a.txt"]
        assert result.common_prefixes == ["Photos/", "Videos/"]

    async def test_delimiter_rollup_in_folder(self, populated):
        result = await populated.list_objects(prefix="Photos/", delimiter="/")
        assert [o.key for o in result.contents] == ["Photos/", "Photos/b.png"]
        assert result.common_prefixes == ["Photos/2024/"]

    async def test_no_match(self, populated):
        result = await populated.list_objects(prefix="Nope/", delimiter="/")
        assert result.contents == []
        assert result.common_prefixes == []


class TestCopy:
    async def test_copy(self, store):
        await store.put_object("a", b"data", content_type="text/plain")
        etag = await store.copy_object("a", "b")
        assert etag == hashlib.md5(b"data").hexdigest()
        assert await store.get_object("b") == b"data"
        assert store.keys() == ["a", "b"]

    async def test_copy_missing(self, store):
        with pytest.raises(FileNotFoundError):
            await store.copy_object("missing", "b")


class TestPresign:
    async def test_presign_quotes_key(self, store):
        url = await store.generate_presigned_url("get", "My Docs/a b.txt", expires_in=60)
        assert url == "https://r2.test/test-bucket/My%20Docs/a%20b.txt?method=GET&expires=60"

    async def test_presign_unsupported(self, store):
        with pytest.raises(ValueError):
            await store.generate_presigned_url("DELETE", "k")
