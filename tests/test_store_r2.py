"""Unit tests for the R2 object store.

All tests use mocked aiobotocore, so no credentials or network access are
needed. The mock S3 client is injected directly onto store._client to
bypass session creation.
"""

import hashlib
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from r2vfs.config import StoreConfig
from r2vfs.store import create_object_store
from r2vfs.store.memory import MemoryObjectStore
from r2vfs.store.r2 import R2ObjectStore


def _client_error(code: str, message: str = "error") -> ClientError:
    """Create a botocore ClientError with the given error code."""
    return ClientError(
        {"Error": {"Code": code, "Message": message}},
        "TestOperation",
    )


def _make_store(bucket="test-bucket"):
    """Create an R2ObjectStore with a mock client (skip init)."""
    store = R2ObjectStore(bucket=bucket, endpoint_url="https://acct.r2.cloudflarestorage.com")
    store._client = AsyncMock()
    store._client_ctx = AsyncMock()
    return store


def _mock_session(mock_session_cls, head_bucket=None):
    mock_client = AsyncMock()
    mock_client.head_bucket = head_bucket or AsyncMock()
    mock_ctx = AsyncMock()
    mock_ctx.__aenter__ = AsyncMock(return_value=mock_client)
    mock_ctx.__aexit__ = AsyncMock(return_value=False)
    mock_session_cls.return_value.create_client.return_value = mock_ctx
    return mock_client, mock_ctx


def _paginate(store, *pages):
    async def _pages(**kwargs):
        for page in pages:
            yield page

    mock_paginator = AsyncMock()
    mock_paginator.paginate = MagicMock(return_value=_pages())
    store._client.get_paginator = MagicMock(return_value=mock_paginator)
    return mock_paginator


class TestInit:
    """Tests for init() and close()."""

    async def test_init_verifies_bucket(self):
        """init() calls head_bucket to verify the bucket exists."""
        with patch("r2vfs.store.r2.AioSession") as mock_session_cls:
            mock_client, _ = _mock_session(mock_session_cls)

            store = R2ObjectStore(bucket="my-bucket", endpoint_url="https://r2.example")
            await store.init()

            mock_client.head_bucket.assert_awaited_once_with(Bucket="my-bucket")
            await store.close()

    async def test_init_uses_path_style_and_endpoint(self):
        with patch("r2vfs.store.r2.AioSession") as mock_session_cls:
            _mock_session(mock_session_cls)

            store = R2ObjectStore(bucket="b", endpoint_url="https://r2.example")
            await store.init()

            _, kwargs = mock_session_cls.return_value.create_client.call_args
            assert kwargs["endpoint_url"] == "https://r2.example"
            assert kwargs["region_name"] == "auto"
            assert kwargs["config"].s3 == {"addressing_style": "path"}
            await store.close()

    async def test_init_with_explicit_credentials(self):
        with patch("r2vfs.store.r2.AioSession") as mock_session_cls:
            _mock_session(mock_session_cls)

            store = R2ObjectStore(bucket="b", access_key_id="AK", secret_access_key="SK")
            await store.init()

            mock_session_cls.return_value.set_credentials.assert_called_once_with("AK", "SK")
            await store.close()

    async def test_init_raises_on_missing_bucket(self):
        """init() raises ValueError if the bucket doesn't exist."""
        with patch("r2vfs.store.r2.AioSession") as mock_session_cls:
            _, mock_ctx = _mock_session(
                mock_session_cls,
                head_bucket=AsyncMock(side_effect=_client_error("404", "Not Found")),
            )

            store = R2ObjectStore(bucket="no-such-bucket")
            with pytest.raises(ValueError, match="Cannot access bucket 'no-such-bucket'"):
                await store.init()
            mock_ctx.__aexit__.assert_awaited_once()
            assert store._client is None

    async def test_close_exits_context(self):
        """close() exits the client context manager."""
        store = _make_store()
        ctx_ref = store._client_ctx
        await store.close()
        ctx_ref.__aexit__.assert_awaited_once()
        assert store._client is None
        assert store._client_ctx is None

    async def test_close_noop_when_not_initialized(self):
        store = R2ObjectStore(bucket="b")
        await store.close()


class TestPut:
    async def test_put_returns_md5(self):
        store = _make_store()
        data = b"hello world"

        result = await store.put_object("Photos/a.png", data, content_type="image/png")

        assert result == hashlib.md5(data).hexdigest()
        store._client.put_object.assert_awaited_once_with(
            Bucket="test-bucket", Key="Photos/a.png", Body=data, ContentType="image/png"
        )

    async def test_put_folder_marker(self):
        store = _make_store()
        await store.put_object("Photos/", content_type="application/x-directory")
        store._client.put_object.assert_awaited_once_with(
            Bucket="test-bucket", Key="Photos/", Body=b"", ContentType="application/x-directory"
        )


class TestGet:
    async def test_get_returns_bytes(self):
        store = _make_store()
        mock_body = AsyncMock()
        mock_body.read = AsyncMock(return_value=b"content")
        mock_body.__aenter__ = AsyncMock(return_value=mock_body)
        mock_body.__aexit__ = AsyncMock(return_value=False)
        store._client.get_object = AsyncMock(return_value={"Body": mock_body})

        assert await store.get_object("key") == b"content"
        store._client.get_object.assert_awaited_once_with(Bucket="test-bucket", Key="key")

    async def test_get_not_found_raises_file_not_found(self):
        store = _make_store()
        store._client.get_object = AsyncMock(side_effect=_client_error("NoSuchKey"))
        with pytest.raises(FileNotFoundError):
            await store.get_object("missing")

    async def test_get_other_error_propagates(self):
        store = _make_store()
        store._client.get_object = AsyncMock(side_effect=_client_error("AccessDenied"))
        with pytest.raises(ClientError):
            await store.get_object("key")


class TestHead:
    async def test_head_returns_info(self):
        store = _make_store()
        modified = datetime(2024, 5, 1, tzinfo=timezone.utc)
        store._client.head_object = AsyncMock(
            return_value={"ContentLength": 12, "LastModified": modified, "ETag": '"abc"'}
        )

        info = await store.head_object("a.txt")

        assert info.key == "a.txt"
        assert info.size == 12
        assert info.last_modified == modified
        assert info.etag == "abc"

    async def test_head_not_found(self):
        store = _make_store()
        store._client.head_object = AsyncMock(side_effect=_client_error("404"))
        with pytest.raises(FileNotFoundError):
            await store.head_object("missing")


class TestList:
    async def test_list_collects_all_pages(self):
        store = _make_store()
        modified = datetime(2024, 5, 1, tzinfo=timezone.utc)
        paginator = _paginate(
            store,
            {
                "Contents": [{"Key": "a.txt", "Size": 3, "LastModified": modified, "ETag": '"e1"'}],
                "CommonPrefixes": [{"Prefix": "Photos/"}],
            },
            {
                "Contents": [{"Key": "b.txt", "Size": 4, "LastModified": modified, "ETag": '"e2"'}],
            },
        )

        result = await store.list_objects(prefix="", delimiter="/")

        paginator.paginate.assert_called_once_with(Bucket="test-bucket", Prefix="", Delimiter="/")
        assert [o.key for o in result.contents] == ["a.txt", "b.txt"]
        assert [o.etag for o in result.contents] == ["e1", "e2"]
        assert result.common_prefixes == ["Photos/"]

    async def test_list_without_delimiter(self):
        store = _make_store()
        paginator = _paginate(store, {})

        result = await store.list_objects(prefix="Photos/")

        paginator.paginate.assert_called_once_with(Bucket="test-bucket", Prefix="Photos/")
        assert result.contents == []
        assert result.common_prefixes == []


class TestDeleteAndCopy:
    async def test_delete(self):
        store = _make_store()
        await store.delete_object("a.txt")
        store._client.delete_object.assert_awaited_once_with(Bucket="test-bucket", Key="a.txt")

    async def test_copy_returns_etag(self):
        store = _make_store()
        store._client.copy_object = AsyncMock(return_value={"CopyObjectResult": {"ETag": '"xyz"'}})

        etag = await store.copy_object("a/x.txt", "b/x.txt")

        assert etag == "xyz"
        store._client.copy_object.assert_awaited_once_with(
            Bucket="test-bucket",
            Key="b/x.txt",
            CopySource={"Bucket": "test-bucket", "Key": "a/x.txt"},
        )

    async def test_copy_missing_source(self):
        store = _make_store()
        store._client.copy_object = AsyncMock(side_effect=_client_error("NoSuchKey"))
        with pytest.raises(FileNotFoundError):
            await store.copy_object("missing", "dst")


class TestPresign:
    async def test_presign_get(self):
        store = _make_store()
        store._client.generate_presigned_url = AsyncMock(return_value="https://signed/get")

        url = await store.generate_presigned_url("GET", "a.txt", expires_in=60)

        assert url == "https://signed/get"
        store._client.generate_presigned_url.assert_awaited_once_with(
            "get_object", Params={"Bucket": "test-bucket", "Key": "a.txt"}, ExpiresIn=60
        )

    async def test_presign_put_signs_content_type(self):
        store = _make_store()
        store._client.generate_presigned_url = AsyncMock(return_value="https://signed/put")

        await store.generate_presigned_url("put", "a.png", content_type="image/png")

        store._client.generate_presigned_url.assert_awaited_once_with(
            "put_object",
            Params={"Bucket": "test-bucket", "Key": "a.png", "ContentType": "image/png"},
            ExpiresIn=3600,
        )

    async def test_presign_unsupported_method(self):
        store = _make_store()
        with pytest.raises(ValueError):
            await store.generate_presigned_url("DELETE", "a.txt")


class TestStoreFactory:
    """Tests for create_object_store()."""

    def test_r2_requires_bucket(self):
        with pytest.raises(ValueError, match="bucket"):
            create_object_store(StoreConfig(backend="r2", bucket=""))

    def test_r2_from_config(self):
        store = create_object_store(
            StoreConfig(
                backend="r2",
                bucket="files",
                endpoint_url="https://acct.r2.cloudflarestorage.com",
                access_key_id="AK",
                secret_access_key="SK",
            )
        )
        assert isinstance(store, R2ObjectStore)
        assert store.bucket == "files"
        assert store.endpoint_url == "https://acct.r2.cloudflarestorage.com"
        assert store.region == "auto"

    def test_memory_backend(self):
        store = create_object_store(StoreConfig(backend="memory"))
        assert isinstance(store, MemoryObjectStore)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown store backend"):
            create_object_store(StoreConfig(backend="ftp"))
