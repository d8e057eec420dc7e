"""Cloudflare R2 (S3-compatible) object store for r2vfs.

Talks to the bucket through aiobotocore. R2 requires path-style addressing
and accepts ``auto`` as its region; both are the defaults here, but any
S3-compatible endpoint works.

Credentials come from the configuration when given, otherwise from the
standard AWS credential chain (env vars, ~/.aws/credentials, IAM role).
"""

import hashlib
import logging

from aiobotocore.session import AioSession
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from r2vfs.config import StoreConfig
from r2vfs.models import ListResult, ObjectInfo

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = ("NoSuchKey", "404", "NotFound")

_PRESIGN_OPERATIONS = {
    "GET": "get_object",
    "PUT": "put_object",
}


def _is_not_found(exc: ClientError) -> bool:
    code = exc.response.get("Error", {}).get("Code", "")
    return code in _NOT_FOUND_CODES


class R2ObjectStore:
    """Object store backed by an R2 or S3 bucket.

    Attributes:
        bucket: The bucket all keys live in.
        endpoint_url: The S3 API endpoint (e.g.
            ``https://<account>.r2.cloudflarestorage.com``).
        region: Signing region (``auto`` for R2).
    """

    def __init__(
        self,
        bucket: str,
        endpoint_url: str = "",
        region: str = "auto",
        access_key_id: str = "",
        secret_access_key: str = "",
        use_path_style: bool = True,
    ) -> None:
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.region = region
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.use_path_style = use_path_style
        self._session = AioSession()
        self._client = None
        self._client_ctx = None

    @classmethod
    def from_config(cls, config: StoreConfig) -> "R2ObjectStore":
        """Build a store from the ``store`` section of the configuration."""
        return cls(
            bucket=config.bucket,
            endpoint_url=config.endpoint_url,
            region=config.region,
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
            use_path_style=config.use_path_style,
        )

    async def __aenter__(self) -> "R2ObjectStore":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def init(self) -> None:
        """Create the aiobotocore S3 client and verify the bucket exists.

        Raises:
            ValueError: If the bucket does not exist or is inaccessible.
        """
        client_kwargs: dict = {
            "region_name": self.region,
            "config": BotoConfig(
                signature_version="s3v4",
                s3={"addressing_style": "path" if self.use_path_style else "auto"},
            ),
        }
        if self.endpoint_url:
            client_kwargs["endpoint_url"] = self.endpoint_url

        # Use explicit credentials if provided, otherwise fall back to chain
        if self.access_key_id and self.secret_access_key:
            session = AioSession()
            session.set_credentials(self.access_key_id, self.secret_access_key)
            self._session = session
        self._client_ctx = self._session.create_client("s3", **client_kwargs)
        self._client = await self._client_ctx.__aenter__()

        try:
            await self._client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None
            raise ValueError(f"Cannot access bucket '{self.bucket}': {code}") from e

        logger.info(
            "R2 object store initialized: bucket=%s endpoint=%s region=%s",
            self.bucket,
            self.endpoint_url or "<default>",
            self.region,
        )

    async def close(self) -> None:
        """Close the aiobotocore client session."""
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None

    async def put_object(
        self, key: str, body: bytes = b"", content_type: str = "application/octet-stream"
    ) -> str:
        """Upload ``body`` under ``key``.

        Computes MD5 locally for a consistent ETag.
        """
        md5 = hashlib.md5(body).hexdigest()
        await self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
        )
        return md5

    async def list_objects(self, prefix: str = "", delimiter: str = "") -> ListResult:
        """List every page of ``list_objects_v2`` under ``prefix``.

        Objects and common prefixes keep the order the service returned them.
        """
        kwargs: dict = {"Bucket": self.bucket, "Prefix": prefix}
        if delimiter:
            kwargs["Delimiter"] = delimiter

        result = ListResult()
        paginator = self._client.get_paginator("list_objects_v2")
        async for page in paginator.paginate(**kwargs):
            for obj in page.get("Contents", []):
                result.contents.append(
                    ObjectInfo(
                        key=obj["Key"],
                        size=obj.get("Size", 0),
                        last_modified=obj.get("LastModified"),
                        etag=obj.get("ETag", "").strip('"'),
                    )
                )
            for cp in page.get("CommonPrefixes", []):
                result.common_prefixes.append(cp["Prefix"])
        return result

    async def get_object(self, key: str) -> bytes:
        """Download an object.

        Raises:
            FileNotFoundError: If the object does not exist.
        """
        try:
            resp = await self._client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise FileNotFoundError(f"Object not found: {key}") from e
            raise

        async with resp["Body"] as stream:
            return await stream.read()

    async def head_object(self, key: str) -> ObjectInfo:
        """Fetch object metadata.

        Raises:
            FileNotFoundError: If the object does not exist.
        """
        try:
            resp = await self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise FileNotFoundError(f"Object not found: {key}") from e
            raise
        return ObjectInfo(
            key=key,
            size=resp.get("ContentLength", 0),
            last_modified=resp.get("LastModified"),
            etag=resp.get("ETag", "").strip('"'),
        )

    async def delete_object(self, key: str) -> None:
        """Delete an object.

        Idempotent: S3 delete_object does not error on missing keys.
        """
        await self._client.delete_object(Bucket=self.bucket, Key=key)

    async def copy_object(self, src_key: str, dst_key: str) -> str:
        """Copy an object using server-side copy.

        Returns:
            The ETag of the copy (quotes stripped).

        Raises:
            FileNotFoundError: If the source does not exist.
        """
        try:
            resp = await self._client.copy_object(
                Bucket=self.bucket,
                Key=dst_key,
                CopySource={"Bucket": self.bucket, "Key": src_key},
            )
        except ClientError as e:
            if _is_not_found(e):
                raise FileNotFoundError(f"Object not found: {src_key}") from e
            raise
        etag = resp.get("CopyObjectResult", {}).get("ETag", "")
        return etag.strip('"')

    async def generate_presigned_url(
        self, method: str, key: str, expires_in: int = 3600, content_type: str = ""
    ) -> str:
        """Sign a GET or PUT URL for ``key`` valid for ``expires_in`` seconds.

        Raises:
            ValueError: If ``method`` is not GET or PUT.
        """
        operation = _PRESIGN_OPERATIONS.get(method.upper())
        if operation is None:
            raise ValueError(f"Unsupported presign method: {method}")
        params: dict = {"Bucket": self.bucket, "Key": key}
        if operation == "put_object" and content_type:
            params["ContentType"] = content_type
        return await self._client.generate_presigned_url(
            operation, Params=params, ExpiresIn=expires_in
        )
