"""In-memory object store for r2vfs.

Implements the ObjectStore protocol with a dictionary. Used as the test
double for the virtual filesystem and for offline experiments; state is
lost when the process exits.

Listing follows S3 semantics: keys are returned in lexicographic order,
and with a delimiter everything past the first delimiter after the prefix
is rolled up into a common prefix.
"""

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import quote

from r2vfs.models import ListResult, ObjectInfo

logger = logging.getLogger(__name__)


@dataclass
class _StoredObject:
    data: bytes
    etag: str
    content_type: str
    last_modified: datetime


class MemoryObjectStore:
    """Object store that keeps every object in a dictionary.

    Attributes:
        bucket: Bucket name used when rendering pre-signed URLs.
        base_url: Scheme and host used when rendering pre-signed URLs.
    """

    def __init__(self, bucket: str = "memory", base_url: str = "memory://") -> None:
        self.bucket = bucket
        self.base_url = base_url
        # key -> stored object
        self._objects: dict[str, _StoredObject] = {}

    async def init(self) -> None:
        logger.info("Memory object store initialized (bucket=%s)", self.bucket)

    async def close(self) -> None:
        """No-op for the memory store."""
        pass

    def keys(self) -> list[str]:
        """Return every stored key in lexicographic order."""
        return sorted(self._objects)

    async def put_object(
        self, key: str, body: bytes = b"", content_type: str = "application/octet-stream"
    ) -> str:
        etag = hashlib.md5(body).hexdigest()
        self._objects[key] = _StoredObject(
            data=bytes(body),
            etag=etag,
            content_type=content_type,
            last_modified=datetime.now(timezone.utc),
        )
        return etag

    async def list_objects(self, prefix: str = "", delimiter: str = "") -> ListResult:
        result = ListResult()
        seen_prefixes: set[str] = set()

        for key in sorted(self._objects):
            if not key.startswith(prefix):
                continue

            if delimiter:
                suffix = key[len(prefix):]
                delim_pos = suffix.find(delimiter)
                if delim_pos >= 0:
                    cp = prefix + suffix[: delim_pos + len(delimiter)]
                    if cp not in seen_prefixes:
                        seen_prefixes.add(cp)
                        result.common_prefixes.append(cp)
                    continue

            result.contents.append(self._info(key))

        return result

    def _info(self, key: str) -> ObjectInfo:
        obj = self._objects[key]
        return ObjectInfo(
            key=key,
            size=len(obj.data),
            last_modified=obj.last_modified,
            etag=obj.etag,
        )

    async def get_object(self, key: str) -> bytes:
        if key not in self._objects:
            raise FileNotFoundError(f"Object not found: {key}")
        return self._objects[key].data

    async def head_object(self, key: str) -> ObjectInfo:
        if key not in self._objects:
            raise FileNotFoundError(f"Object not found: {key}")
        return self._info(key)

    async def delete_object(self, key: str) -> None:
        self._objects.pop(key, None)

    async def copy_object(self, src_key: str, dst_key: str) -> str:
        if src_key not in self._objects:
            raise FileNotFoundError(f"Object not found: {src_key}")
        src = self._objects[src_key]
        self._objects[dst_key] = _StoredObject(
            data=src.data,
            etag=src.etag,
            content_type=src.content_type,
            last_modified=datetime.now(timezone.utc),
        )
        return src.etag

    async def generate_presigned_url(
        self, method: str, key: str, expires_in: int = 3600, content_type: str = ""
    ) -> str:
        if method.upper() not in ("GET", "PUT"):
            raise ValueError(f"Unsupported presign method: {method}")
        return (
            f"{self.base_url}{self.bucket}/{quote(key)}"
            f"?method={method.upper()}&expires={expires_in}"
        )
