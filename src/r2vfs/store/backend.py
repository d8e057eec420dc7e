"""Object store protocol consumed by the virtual filesystem."""

from typing import Protocol

from r2vfs.models import ListResult, ObjectInfo


class ObjectStore(Protocol):
    """Protocol defining the flat key/value primitives r2vfs builds on.

    Implementations address a single bucket chosen at construction time.
    Missing keys are reported with ``FileNotFoundError``; every other
    failure propagates as the implementation's native exception.
    """

    async def init(self) -> None:
        """Open connections or verify the bucket is reachable."""
        ...

    async def close(self) -> None:
        """Release resources held by the store."""
        ...

    async def put_object(
        self, key: str, body: bytes = b"", content_type: str = "application/octet-stream"
    ) -> str:
        """Store ``body`` under ``key``.

        Returns:
            The hex-encoded MD5 ETag of the stored data.
        """
        ...

    async def list_objects(self, prefix: str = "", delimiter: str = "") -> ListResult:
        """List keys under ``prefix``.

        Args:
            prefix: Only keys starting with this string are returned.
            delimiter: When non-empty, keys containing the delimiter after
                the prefix are rolled up into ``common_prefixes``.

        Returns:
            All matching objects and common prefixes (every page).
        """
        ...

    async def get_object(self, key: str) -> bytes:
        """Return the object's bytes.

        Raises:
            FileNotFoundError: If the key does not exist.
        """
        ...

    async def head_object(self, key: str) -> ObjectInfo:
        """Return size, ETag and timestamp of an object without its body.

        Raises:
            FileNotFoundError: If the key does not exist.
        """
        ...

    async def delete_object(self, key: str) -> None:
        """Delete an object. Deleting a missing key is not an error."""
        ...

    async def copy_object(self, src_key: str, dst_key: str) -> str:
        """Server-side copy of ``src_key`` to ``dst_key``.

        Returns:
            The hex-encoded ETag of the copy.

        Raises:
            FileNotFoundError: If the source does not exist.
        """
        ...

    async def generate_presigned_url(
        self, method: str, key: str, expires_in: int = 3600, content_type: str = ""
    ) -> str:
        """Issue a time-limited URL granting ``method`` ("GET"/"PUT") on ``key``."""
        ...
