"""Error definitions for r2vfs.

Every failure that crosses the :class:`~r2vfs.filesystem.VirtualFileSystem`
boundary is one of these. Store-level exceptions (``FileNotFoundError``,
botocore ``ClientError``, httpx errors) are chained as ``__cause__`` so the
original detail is never lost.
"""


class R2VfsError(Exception):
    """Base error with a short machine-readable code and a message.

    Attributes:
        code: Error code string (e.g. "ValidationError", "NotFound").
        message: Human-readable error description.
        key: The object key or prefix the error relates to, if any.
    """

    def __init__(self, code: str, message: str, key: str = "") -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.key = key


class ValidationError(R2VfsError):
    """Bad caller input: empty folder name, empty key, and the like."""

    def __init__(self, message: str = "Invalid argument", key: str = "") -> None:
        super().__init__(code="ValidationError", message=message, key=key)


class ListError(R2VfsError):
    """Listing a prefix failed at the store."""

    def __init__(self, message: str = "Failed to list objects", key: str = "") -> None:
        super().__init__(code="ListError", message=message, key=key)


class NotFoundError(R2VfsError):
    """The requested key does not exist."""

    def __init__(self, key: str = "") -> None:
        super().__init__(
            code="NotFound",
            message=f"The specified key does not exist: {key}" if key else "The specified key does not exist.",
            key=key,
        )


class TransportError(R2VfsError):
    """Communication with the store or the signed-URL endpoint failed."""

    def __init__(self, message: str = "Transport failure", key: str = "") -> None:
        super().__init__(code="TransportError", message=message, key=key)


class CancelledError(R2VfsError):
    """The caller cancelled a transfer before it completed.

    Distinct from :class:`TransportError` so callers can tell a user abort
    from a failure. Not related to :class:`asyncio.CancelledError`.
    """

    def __init__(self, message: str = "Transfer cancelled", key: str = "") -> None:
        super().__init__(code="Cancelled", message=message, key=key)
