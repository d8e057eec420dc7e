"""r2vfs - virtual folders over an S3-compatible object store."""

from r2vfs.errors import (
    CancelledError,
    ListError,
    NotFoundError,
    R2VfsError,
    TransportError,
    ValidationError,
)
from r2vfs.filesystem import VirtualFileSystem
from r2vfs.models import FileEntry, FolderEntry, Listing, UploadState
from r2vfs.transfer import CancellationToken
from r2vfs.uploads import UploadQueue, UploadTask

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "CancelledError",
    "FileEntry",
    "FolderEntry",
    "ListError",
    "Listing",
    "NotFoundError",
    "R2VfsError",
    "TransportError",
    "UploadQueue",
    "UploadState",
    "UploadTask",
    "ValidationError",
    "VirtualFileSystem",
]
