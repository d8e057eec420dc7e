"""Data model types for r2vfs.

Store-level results (:class:`ObjectInfo`, :class:`ListResult`) mirror what an
S3 ``ListObjectsV2`` call returns. Folder-level views (:class:`FileEntry`,
:class:`FolderEntry`, :class:`Listing`) are derived from them on every
listing and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class UploadState(str, Enum):
    """Lifecycle of a single upload.

    ``IDLE -> REQUESTING_AUTHORIZATION -> TRANSFERRING`` and then exactly
    one of the terminal states.
    """

    IDLE = "idle"
    REQUESTING_AUTHORIZATION = "requesting_authorization"
    TRANSFERRING = "transferring"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadState.COMPLETED, UploadState.CANCELLED, UploadState.FAILED)


@dataclass(frozen=True)
class ObjectInfo:
    """One object as reported by a store listing.

    Attributes:
        key: The object key.
        size: Size in bytes.
        last_modified: Last-modified timestamp, if the store reported one.
        etag: MD5 hex ETag without quotes, if the store reported one.
    """

    key: str
    size: int = 0
    last_modified: datetime | None = None
    etag: str = ""


@dataclass
class ListResult:
    """Result of a single store listing call.

    Attributes:
        contents: Objects matching the prefix (immediate children only when
            a delimiter was given).
        common_prefixes: Sub-prefixes rolled up at the delimiter.
    """

    contents: list[ObjectInfo] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class FileEntry:
    """A file directly under the listed folder."""

    key: str
    size: int = 0
    last_modified: datetime | None = None


@dataclass(frozen=True)
class FolderEntry:
    """A sub-folder of the listed folder with aggregated descendant totals.

    Attributes:
        id: The folder prefix (always ends with ``/``).
        name: Display name derived from the prefix.
        file_count: Number of descendant files at any depth.
        total_size: Sum of descendant file sizes in bytes.
        last_modified: Most recent descendant timestamp, or None if empty.
    """

    id: str
    name: str
    file_count: int = 0
    total_size: int = 0
    last_modified: datetime | None = None


@dataclass(frozen=True)
class Listing:
    """Two-list view of one folder: its files and its sub-folders."""

    files: list[FileEntry] = field(default_factory=list)
    folders: list[FolderEntry] = field(default_factory=list)
