"""Storage usage statistics."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from r2vfs.models import FileEntry, ObjectInfo

logger = logging.getLogger(__name__)

DEFAULT_ALLOCATED_BYTES = 10 * 1024 * 1024 * 1024

_UNITS = ("B", "KB", "MB", "GB", "TB")


@dataclass(frozen=True)
class StorageStats:
    total_files: int
    used_bytes: int
    allocated_bytes: int
    usage_percentage: float

    @property
    def used(self) -> str:
        return format_bytes(self.used_bytes)

    @property
    def allocated(self) -> str:
        return format_bytes(self.allocated_bytes)


def format_bytes(n: int) -> str:
    """Render a byte count with 1024-based units, e.g. ``1536 -> "1.5 KB"``."""
    if n <= 0:
        return "0 B"
    value = float(n)
    i = 0
    while value >= 1024 and i < len(_UNITS) - 1:
        value /= 1024
        i += 1
    # Drop trailing zeros: 1.50 -> 1.5, 2.00 -> 2
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_UNITS[i]}"


def calculate_storage_stats(
    files: Iterable[FileEntry | ObjectInfo],
    allocated_bytes: int = DEFAULT_ALLOCATED_BYTES,
) -> StorageStats:
    """Summarize file count and usage against an allocation."""
    total_files = 0
    used = 0
    for f in files:
        if f.key.endswith("/"):
            continue
        total_files += 1
        used += f.size or 0

    if allocated_bytes <= 0:
        logger.warning("Non-positive allocation %d, reporting 0%% usage", allocated_bytes)
        percentage = 0.0
    else:
        percentage = round(used / allocated_bytes * 100, 1)

    return StorageStats(
        total_files=total_files,
        used_bytes=used,
        allocated_bytes=allocated_bytes,
        usage_percentage=percentage,
    )
