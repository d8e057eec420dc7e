"""Key and path helpers for the virtual folder layout.

The store has no directories. A folder is a key prefix ending in ``/``
(optionally backed by a zero-byte marker object with that exact key), and a
file key is ``{path}{uuid4}-{original name}``. These functions are pure and
never touch the network, so they can be unit-tested in isolation.
"""

import re
import uuid

from r2vfs.errors import ValidationError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

FOLDER_SEPARATOR = "/"
UNKNOWN_FILE_NAME = "Unknown file"

# 8-4-4-4-12 hex groups followed by the "-" that joins the original name
_UUID_PREFIX_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}-",
    re.IGNORECASE,
)

_DEFAULT_MIME_TYPE = "application/octet-stream"

_MIME_TYPES = {
    # Images
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    # Video
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    "mkv": "video/x-matroska",
    "webm": "video/webm",
    # Documents
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    # Text
    "txt": "text/plain",
    "html": "text/html",
    "css": "text/css",
    "js": "text/javascript",
    "json": "application/json",
    "xml": "application/xml",
    # Archives
    "zip": "application/zip",
    "rar": "application/x-rar-compressed",
    "7z": "application/x-7z-compressed",
    "tar": "application/x-tar",
    "gz": "application/gzip",
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def is_folder_key(key: str) -> bool:
    """Return True if ``key`` names a virtual folder."""
    return key.endswith(FOLDER_SEPARATOR)


def normalize_path(path: str) -> str:
    """Normalize a folder path to ``''`` (root) or ``"a/b/"`` form.

    Leading separators are dropped, runs of separators collapse to one, and
    exactly one trailing separator is kept.
    """
    segments = [s for s in path.split(FOLDER_SEPARATOR) if s]
    if not segments:
        return ""
    return FOLDER_SEPARATOR.join(segments) + FOLDER_SEPARATOR


def build_folder_key(name: str, parent_path: str = "") -> str:
    """Build the key of folder ``name`` inside ``parent_path``.

    Args:
        name: Human folder name. Surrounding whitespace and separators are
            stripped.
        parent_path: Prefix of the containing folder, ``''`` for root.

    Returns:
        ``parent_path + name + "/"``.

    Raises:
        ValidationError: If the name is empty or whitespace only.
    """
    cleaned = (name or "").strip().strip(FOLDER_SEPARATOR).strip()
    if not cleaned:
        raise ValidationError("Folder name cannot be empty")
    return normalize_path(normalize_path(parent_path) + cleaned)


def new_object_key(file_name: str, parent_path: str = "") -> str:
    """Generate a fresh ``{parent_path}{uuid4}-{file_name}`` object key.

    Raises:
        ValidationError: If the file name is empty.
    """
    if not file_name or not file_name.strip():
        raise ValidationError("File name cannot be empty")
    return f"{normalize_path(parent_path)}{uuid.uuid4()}-{file_name}"


def strip_display_name(key: str, parent_path: str = "") -> str:
    """Derive the human-readable name shown for ``key``.

    Removes ``parent_path`` when the key starts with it, then a leading UUID
    prefix if present. Folder keys lose their trailing separator.

    Returns:
        The display name, or ``"Unknown file"`` when nothing is left.
    """
    if not key:
        return UNKNOWN_FILE_NAME
    name = key
    if parent_path and name.startswith(parent_path):
        name = name[len(parent_path):]
    name = _UUID_PREFIX_RE.sub("", name, count=1)
    if is_folder_key(name):
        name = name[: -len(FOLDER_SEPARATOR)]
    return name or UNKNOWN_FILE_NAME


def leaf_segment(key: str) -> str:
    """Return the last path segment of a file key (``"a/b/x.txt"`` -> ``"x.txt"``)."""
    return key.rsplit(FOLDER_SEPARATOR, 1)[-1]


def original_file_name(key: str) -> str:
    """Return the original file name carried by a file key, without the UUID."""
    return _UUID_PREFIX_RE.sub("", leaf_segment(key), count=1)


def replace_prefix(key: str, old_prefix: str, new_prefix: str) -> str:
    """Swap the leading ``old_prefix`` of ``key`` for ``new_prefix``."""
    if not key.startswith(old_prefix):
        raise ValidationError(f"Key {key!r} is not under {old_prefix!r}", key=key)
    return new_prefix + key[len(old_prefix):]


def guess_mime_type(name: str) -> str:
    """Map a file name or URI to a MIME type by extension."""
    if not name or "." not in name:
        return _DEFAULT_MIME_TYPE
    extension = name.rsplit(".", 1)[-1].lower()
    return _MIME_TYPES.get(extension, _DEFAULT_MIME_TYPE)
