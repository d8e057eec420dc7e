"""Virtual filesystem over a flat object store.

Folders do not exist in the store. A folder is a key prefix ending in
``/``, optionally materialised by a zero-byte marker object with exactly
that key. Everything here translates folder-oriented operations into
list/put/get/copy/delete calls on an :class:`~r2vfs.store.backend.ObjectStore`.

Consistency model:
    - Each public call is independent. Callers re-list after a mutation to
      observe the new state; nothing is pushed to them.
    - Move and rename are copy + verify + delete per object. A failure
      between copy and delete leaves the object under both keys; a failure
      during copy or verification leaves the source untouched.
    - Recursive delete and rename process files first, then sub-folders,
      then the folder marker last. They are not atomic: an error stops the
      walk and surfaces as-is, with the already completed steps kept.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from r2vfs import metrics
from r2vfs.config import R2VfsConfig
from r2vfs.errors import (
    CancelledError,
    ListError,
    NotFoundError,
    R2VfsError,
    TransportError,
    ValidationError,
)
from r2vfs.keys import (
    FOLDER_SEPARATOR,
    build_folder_key,
    guess_mime_type,
    is_folder_key,
    leaf_segment,
    new_object_key,
    normalize_path,
    original_file_name,
    replace_prefix,
    strip_display_name,
)
from r2vfs.logging_config import configure_logging
from r2vfs.models import FileEntry, FolderEntry, Listing, ObjectInfo, UploadState
from r2vfs.stats import StorageStats, calculate_storage_stats
from r2vfs.store import create_object_store
from r2vfs.store.backend import ObjectStore
from r2vfs.transfer import CancellationToken, HttpTransport, write_local_file

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
StateCallback = Callable[[UploadState], None]


class VirtualFileSystem:
    """Folder-oriented operations on top of an :class:`ObjectStore`.

    Attributes:
        store: The object store all keys live in.
        transport: Transport used to stream uploads to pre-signed URLs.
        config: Settings for transfers and aggregation.
    """

    def __init__(
        self,
        store: ObjectStore,
        transport: HttpTransport | None = None,
        config: R2VfsConfig | None = None,
    ) -> None:
        self.store = store
        self.config = config or R2VfsConfig()
        self.transport = transport or HttpTransport(
            chunk_size=self.config.transfer.chunk_size,
            timeout=self.config.transfer.timeout_seconds,
        )
        # prefix -> aggregated folder entry (only when aggregate_cache is on)
        self._aggregates: dict[str, FolderEntry] = {}

    @classmethod
    def from_config(cls, config: R2VfsConfig) -> "VirtualFileSystem":
        """Build a filesystem and its store from configuration.

        Applies the ``logging`` section first, so store setup is logged in
        the configured format.
        """
        configure_logging(config.logging)
        return cls(store=create_object_store(config.store), config=config)

    async def __aenter__(self) -> "VirtualFileSystem":
        await self.store.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.store.close()

    # -- Error boundary --------------------------------------------------------

    @contextmanager
    def _operation(self, name: str, key: str = "", list_errors: bool = False) -> Iterator[None]:
        """Log, count and translate store errors for one public operation.

        ``FileNotFoundError`` becomes :class:`NotFoundError`; any other
        non-r2vfs exception becomes :class:`ListError` (listings) or
        :class:`TransportError`, chained to the original.
        """
        start = time.monotonic()
        extra = {"operation": name, "key": key}
        try:
            yield
        except CancelledError:
            metrics.record_operation(name, "cancelled")
            logger.info("%s cancelled: %s", name, key, extra=extra)
            raise
        except R2VfsError as exc:
            metrics.record_operation(name, "error")
            logger.error("%s failed for %r: %s", name, key, exc.message, extra=extra)
            raise
        except FileNotFoundError as exc:
            metrics.record_operation(name, "error")
            logger.error("%s failed for %r: not found", name, key, extra=extra)
            raise NotFoundError(key) from exc
        except Exception as exc:
            metrics.record_operation(name, "error")
            logger.exception("%s failed for %r", name, key, extra=extra)
            if list_errors:
                raise ListError(f"Failed to list {key!r}: {exc}", key=key) from exc
            raise TransportError(f"{name} failed for {key!r}: {exc}", key=key) from exc
        else:
            metrics.record_operation(name, "ok")
            extra["duration_ms"] = round((time.monotonic() - start) * 1000, 2)
            logger.debug("%s ok: %s", name, key, extra=extra)

    def _invalidate(self) -> None:
        self._aggregates.clear()

    # -- Listing ---------------------------------------------------------------

    async def list_files(self, path: str = "") -> Listing:
        """List the files and sub-folders directly under ``path``.

        Sub-folders carry totals over their whole sub-tree. Entries keep the
        order the store returned them in.

        Raises:
            ListError: If any store listing fails.
        """
        prefix = normalize_path(path)
        with self._operation("list_files", prefix, list_errors=True):
            result = await self.store.list_objects(prefix=prefix, delimiter=FOLDER_SEPARATOR)
            files = [
                FileEntry(key=obj.key, size=obj.size, last_modified=obj.last_modified)
                for obj in result.contents
                if obj.key and not is_folder_key(obj.key)
            ]
            tasks = [
                asyncio.ensure_future(self._aggregate(cp, prefix))
                for cp in result.common_prefixes
            ]
            try:
                folders = list(await asyncio.gather(*tasks))
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
        if self.config.filesystem.aggregate_cache:
            for entry in folders:
                self._aggregates[entry.id] = entry
        return Listing(files=files, folders=folders)

    async def _aggregate(self, folder_prefix: str, parent_path: str) -> FolderEntry:
        """Summarize every file below ``folder_prefix`` at any depth.

        The folder's ``last_modified`` is the most recent descendant
        timestamp, or None when it holds no files.
        """
        if self.config.filesystem.aggregate_cache and folder_prefix in self._aggregates:
            return self._aggregates[folder_prefix]

        result = await self.store.list_objects(prefix=folder_prefix)
        file_count = 0
        total_size = 0
        last_modified = None
        for obj in result.contents:
            if is_folder_key(obj.key):
                continue
            file_count += 1
            total_size += obj.size or 0
            if obj.last_modified is not None and (
                last_modified is None or obj.last_modified > last_modified
            ):
                last_modified = obj.last_modified

        return FolderEntry(
            id=folder_prefix,
            name=strip_display_name(folder_prefix, parent_path),
            file_count=file_count,
            total_size=total_size,
            last_modified=last_modified,
        )

    async def storage_stats(self, path: str = "") -> StorageStats:
        """Usage statistics for every file under ``path`` (whole bucket by default)."""
        prefix = normalize_path(path)
        with self._operation("storage_stats", prefix, list_errors=True):
            result = await self.store.list_objects(prefix=prefix)
        return calculate_storage_stats(
            result.contents, allocated_bytes=self.config.filesystem.allocated_bytes
        )

    # -- Folders ---------------------------------------------------------------

    async def create_folder(self, name: str, path: str = "") -> str:
        """Create folder ``name`` inside ``path`` by writing an empty marker.

        An existing folder of the same name is overwritten silently.

        Returns:
            The folder key.

        Raises:
            ValidationError: If the name is empty.
        """
        key = build_folder_key(name, path)
        with self._operation("create_folder", key):
            await self.store.put_object(key, b"", content_type="application/x-directory")
        self._invalidate()
        return key

    # -- Delete ----------------------------------------------------------------

    async def delete_file(self, key: str) -> None:
        """Delete a file, or a folder and everything below it.

        Raises:
            ValidationError: If the key is empty.
        """
        if not key:
            raise ValidationError("Key is undefined or empty")
        with self._operation("delete", key):
            try:
                if is_folder_key(key):
                    await self._delete_tree(key)
                else:
                    await self.store.delete_object(key)
            finally:
                self._invalidate()

    async def _delete_tree(self, prefix: str) -> None:
        """Files first, then each sub-folder depth first, then the marker."""
        listing = await self.store.list_objects(prefix=prefix, delimiter=FOLDER_SEPARATOR)
        for obj in listing.contents:
            if not is_folder_key(obj.key):
                await self.store.delete_object(obj.key)
        for sub_prefix in listing.common_prefixes:
            await self._delete_tree(sub_prefix)
        await self.store.delete_object(prefix)
        logger.debug("Deleted folder %s", prefix)

    # -- Move / rename ---------------------------------------------------------

    async def move_file(self, source_key: str, target_folder: str) -> str:
        """Move a file (or folder) into ``target_folder``.

        The leaf name, including its UUID prefix, is kept so the moved
        object cannot collide with another file of the same original name.
        This deliberately departs from rebuilding the key from the bare
        original name.

        Returns:
            The new key.

        Raises:
            ValidationError: If the source key is empty, or a folder would be
                moved into itself.
            NotFoundError: If the source does not exist.
        """
        if not source_key:
            raise ValidationError("Source key is undefined or empty")
        target = normalize_path(target_folder)

        if is_folder_key(source_key):
            folder_name = source_key[: -len(FOLDER_SEPARATOR)].rsplit(FOLDER_SEPARATOR, 1)[-1]
            new_key = target + folder_name + FOLDER_SEPARATOR
            if new_key.startswith(source_key) and new_key != source_key:
                raise ValidationError("Cannot move a folder into itself", key=source_key)
        else:
            new_key = target + leaf_segment(source_key)

        if new_key == source_key:
            return source_key

        with self._operation("move", source_key):
            try:
                if is_folder_key(source_key):
                    await self._rename_tree(source_key, new_key)
                else:
                    await self._relocate(source_key, new_key)
            finally:
                self._invalidate()
        logger.info("Moved %s -> %s", source_key, new_key)
        return new_key

    async def rename(self, old_key: str, new_key: str) -> str:
        """Rename a file or a folder (and everything below it).

        Both keys must be of the same kind: folder keys end with ``/`` and
        file keys do not.

        Returns:
            The new key.

        Raises:
            ValidationError: On empty keys, a kind mismatch, or renaming a
                folder into its own sub-tree.
            NotFoundError: If the file does not exist.
        """
        if not old_key or not new_key:
            raise ValidationError("Keys must not be empty")
        if is_folder_key(old_key) != is_folder_key(new_key):
            raise ValidationError("Cannot rename between a file and a folder key", key=old_key)
        if old_key == new_key:
            return new_key
        if is_folder_key(old_key) and new_key.startswith(old_key):
            raise ValidationError("Cannot rename a folder into itself", key=old_key)

        with self._operation("rename", old_key):
            try:
                if is_folder_key(old_key):
                    await self._rename_tree(old_key, new_key)
                else:
                    await self._relocate(old_key, new_key)
            finally:
                self._invalidate()
        logger.info("Renamed %s -> %s", old_key, new_key)
        return new_key

    async def _rename_tree(self, old_prefix: str, new_prefix: str) -> None:
        """Relocate files, then sub-folders, then the marker (if any) last."""
        listing = await self.store.list_objects(prefix=old_prefix, delimiter=FOLDER_SEPARATOR)
        has_marker = False
        for obj in listing.contents:
            if obj.key == old_prefix:
                has_marker = True
                continue
            if not is_folder_key(obj.key):
                await self._relocate(obj.key, replace_prefix(obj.key, old_prefix, new_prefix))
        for sub_prefix in listing.common_prefixes:
            await self._rename_tree(sub_prefix, replace_prefix(sub_prefix, old_prefix, new_prefix))
        if has_marker:
            await self._relocate(old_prefix, new_prefix)

    async def _relocate(self, src_key: str, dst_key: str) -> None:
        """Copy, verify the copy, then delete the source.

        Raises:
            FileNotFoundError: If the source does not exist.
            TransportError: If the copy does not match the source.
        """
        source = await self.store.head_object(src_key)
        await self.store.copy_object(src_key, dst_key)
        copied = await self.store.head_object(dst_key)
        if not _same_content(source, copied):
            raise TransportError(
                f"Copy of {src_key!r} to {dst_key!r} does not match the source; "
                "source left in place",
                key=src_key,
            )
        await self.store.delete_object(src_key)

    # -- Transfers -------------------------------------------------------------

    async def upload_file(
        self,
        source: str | Path,
        destination_name: str,
        on_progress: ProgressCallback | None = None,
        token: CancellationToken | None = None,
        path: str = "",
        on_state: StateCallback | None = None,
    ) -> str:
        """Upload a local file under a fresh ``{path}{uuid}-{name}`` key.

        ``on_progress`` receives percentages that never decrease, starting
        at 0 and ending with exactly one 100 once the store has accepted the
        object. Nothing is reported after the token fires.

        Returns:
            The new object key.

        Raises:
            ValidationError: If the destination name is empty.
            CancelledError: If ``token`` fired before the upload finished.
            TransportError: If the transfer failed.
        """
        token = token or CancellationToken()
        key = new_object_key(destination_name, path)
        content_type = guess_mime_type(destination_name)
        source_path = Path(source)
        reporter = _ProgressReporter(on_progress, token)

        def set_state(state: UploadState) -> None:
            if on_state is not None:
                on_state(state)

        with self._operation("upload", key):
            try:
                token.raise_if_cancelled(key)
                set_state(UploadState.REQUESTING_AUTHORIZATION)
                url = await self.store.generate_presigned_url(
                    "PUT",
                    key,
                    expires_in=self.config.transfer.presign_expiry_seconds,
                    content_type=content_type,
                )
                token.raise_if_cancelled(key)
                set_state(UploadState.TRANSFERRING)
                sent = await self.transport.upload(
                    url,
                    source_path,
                    headers={"Content-Type": content_type},
                    on_progress=reporter,
                    token=token,
                )
            except CancelledError as exc:
                set_state(UploadState.CANCELLED)
                await self._discard_partial(key)
                if not exc.key:
                    raise CancelledError(key=key) from exc
                raise
            except BaseException:
                set_state(UploadState.FAILED)
                raise
            reporter.complete()
            set_state(UploadState.COMPLETED)
            metrics.record_uploaded(sent)
        self._invalidate()
        logger.info("Uploaded %s (%d bytes) as %s", source_path.name, sent, key)
        return key

    async def _discard_partial(self, key: str) -> None:
        """Best-effort removal of an upload that raced its cancellation."""
        try:
            await self.store.delete_object(key)
        except Exception:
            logger.warning("Failed to discard cancelled upload %s", key)

    async def download_file(
        self,
        key: str,
        file_name: str | None = None,
        destination_dir: str | Path | None = None,
    ) -> Path:
        """Fetch an object and write it to ``destination_dir / file_name``.

        ``file_name`` defaults to the original file name carried by the key.

        Raises:
            ValidationError: If the key is empty or names a folder, or the
                file name is not a single path component.
            NotFoundError: If the key does not exist.
        """
        if not key or is_folder_key(key):
            raise ValidationError("Key must name a file", key=key)
        name = file_name or original_file_name(key)
        if name in (".", "..") or "/" in name or "\\" in name:
            raise ValidationError(f"Invalid local file name: {name!r}", key=key)
        dest = Path(destination_dir or self.config.transfer.download_dir) / name
        with self._operation("download", key):
            data = await self.store.get_object(key)
            write_local_file(dest, data)
        metrics.record_downloaded(len(data))
        logger.info("Downloaded %s to %s", key, dest)
        return dest

    async def get_presigned_url(self, key: str, expires_in: int | None = None) -> str:
        """Issue a time-limited read URL for an existing object.

        Raises:
            ValidationError: If the key is empty.
            NotFoundError: If the key does not exist.
        """
        if not key:
            raise ValidationError("Key is undefined or empty")
        with self._operation("presign", key):
            await self.store.head_object(key)
            return await self.store.generate_presigned_url(
                "GET",
                key,
                expires_in=expires_in or self.config.transfer.presign_expiry_seconds,
            )


def _same_content(source: ObjectInfo, copied: ObjectInfo) -> bool:
    if source.size != copied.size:
        return False
    # Multipart ETags ("<md5>-<n>") differ between an original and its copy
    if source.etag and copied.etag and "-" not in source.etag and "-" not in copied.etag:
        return source.etag == copied.etag
    return True


class _ProgressReporter:
    """Turns byte progress into non-decreasing percentages.

    100 is withheld until :meth:`complete` so a transfer whose last byte
    left but whose response never arrived does not look finished.
    """

    def __init__(self, callback: ProgressCallback | None, token: CancellationToken) -> None:
        self._callback = callback
        self._token = token
        self._last: float | None = None

    def _emit(self, percent: float) -> None:
        if self._callback is None or self._token.cancelled:
            return
        if self._last is not None and percent <= self._last:
            return
        self._last = percent
        self._callback(percent)

    def __call__(self, sent: int, total: int) -> None:
        percent = sent / total * 100 if total > 0 else 0.0
        if percent < 100:
            self._emit(percent)

    def complete(self) -> None:
        self._emit(100.0)
