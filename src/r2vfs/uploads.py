"""Sequential upload queue.

Uploads run strictly one at a time in FIFO order: the next task starts only
after the previous one has settled (completed, cancelled, or failed). A
failure or cancellation is recorded on its task and does not stop the
queue; :meth:`UploadQueue.cancel_all` is the way to abandon the remainder.
"""

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from r2vfs.errors import CancelledError, R2VfsError, ValidationError
from r2vfs.filesystem import ProgressCallback, VirtualFileSystem
from r2vfs.models import UploadState
from r2vfs.transfer import CancellationToken, describe_local_file

logger = logging.getLogger(__name__)


@dataclass
class UploadTask:
    """One queued upload.

    Attributes:
        source: Local file to send.
        name: Original file name used to build the object key.
        path: Destination folder prefix.
        size: Size of the source in bytes when it was queued.
        on_progress: Percentage callback forwarded to the transfer.
        token: Cancellation token owned by this task.
        state: Current lifecycle state.
        progress: Last reported percentage.
        target_key: Object key, set once the upload completed.
        error: The error that ended the task, if it did not complete.
    """

    source: Path
    name: str
    path: str = ""
    size: int = 0
    on_progress: ProgressCallback | None = None
    token: CancellationToken = field(default_factory=CancellationToken)
    state: UploadState = UploadState.IDLE
    progress: float = 0.0
    target_key: str | None = None
    error: R2VfsError | None = None


class UploadQueue:
    """FIFO queue processing one upload at a time.

    Attributes:
        fs: The filesystem uploads go through.
        max_upload_bytes: Files larger than this are rejected at enqueue.
    """

    def __init__(
        self,
        fs: VirtualFileSystem,
        max_upload_bytes: int | None = None,
        on_settled: Callable[[UploadTask], None] | None = None,
    ) -> None:
        self.fs = fs
        self.max_upload_bytes = (
            max_upload_bytes if max_upload_bytes is not None else fs.config.transfer.max_upload_bytes
        )
        self.on_settled = on_settled
        self._pending: deque[UploadTask] = deque()
        self._current: UploadTask | None = None
        self._running = False

    @property
    def current(self) -> UploadTask | None:
        return self._current

    @property
    def pending(self) -> list[UploadTask]:
        return list(self._pending)

    def enqueue(
        self,
        source: str | Path,
        name: str | None = None,
        path: str = "",
        on_progress: ProgressCallback | None = None,
    ) -> UploadTask:
        """Queue a local file for upload.

        Raises:
            ValidationError: If the file is missing or exceeds the size limit.
        """
        info = describe_local_file(source)
        if self.max_upload_bytes and info.size > self.max_upload_bytes:
            raise ValidationError(
                f"{info.name} is {info.size} bytes, over the {self.max_upload_bytes} byte limit"
            )
        task = UploadTask(
            source=info.path,
            name=name or info.name,
            path=path,
            size=info.size,
            on_progress=on_progress,
        )
        self._pending.append(task)
        return task

    async def run(self) -> list[UploadTask]:
        """Process queued tasks until the queue is empty.

        Only one call drains the queue at a time. A call made while another
        is running returns an empty list at once; the running call also
        picks up tasks enqueued after it started.

        Returns:
            Every task processed by this call, in order, each in a terminal state.
        """
        if self._running:
            logger.debug("Upload queue already running, %d pending", len(self._pending))
            return []
        self._running = True
        processed: list[UploadTask] = []
        try:
            while self._pending:
                task = self._pending.popleft()
                self._current = task
                try:
                    await self._run_task(task)
                finally:
                    self._current = None
                processed.append(task)
                if self.on_settled is not None:
                    self.on_settled(task)
        finally:
            self._running = False
        return processed

    async def _run_task(self, task: UploadTask) -> None:
        def progress(percent: float) -> None:
            task.progress = percent
            if task.on_progress is not None:
                task.on_progress(percent)

        def set_state(state: UploadState) -> None:
            task.state = state

        if task.token.cancelled:
            task.state = UploadState.CANCELLED
            task.error = CancelledError(key=task.name)
            return

        try:
            task.target_key = await self.fs.upload_file(
                task.source,
                task.name,
                on_progress=progress,
                token=task.token,
                path=task.path,
                on_state=set_state,
            )
        except CancelledError as exc:
            task.error = exc
            logger.info("Upload of %s cancelled", task.name)
        except R2VfsError as exc:
            task.error = exc
            if not task.state.is_terminal:
                task.state = UploadState.FAILED
            logger.warning("Upload of %s failed: %s", task.name, exc.message)

    def cancel_current(self) -> bool:
        """Cancel the in-flight upload. Returns False if nothing was running."""
        if self._current is None:
            return False
        return self._current.token.cancel()

    def cancel_all(self) -> None:
        """Cancel the in-flight upload and drop every pending one."""
        self.cancel_current()
        while self._pending:
            task = self._pending.popleft()
            task.token.cancel()
            task.state = UploadState.CANCELLED
            task.error = CancelledError(key=task.name)
            if self.on_settled is not None:
                self.on_settled(task)
