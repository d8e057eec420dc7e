"""Local transport for r2vfs: signed-URL uploads and local file I/O.

Uploads stream a local file to a pre-signed PUT URL with httpx, reporting
cumulative bytes sent after every chunk. A :class:`CancellationToken` shared
with the caller aborts the transfer promptly: the request task is raced
against the token and cancelled as soon as the token fires, and no further
progress is reported.

Downloads are written with the temp-file-then-rename pattern so a crash
never leaves a truncated file under the final name.
"""

import asyncio
import logging
import os
import uuid
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from pathlib import Path

import httpx

from r2vfs.errors import CancelledError, TransportError, ValidationError
from r2vfs.keys import guess_mime_type

logger = logging.getLogger(__name__)

# Streaming chunk size: 64 KB
_CHUNK_SIZE = 64 * 1024

ByteProgress = Callable[[int, int], None]


class CancellationToken:
    """One-shot cooperative cancellation signal.

    The first :meth:`cancel` call triggers the token; later calls are no-ops.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Trigger the token. Returns True only for the triggering call."""
        if self._event.is_set():
            return False
        self._event.set()
        return True

    async def wait(self) -> None:
        """Block until the token is triggered."""
        await self._event.wait()

    def raise_if_cancelled(self, key: str = "") -> None:
        if self._event.is_set():
            raise CancelledError(key=key)


@dataclass(frozen=True)
class LocalFileInfo:
    """Description of a local file about to be uploaded."""

    path: Path
    name: str
    size: int
    mime_type: str


def describe_local_file(path: str | Path) -> LocalFileInfo:
    """Stat a local file and guess its name and MIME type.

    Raises:
        ValidationError: If the path does not exist or is not a file.
    """
    p = Path(path)
    if not p.is_file():
        raise ValidationError(f"File does not exist: {p}")
    return LocalFileInfo(path=p, name=p.name, size=p.stat().st_size, mime_type=guess_mime_type(p.name))


def write_local_file(dest: Path, data: bytes) -> Path:
    """Atomically write ``data`` to ``dest`` (temp file, fsync, rename).

    Returns:
        The destination path.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_name(f"{dest.name}.tmp.{uuid.uuid4().hex[:8]}")
    try:
        fd = os.open(str(tmp), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
        try:
            os.write(fd, data)
            os.fsync(fd)
        finally:
            os.close(fd)
        tmp.replace(dest)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
    return dest


class HttpTransport:
    """Streams local files to pre-signed URLs over httpx.

    Attributes:
        chunk_size: Bytes read from disk and sent per chunk.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        chunk_size: int = _CHUNK_SIZE,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.chunk_size = chunk_size
        self.timeout = timeout
        self._client = client

    async def upload(
        self,
        url: str,
        source: Path,
        headers: dict[str, str] | None = None,
        on_progress: ByteProgress | None = None,
        token: CancellationToken | None = None,
    ) -> int:
        """PUT the contents of ``source`` to ``url``.

        Args:
            url: Pre-signed destination URL.
            source: Local file to send.
            headers: Extra request headers (Content-Type, ...).
            on_progress: Called with ``(bytes_sent, bytes_total)`` once before
                the first chunk and after every chunk handed to the socket.
            token: Cancellation token observed between chunks and while
                waiting for the response.

        Returns:
            Number of bytes sent.

        Raises:
            CancelledError: If the token fired before the response arrived.
            TransportError: On connection failure or a non-2xx response.
        """
        token = token or CancellationToken()
        total = source.stat().st_size
        request_headers = dict(headers or {})
        request_headers["Content-Length"] = str(total)

        def report(sent: int) -> None:
            if on_progress is not None and not token.cancelled:
                on_progress(sent, total)

        async def body() -> AsyncIterator[bytes]:
            sent = 0
            with open(source, "rb") as fh:
                while True:
                    token.raise_if_cancelled()
                    chunk = fh.read(self.chunk_size)
                    if not chunk:
                        break
                    yield chunk
                    sent += len(chunk)
                    report(sent)

        report(0)
        token.raise_if_cancelled()

        if self._client is not None:
            response = await self._send(self._client, url, body(), request_headers, token)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await self._send(client, url, body(), request_headers, token)

        if not 200 <= response.status_code < 300:
            raise TransportError(f"Upload failed, status: {response.status_code}")
        return total

    async def _send(
        self,
        client: httpx.AsyncClient,
        url: str,
        content: AsyncIterator[bytes],
        headers: dict[str, str],
        token: CancellationToken,
    ) -> httpx.Response:
        """Run the PUT request, racing it against the cancellation token."""
        request_task = asyncio.ensure_future(client.put(url, content=content, headers=headers))
        cancel_task = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({request_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()
            # Reached with the request pending when the token fired or the
            # calling task itself was cancelled; the PUT must not outlive us.
            if not request_task.done():
                await self._abandon(request_task)

        if token.cancelled:
            await self._abandon(request_task)
            raise CancelledError()

        try:
            return request_task.result()
        except httpx.HTTPError as exc:
            raise TransportError(f"Upload failed: {exc}") from exc

    @staticmethod
    async def _abandon(request_task: asyncio.Future) -> None:
        """Cancel a request task and wait for it to unwind."""
        request_task.cancel()
        try:
            await request_task
        except asyncio.CancelledError:
            pass
        except (CancelledError, httpx.HTTPError) as exc:
            logger.debug("Upload request ended after cancellation: %s", exc)
