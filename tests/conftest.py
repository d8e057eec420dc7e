"""Shared pytest fixtures for r2vfs tests.

Adapter tests run against the in-memory object store. Uploads go through
``FakeTransport``, which writes straight into that store and replays a
scripted sequence of byte counts as progress, so tests control exactly what
the adapter sees.
"""

import logging
from pathlib import Path
from urllib.parse import unquote, urlsplit

import pytest

from r2vfs.config import R2VfsConfig, TransferConfig
from r2vfs.filesystem import VirtualFileSystem
from r2vfs.store.memory import MemoryObjectStore
from r2vfs.transfer import CancellationToken


class FakeTransport:
    """Stands in for HttpTransport on top of a MemoryObjectStore.

    Attributes:
        steps: Cumulative byte counts reported as progress (default: 0 then
            the full size).
        cancel_after: Index into ``steps`` after which the token is
            triggered, simulating a user pressing cancel mid-transfer.
        fail_with: Exception raised instead of storing the object.
        calls: Recorded (url, headers) pairs.
    """

    def __init__(
        self,
        store: MemoryObjectStore,
        steps: list[int] | None = None,
        cancel_after: int | None = None,
        fail_with: Exception | None = None,
    ) -> None:
        self.store = store
        self.steps = steps
        self.cancel_after = cancel_after
        self.fail_with = fail_with
        self.calls: list[tuple[str, dict]] = []

    async def upload(self, url, source, headers=None, on_progress=None, token=None):
        token = token or CancellationToken()
        self.calls.append((url, dict(headers or {})))
        data = Path(source).read_bytes()
        total = len(data) if self.steps is None else self.steps[-1]
        steps = self.steps if self.steps is not None else [0, total]

        for i, sent in enumerate(steps):
            token.raise_if_cancelled()
            if on_progress is not None and not token.cancelled:
                on_progress(sent, total)
            if self.cancel_after is not None and i == self.cancel_after:
                token.cancel()
        token.raise_if_cancelled()

        if self.fail_with is not None:
            raise self.fail_with

        key = unquote(urlsplit(url).path.split("/", 2)[2])
        await self.store.put_object(key, data, content_type=(headers or {}).get("Content-Type", ""))
        return len(data)


@pytest.fixture
def store() -> MemoryObjectStore:
    return MemoryObjectStore(bucket="test-bucket", base_url="https://r2.test/")


@pytest.fixture
def config(tmp_path) -> R2VfsConfig:
    return R2VfsConfig(transfer=TransferConfig(download_dir=str(tmp_path / "downloads")))


@pytest.fixture
def transport(store) -> FakeTransport:
    return FakeTransport(store)


@pytest.fixture
def fs(store, transport, config) -> VirtualFileSystem:
    return VirtualFileSystem(store, transport=transport, config=config)


@pytest.fixture
def local_file(tmp_path):
    """Factory writing a local file of ``size`` bytes and returning its path."""

    def _make(name: str = "cat.png", size: int = 1000) -> Path:
        path = tmp_path / "src" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(bytes(i % 256 for i in range(size)))
        return path

    return _make


@pytest.fixture
def pkg_logger():
    """The ``r2vfs`` logger, restored to its prior state after the test."""
    pkg = logging.getLogger("r2vfs")
    saved = (pkg.handlers[:], pkg.level, pkg.propagate)
    yield pkg
    pkg.handlers[:] = saved[0]
    pkg.setLevel(saved[1])
    pkg.propagate = saved[2]
