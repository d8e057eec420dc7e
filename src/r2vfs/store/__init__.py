"""Object store implementations for r2vfs."""

from typing import TYPE_CHECKING

from r2vfs.store.backend import ObjectStore

if TYPE_CHECKING:
    from r2vfs.config import StoreConfig

__all__ = [
    "create_object_store",
    "ObjectStore",
]


def create_object_store(config: "StoreConfig") -> ObjectStore:
    """Create an object store instance based on configuration.

    Args:
        config: The store configuration section.

    Returns:
        An uninitialized ObjectStore (call ``await store.init()``).

    Raises:
        ValueError: If the backend is unknown or required settings are missing.
    """
    if config.backend == "memory":
        from r2vfs.store.memory import MemoryObjectStore

        return MemoryObjectStore(bucket=config.bucket or "memory")

    if config.backend == "r2":
        if not config.bucket:
            raise ValueError("R2 store requires store.bucket to be set")
        from r2vfs.store.r2 import R2ObjectStore

        return R2ObjectStore.from_config(config)

    raise ValueError(f"Unknown store backend: {config.backend}")
