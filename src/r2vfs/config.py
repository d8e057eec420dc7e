"""Configuration loading and Pydantic models for r2vfs."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

_MIB = 1024 * 1024
_GIB = 1024 * _MIB


class StoreConfig(BaseModel):
    """Object store connection settings.

    ``backend`` selects ``r2`` (any S3-compatible endpoint) or ``memory``.
    """

    backend: str = "r2"
    endpoint_url: str = ""
    region: str = "auto"
    access_key_id: str = ""
    secret_access_key: str = ""
    bucket: str = ""
    use_path_style: bool = True


class TransferConfig(BaseModel):
    """Upload and download settings."""

    presign_expiry_seconds: int = 3600
    chunk_size: int = 64 * 1024
    max_upload_bytes: int = 100 * _MIB
    download_dir: str = "./downloads"
    timeout_seconds: float = 60.0


class FilesystemConfig(BaseModel):
    """Virtual filesystem behaviour."""

    aggregate_cache: bool = False
    allocated_bytes: int = 10 * _GIB


class LoggingConfig(BaseModel):
    """Log level and output format (``text`` or ``json``) for the ``r2vfs`` logger.

    With ``install_handler`` off, r2vfs only sets the level and leaves
    handlers to the host application.
    """

    level: str = "INFO"
    format: str = "text"
    install_handler: bool = True


class R2VfsConfig(BaseModel):
    """Top-level r2vfs configuration."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    filesystem: FilesystemConfig = Field(default_factory=FilesystemConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _parse_store(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the store section from YAML data.

    Handles nested structure: store.credentials.access_key_id -> access_key_id
    """
    if data is None:
        return {}
    result: dict[str, Any] = {
        "backend": data.get("backend", "r2"),
        "endpoint_url": data.get("endpoint_url", ""),
        "region": data.get("region", "auto"),
        "bucket": data.get("bucket", ""),
        "use_path_style": data.get("use_path_style", True),
    }
    credentials = data.get("credentials")
    if isinstance(credentials, dict):
        result["access_key_id"] = credentials.get("access_key_id", "")
        result["secret_access_key"] = credentials.get("secret_access_key", "")
    return result


def _parse_transfer(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the transfer section from YAML data."""
    if data is None:
        return {}
    defaults = TransferConfig()
    return {
        "presign_expiry_seconds": data.get("presign_expiry_seconds", defaults.presign_expiry_seconds),
        "chunk_size": data.get("chunk_size", defaults.chunk_size),
        "max_upload_bytes": data.get("max_upload_bytes", defaults.max_upload_bytes),
        "download_dir": data.get("download_dir", defaults.download_dir),
        "timeout_seconds": data.get("timeout_seconds", defaults.timeout_seconds),
    }


def _parse_filesystem(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the filesystem section from YAML data."""
    if data is None:
        return {}
    defaults = FilesystemConfig()
    return {
        "aggregate_cache": data.get("aggregate_cache", defaults.aggregate_cache),
        "allocated_bytes": data.get("allocated_bytes", defaults.allocated_bytes),
    }


def _parse_logging(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the logging section from YAML data."""
    if data is None:
        return {}
    return {
        "level": data.get("level", "INFO"),
        "format": data.get("format", "text"),
        "install_handler": data.get("install_handler", True),
    }


def load_config(path: Path) -> R2VfsConfig:
    """Load an R2VfsConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated R2VfsConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return R2VfsConfig(
        store=StoreConfig(**_parse_store(raw.get("store"))),
        transfer=TransferConfig(**_parse_transfer(raw.get("transfer"))),
        filesystem=FilesystemConfig(**_parse_filesystem(raw.get("filesystem"))),
        logging=LoggingConfig(**_parse_logging(raw.get("logging"))),
    )
