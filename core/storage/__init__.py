"""Storage abstraction (S3-compatible object store or local filesystem)."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from loguru import logger

from core.exceptions import ConfigurationError
from core.settings import StorageSettings

THUMBNAIL_PREFIX = "thumb/"


class StorageProvider(Protocol):
    """Backend contract shared by every storage implementation.

    Keys are flat strings chosen by the caller. Writing a key replaces the
    previous object. ``get_object`` raises ``ObjectNotFoundError`` for a missing
    key, and ``delete_object`` succeeds when the key is already gone. Any other
    backend failure surfaces as ``StorageError``.
    """

    async def put_object(self, key: str, data: bytes) -> None:
        ...

    async def get_object(self, key: str) -> bytes:
        ...

    async def delete_object(self, key: str) -> None:
        ...


def prepare_local_root(root: Path) -> None:
    """Create the local storage root and its thumbnail directory."""
    if not root.exists():
        logger.info("Creating storage directory {path}", path=str(root))
    (root / THUMBNAIL_PREFIX.rstrip("/")).mkdir(parents=True, exist_ok=True)


def create_storage_provider(settings: StorageSettings) -> StorageProvider:
    """Build the storage backend selected by configuration.

    The returned provider is meant to be created once per process and passed
    to every request handler or job that needs it.
    """
    if settings.provider == "local":
        from core.storage.local import LocalProvider

        return LocalProvider(settings.local.path)

    if settings.provider == "s3":
        if settings.s3 is None:
            raise ConfigurationError("storage.s3 section is required for the s3 provider")
        from core.storage.s3 import S3Provider

        s3 = settings.s3
        return S3Provider(
            bucket=s3.bucket,
            access_key=s3.access_key,
            secret_key=s3.secret_key,
            region=s3.region,
            endpoint_url=s3.endpoint_url,
            connect_timeout=s3.connect_timeout,
            read_timeout=s3.read_timeout,
            max_attempts=s3.max_attempts,
        )

    if settings.provider == "memory":
        from core.storage.memory import MemoryProvider

        return MemoryProvider()

    raise ConfigurationError(f"Unknown storage provider: {settings.provider}", {"provider": settings.provider})


__all__ = ["THUMBNAIL_PREFIX", "StorageProvider", "create_storage_provider", "prepare_local_root"]
