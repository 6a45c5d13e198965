from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath

from loguru import logger

from core.exceptions import ObjectNotFoundError, StorageError


class LocalProvider:
    """Stores objects as files under a root directory.

    The root and its ``thumb/`` subdirectory must already exist, see
    ``core.storage.prepare_local_root``. Parent directories are never created
    on write.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        # Keys map to exactly one file; "./a" or "thumb//a" would alias "a" and "thumb/a"
        if not key or PurePosixPath(key).is_absolute() or ".." in parts or "\\" in key or "/".join(parts) != key:
            raise StorageError(f"Invalid storage key: {key!r}", {"key": key, "backend": "local"})
        return self.root.joinpath(*parts)

    async def put_object(self, key: str, data: bytes) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as exc:
            logger.error("Failed to write {key}: {error}", key=key, error=str(exc))
            raise StorageError(f"Unable to write {key}: {exc}", {"key": key, "backend": "local"}) from exc

    async def get_object(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise ObjectNotFoundError(f"No object found at {key}", {"key": key, "backend": "local"}) from exc
        except OSError as exc:
            raise StorageError(f"Unable to read {key}: {exc}", {"key": key, "backend": "local"}) from exc

    async def delete_object(self, key: str) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as exc:
            raise StorageError(f"Unable to delete {key}: {exc}", {"key": key, "backend": "local"}) from exc


__all__ = ["LocalProvider"]
