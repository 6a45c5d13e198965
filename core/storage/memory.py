from __future__ import annotations

import asyncio

from core.exceptions import ObjectNotFoundError


class MemoryProvider:
    """Dictionary-backed provider, mostly useful in tests."""

    def __init__(self) -> None:
        self._objects: dict[str, bytes] = {}
        self._lock = asyncio.Lock()

    async def put_object(self, key: str, data: bytes) -> None:
        async with self._lock:
            self._objects[key] = bytes(data)

    async def get_object(self, key: str) -> bytes:
        async with self._lock:
            try:
                return self._objects[key]
            except KeyError:
                raise ObjectNotFoundError(f"No object found at {key}", {"key": key, "backend": "memory"}) from None

    async def delete_object(self, key: str) -> None:
        async with self._lock:
            self._objects.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._objects)


__all__ = ["MemoryProvider"]
