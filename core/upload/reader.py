"""Bounded, single-pass extraction of one uploaded file from a field stream."""

from __future__ import annotations

import io
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from typing import Callable, Protocol

from loguru import logger

from core.exceptions import FieldNotFoundError, PayloadTooLargeError, UploadWriteError


class UploadField(Protocol):
    """One part of a multipart body as seen by the reader."""

    name: str | None
    filename: str | None

    def chunks(self) -> AsyncIterator[bytes]:
        ...


@dataclass
class UploadedFile:
    filename: str
    bytes: bytes
    size: int


async def read_upload(
    fields: AsyncIterable[UploadField],
    size_limit: int,
    field_name: str,
    *,
    buffer_factory: Callable[[], io.BytesIO] = io.BytesIO,
) -> UploadedFile:
    """Read the first file field named ``field_name`` into memory.

    Fields without a filename or a name are treated as plain form fields and
    skipped, as are files under another name. Chunks of the matching field are
    accumulated until the stream ends or the running total passes
    ``size_limit``; in the latter case no further chunk is pulled, so at most
    ``size_limit`` plus one chunk is ever held.

    Raises:
        PayloadTooLargeError: The field is larger than ``size_limit`` bytes.
        UploadWriteError: Writing to the in-memory buffer failed.
        FieldNotFoundError: The stream ended without a matching field.
    """
    async for field in fields:
        if not field.filename or not field.name:
            continue
        if field.name != field_name:
            continue

        buffer = buffer_factory()
        size = 0
        async for chunk in field.chunks():
            size += len(chunk)
            if size > size_limit:
                logger.info(
                    "Rejecting upload {filename}: more than {limit} bytes",
                    filename=field.filename,
                    limit=size_limit,
                )
                raise PayloadTooLargeError(size_limit)
            try:
                buffer.write(chunk)
            except (OSError, ValueError, MemoryError) as exc:
                raise UploadWriteError(exc) from exc

        return UploadedFile(filename=field.filename, bytes=buffer.getvalue(), size=size)

    raise FieldNotFoundError(field_name)


__all__ = ["UploadField", "UploadedFile", "read_upload"]
