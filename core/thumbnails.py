"""Thumbnail derivation and the batch regeneration job."""

from __future__ import annotations

import asyncio
import io
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable

from loguru import logger
from PIL import Image, UnidentifiedImageError

from core.exceptions import BackpackError, ThumbnailError
from core.storage import THUMBNAIL_PREFIX, StorageProvider

IMAGE_EXTENSIONS = ("PNG", "JPG", "JPEG", "GIF", "WEBP", "JFIF", "PJPEG", "PJP")
THUMBNAIL_SIZE = 500

ProgressCallback = Callable[[int, int, str], None]


def is_image_name(name: str) -> bool:
    """Whether ``name`` carries one of the raster image extensions (any case)."""
    extension = PurePosixPath(name).suffix.lstrip(".")
    return extension.upper() in IMAGE_EXTENSIONS


def thumbnail_key(name: str) -> str:
    return f"{THUMBNAIL_PREFIX}{name}"


def make_thumbnail(
    data: bytes,
    size: tuple[int, int] = (THUMBNAIL_SIZE, THUMBNAIL_SIZE),
    image_format: str = "PNG",
) -> bytes:
    """Shrink an encoded image to fit within ``size`` and re-encode it.

    Aspect ratio is preserved and images already inside the box are not
    enlarged. Animated images keep only their first frame.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            if image.mode == "CMYK" or (image_format == "JPEG" and image.mode not in ("RGB", "L")):
                image = image.convert("RGB")
            image.thumbnail(size)
            out = io.BytesIO()
            image.save(out, format=image_format)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise ThumbnailError(f"Unable to decode image: {exc}") from exc
    return out.getvalue()


@dataclass
class ThumbnailReport:
    total: int = 0
    succeeded: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def summary(self) -> dict[str, object]:
        return {
            "total": self.total,
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "errors": [{"name": name, "error": message} for name, message in self.failed],
        }


async def _derive(
    storage: StorageProvider,
    name: str,
    size: tuple[int, int],
    image_format: str,
) -> None:
    data = await storage.get_object(name)
    thumb = await asyncio.to_thread(make_thumbnail, data, size, image_format)
    await storage.put_object(thumbnail_key(name), thumb)


async def regenerate_thumbnails(
    storage: StorageProvider,
    names: Iterable[str],
    *,
    size: int = THUMBNAIL_SIZE,
    image_format: str = "PNG",
    concurrency: int = 1,
    progress: ProgressCallback | None = None,
) -> ThumbnailReport:
    """Rebuild ``thumb/<name>`` for every image-named object in ``names``.

    Names are filtered by extension only. Every thumbnail is recomputed and
    overwritten. A failure on one item (missing object, undecodable bytes,
    rejected write) is logged and recorded in the report, and the batch moves
    on. With the default ``concurrency`` of 1 items run strictly one after
    another; larger values bound the number of items in flight.
    """
    image_names = [name for name in names if is_image_name(name)]
    report = ThumbnailReport(total=len(image_names))
    logger.info("{count} files to generate", count=report.total)

    box = (size, size)
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def process(name: str) -> None:
        async with semaphore:
            try:
                await _derive(storage, name, box, image_format)
            except BackpackError as exc:
                logger.error("Error generating thumbnail for {name}: {error}", name=name, error=exc.message)
                report.failed.append((name, exc.message))
            except Exception as exc:
                logger.exception("Unexpected error generating thumbnail for {name}", name=name)
                report.failed.append((name, str(exc)))
            else:
                report.succeeded.append(name)
            if progress is not None:
                progress(report.processed, report.total, name)

    if concurrency <= 1:
        for name in image_names:
            await process(name)
    else:
        await asyncio.gather(*(process(name) for name in image_names))

    logger.info(
        "Finished generating thumbnails: {ok} succeeded, {failed} failed",
        ok=len(report.succeeded),
        failed=len(report.failed),
    )
    return report


async def delete_with_derivative(storage: StorageProvider, key: str) -> None:
    """Delete an object together with its thumbnail, if any."""
    await storage.delete_object(key)
    await storage.delete_object(thumbnail_key(key))


__all__ = [
    "IMAGE_EXTENSIONS",
    "THUMBNAIL_SIZE",
    "ThumbnailReport",
    "delete_with_derivative",
    "is_image_name",
    "make_thumbnail",
    "regenerate_thumbnails",
    "thumbnail_key",
]
