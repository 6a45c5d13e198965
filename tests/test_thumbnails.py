from __future__ import annotations

import pytest

from core.exceptions import ObjectNotFoundError, StorageError, ThumbnailError
from core.storage.memory import MemoryProvider
from core.thumbnails import (
    delete_with_derivative,
    is_image_name,
    make_thumbnail,
    regenerate_thumbnails,
    thumbnail_key,
)
from tests.utils_uploads import build_image, image_size


@pytest.mark.parametrize(
    "name,expected",
    [
        ("photo.PNG", True),
        ("photo.png", True),
        ("a.b.JpEg", True),
        ("anim.gif", True),
        ("pic.webp", True),
        ("old.jfif", True),
        ("x.pjpeg", True),
        ("x.pjp", True),
        ("scan.tiff", False),
        ("notes.txt", False),
        ("png", False),
        ("archive.png.zip", False),
        ("", False),
    ],
)
def test_is_image_name(name, expected):
    assert is_image_name(name) is expected


def test_thumbnail_key():
    assert thumbnail_key("photo.PNG") == "thumb/photo.PNG"


@pytest.mark.parametrize(
    "width,height,image_format",
    [(1200, 800, "PNG"), (800, 1200, "JPEG"), (2000, 300, "GIF"), (640, 640, "WEBP")],
)
def test_make_thumbnail_fits_box_and_keeps_aspect(width, height, image_format):
    thumb = make_thumbnail(build_image(width, height, image_format))

    assert thumb.startswith(b"\x89PNG")
    out_w, out_h = image_size(thumb)
    assert out_w <= 500 and out_h <= 500
    assert max(out_w, out_h) == 500
    assert abs(out_w / out_h - width / height) < 0.05 * (width / height)


def test_make_thumbnail_does_not_upscale():
    thumb = make_thumbnail(build_image(120, 80))
    assert image_size(thumb) == (120, 80)


def test_make_thumbnail_rejects_garbage():
    with pytest.raises(ThumbnailError):
        make_thumbnail(b"definitely not an image")


@pytest.mark.asyncio()
async def test_pipeline_derives_thumbnail():
    storage = MemoryProvider()
    await storage.put_object("photo.PNG", build_image(1500, 1000))

    report = await regenerate_thumbnails(storage, ["photo.PNG"])

    assert report.succeeded == ["photo.PNG"]
    width, height = image_size(await storage.get_object("thumb/photo.PNG"))
    assert width <= 500 and height <= 500
    assert width / height == pytest.approx(1.5, rel=0.01)


@pytest.mark.asyncio()
async def test_pipeline_survives_missing_objects():
    storage = MemoryProvider()
    await storage.put_object("valid.jpg", build_image(900, 600, "JPEG"))
    await storage.put_object("valid2.png", build_image(300, 700))

    report = await regenerate_thumbnails(storage, ["valid.jpg", "missing.jpg", "valid2.png"])

    assert report.total == 3
    assert report.succeeded == ["valid.jpg", "valid2.png"]
    assert [name for name, _ in report.failed] == ["missing.jpg"]
    assert storage.keys() == ["thumb/valid.jpg", "thumb/valid2.png", "valid.jpg", "valid2.png"]


@pytest.mark.asyncio()
async def test_pipeline_filters_by_extension_only():
    storage = MemoryProvider()
    # PNG bytes behind a non-image name are ignored, text behind an image name fails
    await storage.put_object("image.dat", build_image(10, 10))
    await storage.put_object("fake.png", b"hello")

    report = await regenerate_thumbnails(storage, ["image.dat", "fake.png", "readme.md"])

    assert report.total == 1
    assert [name for name, _ in report.failed] == ["fake.png"]
    assert storage.keys() == ["fake.png", "image.dat"]


class _ReadOnlyStorage(MemoryProvider):
    async def put_object(self, key: str, data: bytes) -> None:
        if key.startswith("thumb/"):
            raise StorageError("bucket is read-only", {"key": key})
        await super().put_object(key, data)


@pytest.mark.asyncio()
async def test_pipeline_records_write_failures():
    storage = _ReadOnlyStorage()
    await storage.put_object("a.png", build_image(20, 20))

    report = await regenerate_thumbnails(storage, ["a.png"])

    assert report.failed == [("a.png", "bucket is read-only")]
    assert report.summary()["failed"] == 1


@pytest.mark.asyncio()
async def test_progress_is_reported_per_item():
    storage = MemoryProvider()
    for name in ("a.png", "b.png"):
        await storage.put_object(name, build_image(50, 50))
    calls = []

    await regenerate_thumbnails(
        storage,
        ["a.png", "skip.txt", "gone.png", "b.png"],
        progress=lambda done, total, name: calls.append((done, total, name)),
    )

    assert calls == [(1, 3, "a.png"), (2, 3, "gone.png"), (3, 3, "b.png")]


@pytest.mark.asyncio()
async def test_rerun_overwrites_thumbnails():
    storage = MemoryProvider()
    await storage.put_object("a.png", build_image(1000, 1000))
    await storage.put_object("thumb/a.png", b"stale")

    await regenerate_thumbnails(storage, ["a.png"])
    await regenerate_thumbnails(storage, ["a.png"])

    assert image_size(await storage.get_object("thumb/a.png")) == (500, 500)


@pytest.mark.asyncio()
async def test_concurrent_batch_isolates_failures():
    storage = MemoryProvider()
    names = [f"img{i}.png" for i in range(6)]
    for name in names[::2]:
        await storage.put_object(name, build_image(700, 350))

    report = await regenerate_thumbnails(storage, names, concurrency=3, size=100)

    assert sorted(report.succeeded) == names[::2]
    assert sorted(name for name, _ in report.failed) == names[1::2]
    assert image_size(await storage.get_object("thumb/img0.png")) == (100, 50)


@pytest.mark.asyncio()
async def test_delete_with_derivative():
    storage = MemoryProvider()
    await storage.put_object("a.png", b"a")
    await storage.put_object("thumb/a.png", b"t")

    await delete_with_derivative(storage, "a.png")
    await delete_with_derivative(storage, "a.png")

    with pytest.raises(ObjectNotFoundError):
        await storage.get_object("thumb/a.png")
    assert storage.keys() == []


@pytest.mark.asyncio()
async def test_repeated_names_are_counted_per_occurrence():
    calls = []

    report = await regenerate_thumbnails(
        MemoryProvider(),
        ["gone.png", "gone.png"],
        progress=lambda done, total, name: calls.append((done, total)),
    )

    assert report.processed == report.total == 2
    assert report.summary()["failed"] == 2
    assert [name for name, _ in report.failed] == ["gone.png", "gone.png"]
    assert calls == [(1, 2), (2, 2)]
