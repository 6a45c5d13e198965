from __future__ import annotations

import pytest

from core.exceptions import InvalidMultipartError, PayloadTooLargeError
from core.upload import MultipartFieldStream, read_upload
from tests.utils_uploads import CONTENT_TYPE, body_stream, multipart_body


async def _collect(stream: MultipartFieldStream) -> list[tuple[str | None, str | None, bytes]]:
    collected = []
    async for field in stream:
        data = b"".join([chunk async for chunk in field.chunks()])
        collected.append((field.name, field.filename, data))
    return collected


@pytest.mark.asyncio()
@pytest.mark.parametrize("chunk_size", [1, 7, 64, 65536])
async def test_fields_are_parsed_across_chunk_boundaries(chunk_size):
    body = multipart_body(
        [
            ("title", None, b"holiday"),
            ("uploadFile", "photo.png", b"\x89PNG\r\n\x1a\n" + b"\x00" * 300),
        ]
    )
    stream = MultipartFieldStream(CONTENT_TYPE, body_stream(body, chunk_size))

    fields = await _collect(stream)

    assert fields == [
        ("title", None, b"holiday"),
        ("uploadFile", "photo.png", b"\x89PNG\r\n\x1a\n" + b"\x00" * 300),
    ]


@pytest.mark.asyncio()
async def test_abandoned_field_is_skipped():
    body = multipart_body(
        [
            ("first", "a.bin", b"a" * 500),
            ("second", "b.bin", b"second-content"),
        ]
    )
    stream = MultipartFieldStream(CONTENT_TYPE, body_stream(body, 16))

    seen = []
    async for field in stream:
        seen.append(field.name)
        if field.name == "second":
            data = b"".join([chunk async for chunk in field.chunks()])
            assert data == b"second-content"

    assert seen == ["first", "second"]


@pytest.mark.asyncio()
async def test_reader_over_multipart_body():
    body = multipart_body(
        [
            (None, "anonymous.bin", b"no name"),
            ("other", "other.bin", b"other field"),
            ("avatar", "me.png", b"avatar bytes"),
        ]
    )
    stream = MultipartFieldStream(CONTENT_TYPE, body_stream(body, 10))

    result = await read_upload(stream, 1000, "avatar")

    assert result.filename == "me.png"
    assert result.bytes == b"avatar bytes"
    assert result.size == len(b"avatar bytes")


@pytest.mark.asyncio()
async def test_oversized_upload_stops_pulling_body():
    chunk_size = 128
    limit = 1000
    body = multipart_body([("uploadFile", "big.bin", b"z" * 100_000)])
    pulled = 0

    async def counting_body():
        nonlocal pulled
        async for chunk in body_stream(body, chunk_size):
            pulled += len(chunk)
            yield chunk

    stream = MultipartFieldStream(CONTENT_TYPE, counting_body())

    with pytest.raises(PayloadTooLargeError):
        await read_upload(stream, limit, "uploadFile")

    # headers plus the ceiling plus one inbound chunk
    assert pulled <= limit + 2 * chunk_size + 256


@pytest.mark.parametrize(
    "content_type",
    [None, "application/json", "multipart/form-data", "text/plain; boundary=abc"],
)
def test_rejects_non_multipart_content_types(content_type):
    with pytest.raises(InvalidMultipartError):
        MultipartFieldStream(content_type, body_stream(b"", 1))


@pytest.mark.asyncio()
async def test_truncated_body_is_invalid():
    body = multipart_body([("uploadFile", "a.bin", b"a" * 100)])
    stream = MultipartFieldStream(CONTENT_TYPE, body_stream(body[:60], 8))

    with pytest.raises(InvalidMultipartError):
        await read_upload(stream, 1000, "uploadFile")
