"""Pull-based view of a ``multipart/form-data`` body as a stream of fields.

The body is fed to python-multipart's push parser one inbound chunk at a time,
and only when the consumer asks for more data. A field the consumer walks
away from is skipped up to its closing boundary before the next one starts.
"""

from __future__ import annotations

from collections import deque
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from core.exceptions import InvalidMultipartError

_BEGIN = "begin"
_DATA = "data"
_END = "end"


def _decode(value: bytes | None, charset: str = "utf-8") -> str | None:
    if value is None:
        return None
    try:
        return value.decode(charset)
    except (UnicodeDecodeError, LookupError):
        return value.decode("latin-1")


class MultipartField:
    """One part of the body; its bytes can be iterated exactly once."""

    def __init__(
        self,
        stream: "MultipartFieldStream",
        name: str | None,
        filename: str | None,
        content_type: str | None,
    ) -> None:
        self._stream = stream
        self.name = name
        self.filename = filename
        self.content_type = content_type
        self._started = False
        self.finished = False

    async def chunks(self) -> AsyncIterator[bytes]:
        if self._started:
            raise RuntimeError(f"field {self.name!r} has already been read")
        self._started = True
        while not self.finished:
            event = await self._stream._next_event()
            if event is None:
                raise InvalidMultipartError("Multipart body ended inside a part", {"field": self.name or ""})
            kind, payload = event
            if kind == _END:
                self.finished = True
            elif kind == _DATA:
                yield payload

    async def _drain(self) -> None:
        while not self.finished:
            event = await self._stream._next_event()
            if event is None or event[0] == _END:
                self.finished = True


class MultipartFieldStream:
    """Async iterable of ``MultipartField`` parsed from a raw request body."""

    def __init__(self, content_type: str | None, body: AsyncIterable[bytes]) -> None:
        media_type, options = parse_options_header(content_type or "")
        if media_type.lower() != b"multipart/form-data":
            raise InvalidMultipartError("Expected a multipart/form-data request body", {"content_type": content_type or ""})
        boundary = options.get(b"boundary")
        if not boundary:
            raise InvalidMultipartError("Multipart boundary is missing", {"content_type": content_type or ""})
        self.charset = _decode(options.get(b"charset")) or "utf-8"

        self._body = body.__aiter__()
        self._events: deque[tuple[str, Any]] = deque()
        self._exhausted = False
        self._complete = False
        self._current: MultipartField | None = None

        self._header_field = b""
        self._header_value = b""
        self._headers: dict[bytes, bytes] = {}
        self._parser = MultipartParser(
            boundary,
            {
                "on_part_begin": self._on_part_begin,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_end": self._on_end,
            },
        )

    def _on_part_begin(self) -> None:
        self._headers = {}

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers[self._header_field.lower()] = self._header_value
        self._header_field = b""
        self._header_value = b""

    def _on_headers_finished(self) -> None:
        self._events.append((_BEGIN, dict(self._headers)))

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._events.append((_DATA, bytes(data[start:end])))

    def _on_part_end(self) -> None:
        self._events.append((_END, None))

    def _on_end(self) -> None:
        self._complete = True

    async def _next_event(self) -> tuple[str, Any] | None:
        while not self._events:
            if self._exhausted:
                return None
            try:
                chunk = await self._body.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                self._parser.finalize()
                if not self._complete:
                    raise InvalidMultipartError("Multipart body ended before the closing boundary")
                continue
            if not chunk:
                continue
            try:
                self._parser.write(chunk)
            except MultipartParseError as exc:
                raise InvalidMultipartError(f"Malformed multipart body: {exc}") from exc
        return self._events.popleft()

    def __aiter__(self) -> AsyncIterator[MultipartField]:
        return self._fields()

    async def _fields(self) -> AsyncIterator[MultipartField]:
        while True:
            if self._current is not None and not self._current.finished:
                await self._current._drain()
            event = await self._next_event()
            if event is None:
                return
            kind, headers = event
            if kind != _BEGIN:
                continue
            _, disposition = parse_options_header(headers.get(b"content-disposition", b""))
            field = MultipartField(
                self,
                name=_decode(disposition.get(b"name"), self.charset),
                filename=_decode(disposition.get(b"filename"), self.charset),
                content_type=_decode(headers.get(b"content-type")),
            )
            self._current = field
            yield field


__all__ = ["MultipartField", "MultipartFieldStream"]
