"""Content-type sniffing from magic bytes.

The result is informational metadata only (the ``Content-Type`` stored next
to a remote object). Nothing decides whether to accept an upload based on it.
"""

from __future__ import annotations

import filetype

# filetype never needs more than the first few hundred bytes
_SNIFF_WINDOW = 8192

DEFAULT_MIME_TYPE = "application/octet-stream"


def guess_mime_type(data: bytes) -> str | None:
    """Return the MIME type inferred from the leading bytes, or None if unknown."""
    if not data:
        return None
    kind = filetype.guess(bytes(data[:_SNIFF_WINDOW]))
    if kind is None:
        return None
    return kind.mime


__all__ = ["DEFAULT_MIME_TYPE", "guess_mime_type"]
