"""Custom exception hierarchy for Backpack."""

from __future__ import annotations


class BackpackError(Exception):
    """Base exception for all Backpack-specific errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(BackpackError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(BackpackError):
    """Base class for request validation errors."""
    pass


class FieldNotFoundError(ValidationError):
    """Raised when the requested multipart field is absent from the stream."""

    def __init__(self, field_name: str) -> None:
        super().__init__(f"field `{field_name}` was not found", {"field": field_name})
        self.field_name = field_name


class PayloadTooLargeError(ValidationError):
    """Raised when an upload grows past the configured byte ceiling."""

    def __init__(self, size_limit: int) -> None:
        super().__init__(f"payload was larger than `{size_limit}`", {"limit": str(size_limit)})
        self.size_limit = size_limit


class InvalidMultipartError(ValidationError):
    """Raised when a request body is not a parseable multipart form."""
    pass


class UploadWriteError(BackpackError):
    """Raised when payload bytes cannot be written to the upload buffer."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"there was a problem writing from the payload: `{cause}`")
        self.cause = cause


class StorageError(BackpackError):
    """Raised when storage operations fail."""
    pass


class ObjectNotFoundError(StorageError):
    """Raised when a stored object does not exist."""
    pass


class ThumbnailError(BackpackError):
    """Raised when a thumbnail cannot be derived from stored bytes."""
    pass
