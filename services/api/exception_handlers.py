"""FastAPI exception handlers for custom exceptions."""

from __future__ import annotations

from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from core.exceptions import (
    BackpackError,
    ObjectNotFoundError,
    PayloadTooLargeError,
    StorageError,
    ValidationError,
)


def status_for(exc: BackpackError) -> int:
    if isinstance(exc, PayloadTooLargeError):
        return status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, ObjectNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, StorageError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def backpack_exception_handler(request: Request, exc: BackpackError) -> JSONResponse:
    """Handle Backpack-specific exceptions."""
    status_code = status_for(exc)

    log = logger.warning if status_code < 500 else logger.error
    log(
        "{method} {path} failed with {type}: {message}",
        method=request.method,
        path=request.url.path,
        type=type(exc).__name__,
        message=exc.message,
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": type(exc).__name__,
            "message": exc.message,
            "details": exc.details,
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error("Unhandled exception on {path}", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": type(exc).__name__,
            "message": "There was a problem processing your request",
        },
    )
