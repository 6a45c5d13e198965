import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from loguru import logger

from core.exceptions import BackpackError
from core.logging_config import setup_logging_from_env
from core.settings import Settings, get_settings
from core.storage import StorageProvider, create_storage_provider, prepare_local_root
from services.api.exception_handlers import backpack_exception_handler, unhandled_exception_handler
from services.api.middleware import SecurityHeadersMiddleware
from services.api.routes import router as v1_router


def create_app(settings: Settings | None = None, storage: StorageProvider | None = None) -> FastAPI:
    """Build the API application.

    The storage provider is created once here and shared by every request
    through ``app.state.storage``. Tests pass their own settings and provider.
    """
    setup_logging_from_env("api")

    settings = settings or get_settings()
    local_root = settings.storage.local.path if settings.storage.provider == "local" else None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if local_root is not None:
            prepare_local_root(local_root)
        logger.info(
            "API initialised with storage provider={provider} upload limit={limit} bytes",
            provider=settings.storage.provider,
            limit=settings.upload.file_size_limit,
        )
        yield

    app = FastAPI(
        title="Backpack API",
        version="0.1.0",
        description="File uploads, storage and thumbnails",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.storage = storage if storage is not None else create_storage_provider(settings.storage)

    app.add_middleware(SecurityHeadersMiddleware)

    ui_origin = os.getenv("UI_ORIGIN", "http://localhost:3000")
    cors_origins = {ui_origin, "http://localhost:3000", "http://127.0.0.1:3000"}
    logger.debug("CORS allowed origins: {origins}", origins=sorted(cors_origins))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/healthz", tags=["meta"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    app.add_exception_handler(BackpackError, backpack_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(v1_router)

    if local_root is not None and settings.storage.local.serve:
        app.mount("/storage", StaticFiles(directory=local_root, check_dir=False), name="storage")

    return app


__all__ = ["create_app"]
