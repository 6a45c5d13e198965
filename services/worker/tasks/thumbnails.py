from __future__ import annotations

import asyncio
from functools import lru_cache

from celery import shared_task

from core.settings import get_settings
from core.storage import StorageProvider, create_storage_provider, prepare_local_root
from core.thumbnails import regenerate_thumbnails


@lru_cache(maxsize=1)
def worker_storage() -> StorageProvider:
    """Storage provider shared by every task run in this worker process."""
    settings = get_settings()
    if settings.storage.provider == "local":
        prepare_local_root(settings.storage.local.path)
    return create_storage_provider(settings.storage)


def task_storage() -> StorageProvider:
    """Provider for one task run.

    Every run drives its own event loop through ``asyncio.run``. The memory
    provider guards its dict with an ``asyncio.Lock``, which must not outlive
    that loop, so it is built per run. Filesystem and S3 providers hold no loop
    state and are shared.
    """
    settings = get_settings().storage
    if settings.provider == "memory":
        return create_storage_provider(settings)
    return worker_storage()


@shared_task(name="services.worker.tasks.generate_thumbnails")
def generate_thumbnails(names: list[str]) -> dict[str, object]:
    settings = get_settings().thumbnails
    report = asyncio.run(
        regenerate_thumbnails(
            task_storage(),
            names,
            size=settings.size,
            image_format=settings.format,
            concurrency=settings.concurrency,
        )
    )
    return report.summary()
