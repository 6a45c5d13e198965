from celery import Celery

from core.logging_config import setup_logging_from_env
from core.settings import get_settings

QUEUE = "backpack"


def create_app() -> Celery:
    """Celery application for thumbnail jobs dispatched by the API."""
    setup_logging_from_env("worker")
    queue = get_settings().queue
    celery_app = Celery(
        "backpack-worker",
        broker=queue.broker_url,
        backend=queue.result_backend,
        include=["services.worker.tasks.thumbnails"],
    )
    celery_app.conf.update(
        task_default_queue=QUEUE,
        task_routes={"services.worker.tasks.*": {"queue": QUEUE}},
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        # A batch holds decoded images in memory, so take one at a time
        worker_prefetch_multiplier=1,
        task_acks_late=True,
    )
    return celery_app


app = create_app()


@app.task(name="services.worker.tasks.health")
def health() -> str:
    return "ok"


__all__ = ["QUEUE", "app", "create_app", "health"]
