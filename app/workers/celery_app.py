from celery import Celery

from app.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "extra_packs",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.workers.tasks.extra_packs_expiry",
    ],
)

celery_app.conf.update(
    task_default_queue="q_normal",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_routes={
        "app.workers.tasks.extra_packs_expiry.*": {"queue": "q_normal"},
    },
    broker_connection_retry_on_startup=True,
)


@celery_app.task(name="app.workers.celery_app.ping")
def ping() -> str:
    return "pong"
