from __future__ import annotations

from datetime import datetime, timezone

import structlog
from celery.schedules import crontab

from app.db.session import SessionLocal
from app.economy.extra_packs.service import ExtraPacksService
from app.workers.asyncio_runner import run_async_job
from app.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)

EXPIRY_SCHEDULE_HOUR_UTC = 1
EXPIRY_SCHEDULE_MINUTE_UTC = 0


async def expire_extra_packs_async() -> dict[str, int]:
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        sweep = await ExtraPacksService.expire_purchases(session, now_utc=now_utc)

    result = {"expired": sweep.expired, "users_affected": sweep.users_affected}
    logger.info("extra_packs_expiry_finished", **result)
    return result


@celery_app.task(name="app.workers.tasks.extra_packs_expiry.expire_extra_packs")
def expire_extra_packs() -> dict[str, int]:
    return run_async_job(expire_extra_packs_async(), job_name="extra_packs_expiry")


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "extra-packs-expiry-daily": {
            "task": "app.workers.tasks.extra_packs_expiry.expire_extra_packs",
            "schedule": crontab(hour=EXPIRY_SCHEDULE_HOUR_UTC, minute=EXPIRY_SCHEDULE_MINUTE_UTC),
            "options": {"queue": "q_normal"},
        },
    }
)
