from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from time import perf_counter
from typing import TypeVar

import structlog

from app.db.session import dispose_engine

T = TypeVar("T")

logger = structlog.get_logger(__name__)


async def _run_on_fresh_pool(awaitable: Awaitable[T], *, job_name: str) -> T:
    # asyncpg connections cannot cross the event loop created per task run.
    await dispose_engine()
    started_at = perf_counter()
    try:
        return await awaitable
    except Exception:
        logger.exception("worker_job_failed", job=job_name)
        raise
    finally:
        logger.debug(
            "worker_job_finished",
            job=job_name,
            duration_ms=int((perf_counter() - started_at) * 1000),
        )
        await dispose_engine()


def run_async_job(awaitable: Awaitable[T], *, job_name: str) -> T:
    return asyncio.run(_run_on_fresh_pool(awaitable, job_name=job_name))
