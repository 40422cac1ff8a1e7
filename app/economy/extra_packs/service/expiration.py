from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repo.extra_packs_repo import ExtraPacksRepo
from app.economy.extra_packs.types import ExpirationSweepResult


async def expire_purchases(session: AsyncSession, *, now_utc: datetime) -> ExpirationSweepResult:
    affected_user_ids = await ExtraPacksRepo.expire_active_before(session, now_utc=now_utc)
    return ExpirationSweepResult(
        expired=len(affected_user_ids),
        users_affected=len(set(affected_user_ids)),
    )
