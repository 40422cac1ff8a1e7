from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.repo.extra_packs_repo import ExtraPacksRepo
from app.economy.extra_packs.rules import build_expiration_warning, summarize_balance
from app.economy.extra_packs.types import AvailableBalance, ExpirationWarning, PurchaseView

from .builder import _as_purchase_view
from .utilities import _require_user


async def get_available_balance(
    session: AsyncSession,
    *,
    user_id: int,
    now_utc: datetime,
) -> AvailableBalance:
    await _require_user(session, user_id)
    purchases = await ExtraPacksRepo.list_active_for_user(session, user_id=user_id, now_utc=now_utc)
    return summarize_balance((_as_purchase_view(purchase) for purchase in purchases), now_utc=now_utc)


async def get_expiration_warning(
    session: AsyncSession,
    *,
    user_id: int,
    now_utc: datetime,
) -> ExpirationWarning:
    balance = await get_available_balance(session, user_id=user_id, now_utc=now_utc)
    return build_expiration_warning(
        balance,
        now_utc=now_utc,
        warning_days=get_settings().extra_packs_warning_days,
    )


async def get_purchase_history(session: AsyncSession, *, user_id: int) -> list[PurchaseView]:
    await _require_user(session, user_id)
    purchases = await ExtraPacksRepo.list_by_user(session, user_id=user_id)
    return [_as_purchase_view(purchase) for purchase in purchases]
