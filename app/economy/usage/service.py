from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repo.extra_pack_consumptions_repo import ExtraPackConsumptionsRepo
from app.economy.extra_packs.constants import EXTRA_LEG_KEY_SUFFIX
from app.economy.extra_packs.errors import ExtraPacksConflictError, ExtraPacksValidationError
from app.economy.extra_packs.service import ExtraPacksService
from app.economy.usage.protocols import UsageService
from app.economy.usage.types import ConsumptionSource, QuotaConsumptionResult, UnifiedAvailability

logger = structlog.get_logger(__name__)


def split_quantity(*, quantity: int, monthly_limit: int, monthly_used: int) -> tuple[int, int]:
    monthly_remaining = max(0, monthly_limit - monthly_used)
    monthly_share = min(quantity, monthly_remaining)
    return monthly_share, quantity - monthly_share


async def _resolve_split(
    session: AsyncSession,
    *,
    usage_service: UsageService,
    user_id: int,
    quantity: int,
    idempotency_key: str,
    monthly_limit: int,
) -> tuple[int, int, bool, bool]:
    """Return (monthly_share, extra_share, monthly_recorded, replay).

    A key seen before keeps the split frozen at its first attempt; only a
    fresh key is split against current monthly usage.
    """
    await ExtraPacksService._lock_user(session, user_id)
    extra_record = await ExtraPackConsumptionsRepo.get_by_user_and_key(
        session,
        user_id=user_id,
        idempotency_key=f"{idempotency_key}{EXTRA_LEG_KEY_SUFFIX}",
    )
    recorded_monthly = await usage_service.get_recorded_usage(user_id, idempotency_key=idempotency_key)
    if extra_record is None and recorded_monthly is None:
        monthly_used = await usage_service.get_monthly_usage(user_id)
        monthly_share, extra_share = split_quantity(
            quantity=quantity,
            monthly_limit=monthly_limit,
            monthly_used=monthly_used,
        )
        return monthly_share, extra_share, False, False

    if extra_record is not None:
        extra_share = extra_record.quantity
        monthly_share = quantity - extra_share
    else:
        monthly_share = recorded_monthly
        extra_share = quantity - monthly_share
    if monthly_share < 0 or extra_share < 0 or (
        recorded_monthly is not None and recorded_monthly != monthly_share
    ):
        raise ExtraPacksConflictError("idempotency_key was already used for a different quantity")
    return monthly_share, extra_share, recorded_monthly is not None, True


def _resolve_source(*, monthly_share: int, extra_share: int) -> ConsumptionSource:
    if extra_share == 0:
        return "monthly"
    if monthly_share == 0:
        return "extra"
    return "mixed"


async def consume_pack_quota(
    session: AsyncSession,
    *,
    usage_service: UsageService,
    user_id: int,
    plan: str,
    quantity: int,
    idempotency_key: str,
    now_utc: datetime,
) -> QuotaConsumptionResult:
    """Spend monthly quota first and only send the shortfall to extra packs.

    The extra-pack leg runs before monthly usage is recorded, so an
    insufficient balance aborts the whole action without touching the
    monthly counter.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ExtraPacksValidationError("quantity must be a positive integer")

    limits = await usage_service.get_plan_limits(plan)
    monthly_share, extra_share, monthly_recorded, idempotent_replay = await _resolve_split(
        session,
        usage_service=usage_service,
        user_id=user_id,
        quantity=quantity,
        idempotency_key=idempotency_key,
        monthly_limit=limits.packs_per_month,
    )

    extra_balance: int | None = None
    if extra_share > 0:
        extra_result = await ExtraPacksService.consume_extra_packs(
            session,
            user_id=user_id,
            quantity=extra_share,
            idempotency_key=f"{idempotency_key}{EXTRA_LEG_KEY_SUFFIX}",
            now_utc=now_utc,
        )
        extra_balance = extra_result.new_balance

    if monthly_share > 0 and not monthly_recorded:
        monthly_used = await usage_service.record_monthly_usage(
            user_id,
            quantity=monthly_share,
            idempotency_key=idempotency_key,
        )
    else:
        monthly_used = await usage_service.get_monthly_usage(user_id)

    if extra_balance is None:
        balance = await ExtraPacksService.get_available_balance(session, user_id=user_id, now_utc=now_utc)
        extra_balance = balance.total

    source = _resolve_source(monthly_share=monthly_share, extra_share=extra_share)
    logger.info(
        "pack_quota_consumed",
        user_id=user_id,
        plan=plan,
        source=source,
        monthly_consumed=monthly_share,
        extra_consumed=extra_share,
    )
    return QuotaConsumptionResult(
        success=True,
        source=source,
        monthly_consumed=monthly_share,
        extra_consumed=extra_share,
        monthly_remaining=max(0, limits.packs_per_month - monthly_used),
        extra_balance=extra_balance,
        idempotent_replay=idempotent_replay,
    )


async def get_unified_availability(
    session: AsyncSession,
    *,
    usage_service: UsageService,
    user_id: int,
    plan: str,
    now_utc: datetime,
) -> UnifiedAvailability:
    limits = await usage_service.get_plan_limits(plan)
    monthly_used = await usage_service.get_monthly_usage(user_id)
    balance = await ExtraPacksService.get_available_balance(session, user_id=user_id, now_utc=now_utc)
    remaining = limits.packs_per_month - monthly_used
    return UnifiedAvailability(
        monthly_limit=limits.packs_per_month,
        monthly_used=monthly_used,
        remaining=remaining,
        extra_packs_available=balance.total,
        total_available=max(0, remaining) + balance.total,
    )


class QuotaCoordinator:
    split_quantity = staticmethod(split_quantity)
    consume_pack_quota = staticmethod(consume_pack_quota)
    get_unified_availability = staticmethod(get_unified_availability)
