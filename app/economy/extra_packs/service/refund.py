from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.repo.extra_packs_repo import ExtraPacksRepo
from app.economy.extra_packs.errors import (
    ExtraPackPurchaseNotFoundError,
    ExtraPacksRefundNotAllowedError,
    ExtraPacksValidationError,
)
from app.economy.extra_packs.rules import evaluate_refund_eligibility, validate_money_amount
from app.economy.extra_packs.types import ExtraPackStatus, PurchaseView, RefundEligibility

from .builder import _as_purchase_view
from .utilities import _as_decimal

logger = structlog.get_logger(__name__)


async def refund_purchase(
    session: AsyncSession,
    *,
    purchase_id: UUID,
    refund_amount: Decimal | int | str,
    now_utc: datetime,
) -> PurchaseView:
    amount = _as_decimal(refund_amount, field_name="refund_amount")
    purchase = await ExtraPacksRepo.get_by_id_for_update(session, purchase_id)
    if purchase is None:
        raise ExtraPackPurchaseNotFoundError

    if purchase.status != ExtraPackStatus.ACTIVE.value or purchase.expires_at <= now_utc:
        raise ExtraPacksRefundNotAllowedError(f"purchase status is {purchase.status}")
    validate_money_amount(amount, field_name="refund_amount", allow_zero=True)
    if amount > purchase.amount_paid:
        raise ExtraPacksValidationError("refund_amount must not exceed the amount paid")

    # Already consumed packs stay consumed; only the remainder stops counting.
    purchase.status = ExtraPackStatus.REFUNDED.value
    purchase.refunded_at = now_utc
    purchase.refund_amount = amount
    purchase.updated_at = now_utc
    await session.flush()

    logger.info(
        "extra_packs_purchase_refunded",
        purchase_id=str(purchase.id),
        user_id=purchase.user_id,
        refund_amount=str(amount),
        consumed=purchase.consumed,
        forfeited=purchase.quantity - purchase.consumed,
    )
    return _as_purchase_view(purchase)


async def check_refund_eligibility(
    session: AsyncSession,
    *,
    purchase_id: UUID,
    now_utc: datetime,
) -> RefundEligibility:
    purchase = await ExtraPacksRepo.get_by_id(session, purchase_id)
    return evaluate_refund_eligibility(
        None if purchase is None else _as_purchase_view(purchase),
        now_utc=now_utc,
        window_days=get_settings().extra_packs_refund_window_days,
    )
