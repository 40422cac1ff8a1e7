from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.models.extra_pack_purchases import ExtraPackPurchase
from app.db.repo.extra_packs_repo import ExtraPacksRepo
from app.economy.extra_packs.catalog import CURRENCY
from app.economy.extra_packs.errors import ExtraPacksConflictError
from app.economy.extra_packs.rules import compute_expires_at, validate_purchase_request
from app.economy.extra_packs.types import PurchaseCreateResult

from .builder import _as_purchase_view, _build_purchase
from .utilities import _as_decimal, _lock_user

logger = structlog.get_logger(__name__)


def _as_replay(
    existing: ExtraPackPurchase,
    *,
    user_id: int,
    quantity: int,
    amount_paid: Decimal,
) -> PurchaseCreateResult:
    if existing.user_id != user_id or existing.quantity != quantity or existing.amount_paid != amount_paid:
        logger.warning(
            "extra_packs_purchase_payment_id_conflict",
            purchase_id=str(existing.id),
            existing_user_id=existing.user_id,
            user_id=user_id,
        )
        raise ExtraPacksConflictError("source_payment_id already recorded for a different purchase")
    return PurchaseCreateResult(purchase=_as_purchase_view(existing), idempotent_replay=True)


async def create_purchase(
    session: AsyncSession,
    *,
    user_id: int,
    quantity: int,
    amount_paid: Decimal | int | str,
    source_payment_id: str,
    now_utc: datetime,
    currency: str = CURRENCY,
) -> PurchaseCreateResult:
    amount = _as_decimal(amount_paid, field_name="amount_paid")
    normalized_currency = validate_purchase_request(
        quantity=quantity,
        amount_paid=amount,
        currency=currency,
        source_payment_id=source_payment_id,
    )
    await _lock_user(session, user_id)

    existing = await ExtraPacksRepo.get_by_source_payment_id(session, source_payment_id)
    if existing is not None:
        return _as_replay(existing, user_id=user_id, quantity=quantity, amount_paid=amount)

    purchase = _build_purchase(
        user_id=user_id,
        quantity=quantity,
        amount_paid=amount,
        currency=normalized_currency,
        source_payment_id=source_payment_id,
        expires_at=compute_expires_at(now_utc, months=get_settings().extra_packs_expiry_months),
        now_utc=now_utc,
    )
    try:
        async with session.begin_nested():
            await ExtraPacksRepo.create(session, purchase=purchase)
    except IntegrityError as exc:
        existing = await ExtraPacksRepo.get_by_source_payment_id(session, source_payment_id)
        if existing is None:
            logger.warning(
                "extra_packs_purchase_insert_rejected",
                user_id=user_id,
                source_payment_id=source_payment_id,
            )
            raise ExtraPacksConflictError("purchase insert was rejected by the database") from exc
        return _as_replay(existing, user_id=user_id, quantity=quantity, amount_paid=amount)

    logger.info(
        "extra_packs_purchase_created",
        purchase_id=str(purchase.id),
        user_id=user_id,
        quantity=quantity,
        amount_paid=str(amount),
        currency=normalized_currency,
        expires_at=purchase.expires_at.isoformat(),
    )
    return PurchaseCreateResult(purchase=_as_purchase_view(purchase), idempotent_replay=False)
