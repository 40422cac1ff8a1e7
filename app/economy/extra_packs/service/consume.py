from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repo.extra_pack_consumptions_repo import ExtraPackConsumptionsRepo
from app.db.repo.extra_packs_repo import ExtraPacksRepo
from app.economy.extra_packs.errors import ExtraPacksConflictError, InsufficientExtraPacksError
from app.economy.extra_packs.rules import plan_fifo_allocation, validate_consume_request
from app.economy.extra_packs.types import ConsumptionResult

from .builder import _as_consumption_result, _as_purchase_view, _build_consumption_record
from .utilities import _lock_user

logger = structlog.get_logger(__name__)


async def consume_extra_packs(
    session: AsyncSession,
    *,
    user_id: int,
    quantity: int,
    idempotency_key: str,
    now_utc: datetime,
) -> ConsumptionResult:
    """Draw `quantity` packs from the user's purchases, oldest purchase first.

    Runs inside the caller's transaction. The user row lock serializes the
    idempotency lookup, the sufficiency check and the counter writes, so two
    requests for the same user (or the same key) cannot both allocate. A
    replayed key returns the result frozen at its first success and touches
    nothing, even if the purchases were refunded or expired since.
    """
    await _lock_user(session, user_id)

    existing = await ExtraPackConsumptionsRepo.get_by_user_and_key(
        session,
        user_id=user_id,
        idempotency_key=idempotency_key,
    )
    if existing is not None:
        return _as_consumption_result(existing, idempotent_replay=True)

    quantity = validate_consume_request(quantity=quantity, idempotency_key=idempotency_key)

    purchases = await ExtraPacksRepo.list_consumable_for_update(session, user_id=user_id, now_utc=now_utc)
    purchases_by_id = {purchase.id: purchase for purchase in purchases}
    try:
        plan = plan_fifo_allocation(
            (_as_purchase_view(purchase) for purchase in purchases),
            quantity=quantity,
            now_utc=now_utc,
        )
    except InsufficientExtraPacksError as exc:
        logger.info(
            "extra_packs_consume_insufficient",
            user_id=user_id,
            requested=exc.requested,
            available=exc.available,
        )
        raise

    for allocation in plan.allocations:
        purchase = purchases_by_id[allocation.purchase_id]
        purchase.consumed += allocation.quantity
        purchase.updated_at = now_utc

    record = _build_consumption_record(
        user_id=user_id,
        idempotency_key=idempotency_key,
        plan=plan,
        now_utc=now_utc,
    )
    try:
        await ExtraPackConsumptionsRepo.create(session, record=record)
    except IntegrityError as exc:
        logger.warning(
            "extra_packs_consume_conflict",
            user_id=user_id,
            idempotency_key=idempotency_key,
        )
        raise ExtraPacksConflictError("concurrent consumption with the same idempotency key") from exc

    logger.info(
        "extra_packs_consumed",
        user_id=user_id,
        quantity=plan.quantity,
        new_balance=plan.available_after,
        purchases_touched=len(plan.allocations),
    )
    return _as_consumption_result(record, idempotent_replay=False)
