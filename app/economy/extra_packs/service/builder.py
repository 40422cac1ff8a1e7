from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from app.db.models.extra_pack_consumptions import ExtraPackConsumption
from app.db.models.extra_pack_purchases import ExtraPackPurchase
from app.economy.extra_packs.constants import CONSUMPTION_SOURCE_EXTRA
from app.economy.extra_packs.types import (
    AllocationPlan,
    ConsumptionResult,
    ExtraPackStatus,
    PackAllocation,
    PurchaseView,
)


def _as_purchase_view(purchase: ExtraPackPurchase) -> PurchaseView:
    return PurchaseView(
        id=purchase.id,
        user_id=purchase.user_id,
        quantity=purchase.quantity,
        consumed=purchase.consumed,
        amount_paid=purchase.amount_paid,
        currency=purchase.currency,
        source_payment_id=purchase.source_payment_id,
        purchased_at=purchase.purchased_at,
        expires_at=purchase.expires_at,
        status=ExtraPackStatus(purchase.status),
        refunded_at=purchase.refunded_at,
        refund_amount=purchase.refund_amount,
    )


def _build_purchase(
    *,
    user_id: int,
    quantity: int,
    amount_paid: Decimal,
    currency: str,
    source_payment_id: str,
    expires_at: datetime,
    now_utc: datetime,
) -> ExtraPackPurchase:
    return ExtraPackPurchase(
        id=uuid4(),
        user_id=user_id,
        quantity=quantity,
        consumed=0,
        amount_paid=amount_paid,
        currency=currency,
        source_payment_id=source_payment_id,
        status=ExtraPackStatus.ACTIVE.value,
        purchased_at=now_utc,
        expires_at=expires_at,
        updated_at=now_utc,
    )


def _build_consumption_record(
    *,
    user_id: int,
    idempotency_key: str,
    plan: AllocationPlan,
    now_utc: datetime,
) -> ExtraPackConsumption:
    return ExtraPackConsumption(
        user_id=user_id,
        idempotency_key=idempotency_key,
        quantity=plan.quantity,
        new_balance=plan.available_after,
        source=CONSUMPTION_SOURCE_EXTRA,
        allocations=[
            {"purchase_id": str(allocation.purchase_id), "quantity": allocation.quantity}
            for allocation in plan.allocations
        ],
        created_at=now_utc,
    )


def _as_consumption_result(record: ExtraPackConsumption, *, idempotent_replay: bool) -> ConsumptionResult:
    return ConsumptionResult(
        success=True,
        quantity=record.quantity,
        new_balance=record.new_balance,
        source=record.source,
        allocations=tuple(
            PackAllocation(
                purchase_id=UUID(str(item["purchase_id"])),
                quantity=int(item["quantity"]),
            )
            for item in record.allocations
        ),
        idempotent_replay=idempotent_replay,
    )
