from __future__ import annotations

import calendar
import math
from collections.abc import Iterable
from datetime import datetime, timedelta
from decimal import Decimal

from app.economy.extra_packs.constants import (
    AMOUNT_DECIMAL_PLACES,
    AMOUNT_UPPER_BOUND,
    EXPIRY_MONTHS,
    IDEMPOTENCY_KEY_MAX_LENGTH,
    REFUND_WINDOW_DAYS,
    WARNING_DAYS,
)
from app.economy.extra_packs.errors import ExtraPacksValidationError, InsufficientExtraPacksError
from app.economy.extra_packs.types import (
    AllocationPlan,
    AvailableBalance,
    ExpirationWarning,
    ExtraPackStatus,
    PackAllocation,
    PurchaseView,
    RefundDenialReason,
    RefundEligibility,
)


def add_calendar_months(moment: datetime, months: int) -> datetime:
    """Shift by whole calendar months, clamping the day to the target month's length.

    2026-08-31 + 6 months is 2027-02-28, not an overflow into March.
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def compute_expires_at(purchased_at: datetime, *, months: int = EXPIRY_MONTHS) -> datetime:
    return add_calendar_months(purchased_at, months)


def is_purchase_eligible(purchase: PurchaseView, *, now_utc: datetime) -> bool:
    return purchase.status == ExtraPackStatus.ACTIVE and purchase.expires_at > now_utc


def fifo_order(purchases: Iterable[PurchaseView]) -> list[PurchaseView]:
    return sorted(purchases, key=lambda purchase: (purchase.purchased_at, purchase.id))


def validate_money_amount(amount: Decimal, *, field_name: str, allow_zero: bool = False) -> Decimal:
    if not amount.is_finite():
        raise ExtraPacksValidationError(f"{field_name} must be a finite number")
    if amount < 0 or (amount == 0 and not allow_zero):
        bound = "non-negative" if allow_zero else "positive"
        raise ExtraPacksValidationError(f"{field_name} must be {bound}")
    if amount >= AMOUNT_UPPER_BOUND:
        raise ExtraPacksValidationError(f"{field_name} is too large")
    # Trailing zeros such as 2.990 still fit the column.
    if amount != amount.quantize(Decimal(1).scaleb(-AMOUNT_DECIMAL_PLACES)):
        raise ExtraPacksValidationError(f"{field_name} allows at most {AMOUNT_DECIMAL_PLACES} decimal places")
    return amount


def validate_consume_request(*, quantity: object, idempotency_key: str) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ExtraPacksValidationError("quantity must be a positive integer")
    if not idempotency_key or not idempotency_key.strip():
        raise ExtraPacksValidationError("idempotency_key must not be empty")
    if len(idempotency_key) > IDEMPOTENCY_KEY_MAX_LENGTH:
        raise ExtraPacksValidationError("idempotency_key is too long")
    return quantity


def validate_purchase_request(
    *,
    quantity: object,
    amount_paid: Decimal,
    currency: str,
    source_payment_id: str,
) -> str:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ExtraPacksValidationError("quantity must be a positive integer")
    validate_money_amount(amount_paid, field_name="amount_paid")
    if not source_payment_id or not source_payment_id.strip():
        raise ExtraPacksValidationError("source_payment_id must not be empty")

    normalized_currency = (currency or "").strip().upper()
    if len(normalized_currency) != 3 or not normalized_currency.isalpha():
        raise ExtraPacksValidationError("currency must be a 3-letter ISO code")
    return normalized_currency


def plan_fifo_allocation(
    purchases: Iterable[PurchaseView],
    *,
    quantity: int,
    now_utc: datetime,
) -> AllocationPlan:
    eligible = [
        purchase
        for purchase in fifo_order(purchases)
        if is_purchase_eligible(purchase, now_utc=now_utc) and purchase.available > 0
    ]
    available_before = sum(purchase.available for purchase in eligible)
    if available_before < quantity:
        raise InsufficientExtraPacksError(requested=quantity, available=available_before)

    allocations: list[PackAllocation] = []
    remaining = quantity
    for purchase in eligible:
        if remaining == 0:
            break
        take = min(remaining, purchase.available)
        allocations.append(PackAllocation(purchase_id=purchase.id, quantity=take))
        remaining -= take

    return AllocationPlan(allocations=tuple(allocations), available_before=available_before)


def summarize_balance(purchases: Iterable[PurchaseView], *, now_utc: datetime) -> AvailableBalance:
    active = [purchase for purchase in fifo_order(purchases) if is_purchase_eligible(purchase, now_utc=now_utc)]
    expirations = [purchase.expires_at for purchase in active if purchase.available > 0]
    return AvailableBalance(
        total=sum(purchase.available for purchase in active),
        purchases=active,
        nearest_expiration=min(expirations) if expirations else None,
    )


def build_expiration_warning(
    balance: AvailableBalance,
    *,
    now_utc: datetime,
    warning_days: int = WARNING_DAYS,
) -> ExpirationWarning:
    if balance.nearest_expiration is None or balance.total <= 0:
        return ExpirationWarning(has_warning=False)

    days_remaining = math.ceil((balance.nearest_expiration - now_utc) / timedelta(days=1))
    if days_remaining <= 0 or days_remaining > warning_days:
        return ExpirationWarning(has_warning=False)

    return ExpirationWarning(
        has_warning=True,
        count=balance.total,
        expires_at=balance.nearest_expiration,
        days_remaining=days_remaining,
    )


def evaluate_refund_eligibility(
    purchase: PurchaseView | None,
    *,
    now_utc: datetime,
    window_days: int = REFUND_WINDOW_DAYS,
) -> RefundEligibility:
    if purchase is None:
        return RefundEligibility(allowed=False, reason=RefundDenialReason.NOT_FOUND)
    if purchase.status == ExtraPackStatus.REFUNDED:
        return RefundEligibility(allowed=False, reason=RefundDenialReason.ALREADY_REFUNDED)
    if purchase.status == ExtraPackStatus.EXPIRED or purchase.expires_at <= now_utc:
        return RefundEligibility(allowed=False, reason=RefundDenialReason.EXPIRED)
    if purchase.consumed > 0:
        return RefundEligibility(allowed=False, reason=RefundDenialReason.PACKS_CONSUMED)
    if now_utc - purchase.purchased_at > timedelta(days=window_days):
        return RefundEligibility(allowed=False, reason=RefundDenialReason.WINDOW_ELAPSED)
    return RefundEligibility(allowed=True)
