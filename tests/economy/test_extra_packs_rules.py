from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from app.economy.extra_packs.errors import ExtraPacksValidationError, InsufficientExtraPacksError
from app.economy.extra_packs.rules import (
    add_calendar_months,
    build_expiration_warning,
    compute_expires_at,
    evaluate_refund_eligibility,
    fifo_order,
    plan_fifo_allocation,
    summarize_balance,
    validate_consume_request,
    validate_money_amount,
    validate_purchase_request,
)
from app.economy.extra_packs.types import ExtraPackStatus, PurchaseView, RefundDenialReason

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _purchase(
    *,
    quantity: int,
    consumed: int = 0,
    purchased_at: datetime = NOW - timedelta(days=1),
    expires_at: datetime | None = None,
    status: ExtraPackStatus = ExtraPackStatus.ACTIVE,
    purchase_id: UUID | None = None,
) -> PurchaseView:
    return PurchaseView(
        id=purchase_id or uuid4(),
        user_id=1,
        quantity=quantity,
        consumed=consumed,
        amount_paid=Decimal("2.99"),
        currency="EUR",
        source_payment_id=f"pay-{uuid4()}",
        purchased_at=purchased_at,
        expires_at=expires_at or compute_expires_at(purchased_at),
        status=status,
    )


def _apply(purchases: list[PurchaseView], quantity: int) -> list[PurchaseView]:
    plan = plan_fifo_allocation(purchases, quantity=quantity, now_utc=NOW)
    taken = {allocation.purchase_id: allocation.quantity for allocation in plan.allocations}
    return [replace(purchase, consumed=purchase.consumed + taken.get(purchase.id, 0)) for purchase in purchases]


def test_add_calendar_months_clamps_to_month_end() -> None:
    assert add_calendar_months(datetime(2026, 8, 31, tzinfo=timezone.utc), 6) == datetime(
        2027, 2, 28, tzinfo=timezone.utc
    )
    assert add_calendar_months(datetime(2027, 8, 31, tzinfo=timezone.utc), 6) == datetime(
        2028, 2, 29, tzinfo=timezone.utc
    )


def test_compute_expires_at_is_six_calendar_months_later() -> None:
    purchased_at = datetime(2026, 1, 15, 9, 30, tzinfo=timezone.utc)
    assert compute_expires_at(purchased_at) == datetime(2026, 7, 15, 9, 30, tzinfo=timezone.utc)


def test_fifo_order_ignores_input_order_and_breaks_ties_by_id() -> None:
    first_id = UUID(int=1)
    second_id = UUID(int=2)
    later = _purchase(quantity=1, purchased_at=NOW - timedelta(hours=1))
    tie_b = _purchase(quantity=1, purchased_at=NOW - timedelta(days=2), purchase_id=second_id)
    tie_a = _purchase(quantity=1, purchased_at=NOW - timedelta(days=2), purchase_id=first_id)

    assert [purchase.id for purchase in fifo_order([later, tie_b, tie_a])] == [first_id, second_id, later.id]


def test_consumption_drains_oldest_purchase_first() -> None:
    purchase_a = _purchase(quantity=10, purchased_at=NOW - timedelta(days=1))
    purchase_b = _purchase(quantity=30, purchased_at=NOW - timedelta(days=1) + timedelta(milliseconds=100))

    after_first = _apply([purchase_b, purchase_a], 5)
    by_id = {purchase.id: purchase for purchase in after_first}
    assert by_id[purchase_a.id].consumed == 5
    assert by_id[purchase_a.id].available == 5
    assert by_id[purchase_b.id].consumed == 0

    after_second = _apply(after_first, 10)
    by_id = {purchase.id: purchase for purchase in after_second}
    assert by_id[purchase_a.id].consumed == 10
    assert by_id[purchase_a.id].available == 0
    assert by_id[purchase_b.id].consumed == 5
    assert by_id[purchase_b.id].available == 25


def test_allocation_spans_purchases_and_reports_remaining_balance() -> None:
    purchase_a = _purchase(quantity=3, purchased_at=NOW - timedelta(days=3))
    purchase_b = _purchase(quantity=4, purchased_at=NOW - timedelta(days=2))

    plan = plan_fifo_allocation([purchase_a, purchase_b], quantity=5, now_utc=NOW)

    assert [(allocation.purchase_id, allocation.quantity) for allocation in plan.allocations] == [
        (purchase_a.id, 3),
        (purchase_b.id, 2),
    ]
    assert plan.quantity == 5
    assert plan.available_before == 7
    assert plan.available_after == 2


def test_insufficient_balance_rejects_whole_request() -> None:
    purchase = _purchase(quantity=5)

    with pytest.raises(InsufficientExtraPacksError) as exc_info:
        plan_fifo_allocation([purchase], quantity=10, now_utc=NOW)

    assert exc_info.value.requested == 10
    assert exc_info.value.available == 5
    assert summarize_balance([purchase], now_utc=NOW).total == 5


def test_allocation_skips_expired_refunded_and_drained_purchases() -> None:
    expired_by_time = _purchase(
        quantity=10,
        purchased_at=NOW - timedelta(days=200),
        expires_at=NOW - timedelta(seconds=1),
    )
    expired_by_status = _purchase(quantity=10, purchased_at=NOW - timedelta(days=5), status=ExtraPackStatus.EXPIRED)
    refunded = _purchase(quantity=10, purchased_at=NOW - timedelta(days=4), status=ExtraPackStatus.REFUNDED)
    drained = _purchase(quantity=10, consumed=10, purchased_at=NOW - timedelta(days=3))
    usable = _purchase(quantity=10, purchased_at=NOW - timedelta(days=2))

    plan = plan_fifo_allocation(
        [expired_by_time, expired_by_status, refunded, drained, usable],
        quantity=4,
        now_utc=NOW,
    )

    assert [allocation.purchase_id for allocation in plan.allocations] == [usable.id]
    assert plan.available_before == 10


def test_purchase_stops_counting_exactly_at_expiry() -> None:
    purchase = _purchase(quantity=10, purchased_at=NOW - timedelta(days=10), expires_at=NOW)

    assert summarize_balance([purchase], now_utc=NOW).total == 0
    assert summarize_balance([purchase], now_utc=NOW - timedelta(microseconds=1)).total == 10


def test_conservation_holds_across_repeated_consumption() -> None:
    purchases = [
        _purchase(quantity=10, purchased_at=NOW - timedelta(days=3)),
        _purchase(quantity=30, purchased_at=NOW - timedelta(days=2)),
        _purchase(quantity=75, purchased_at=NOW - timedelta(days=1)),
    ]
    total_consumed = 0
    for quantity in (1, 9, 12, 40, 3):
        purchases = _apply(purchases, quantity)
        total_consumed += quantity
        balance = summarize_balance(purchases, now_utc=NOW)
        assert sum(purchase.consumed for purchase in purchases) == total_consumed
        assert balance.total == 115 - total_consumed
        assert all(0 <= purchase.consumed <= purchase.quantity for purchase in purchases)


def test_summarize_balance_reports_nearest_expiration_of_remaining_packs() -> None:
    drained = _purchase(quantity=5, consumed=5, purchased_at=NOW - timedelta(days=100))
    older = _purchase(quantity=5, purchased_at=NOW - timedelta(days=50))
    newer = _purchase(quantity=5, purchased_at=NOW - timedelta(days=10))

    balance = summarize_balance([newer, drained, older], now_utc=NOW)

    assert balance.total == 10
    assert [purchase.id for purchase in balance.purchases] == [drained.id, older.id, newer.id]
    assert balance.nearest_expiration == older.expires_at


def test_summarize_balance_without_purchases_is_empty() -> None:
    balance = summarize_balance([], now_utc=NOW)
    assert balance.total == 0
    assert balance.purchases == []
    assert balance.nearest_expiration is None


def test_expiration_warning_inside_window_rounds_days_up() -> None:
    purchase = _purchase(
        quantity=10,
        consumed=4,
        purchased_at=NOW - timedelta(days=150),
        expires_at=NOW + timedelta(days=6, hours=1),
    )
    balance = summarize_balance([purchase], now_utc=NOW)

    warning = build_expiration_warning(balance, now_utc=NOW, warning_days=30)

    assert warning.has_warning is True
    assert warning.count == 6
    assert warning.expires_at == purchase.expires_at
    assert warning.days_remaining == 7


def test_expiration_warning_absent_outside_window_or_without_balance() -> None:
    far = summarize_balance([_purchase(quantity=10)], now_utc=NOW)
    assert build_expiration_warning(far, now_utc=NOW, warning_days=30).has_warning is False

    empty = summarize_balance([], now_utc=NOW)
    assert build_expiration_warning(empty, now_utc=NOW, warning_days=30).has_warning is False


def test_refund_eligibility_rules() -> None:
    fresh = _purchase(quantity=10, purchased_at=NOW - timedelta(days=2))
    assert evaluate_refund_eligibility(fresh, now_utc=NOW, window_days=14).allowed is True

    cases = [
        (None, RefundDenialReason.NOT_FOUND),
        (_purchase(quantity=10, status=ExtraPackStatus.REFUNDED), RefundDenialReason.ALREADY_REFUNDED),
        (_purchase(quantity=10, status=ExtraPackStatus.EXPIRED), RefundDenialReason.EXPIRED),
        (_purchase(quantity=10, consumed=1), RefundDenialReason.PACKS_CONSUMED),
        (_purchase(quantity=10, purchased_at=NOW - timedelta(days=15)), RefundDenialReason.WINDOW_ELAPSED),
    ]
    for purchase, reason in cases:
        eligibility = evaluate_refund_eligibility(purchase, now_utc=NOW, window_days=14)
        assert eligibility.allowed is False
        assert eligibility.reason == reason


@pytest.mark.parametrize(
    ("quantity", "idempotency_key"),
    [
        (0, "key"),
        (-1, "key"),
        (True, "key"),
        (1.5, "key"),
        (1, ""),
        (1, "   "),
        (1, "k" * 129),
    ],
)
def test_validate_consume_request_rejects_bad_input(quantity: object, idempotency_key: str) -> None:
    with pytest.raises(ExtraPacksValidationError):
        validate_consume_request(quantity=quantity, idempotency_key=idempotency_key)


def test_validate_consume_request_accepts_max_length_key() -> None:
    assert validate_consume_request(quantity=3, idempotency_key="k" * 128) == 3


def test_validate_purchase_request_normalizes_currency() -> None:
    currency = validate_purchase_request(
        quantity=10,
        amount_paid=Decimal("2.99"),
        currency=" eur ",
        source_payment_id="pay-1",
    )
    assert currency == "EUR"


@pytest.mark.parametrize(
    ("quantity", "amount_paid", "currency", "source_payment_id"),
    [
        (0, Decimal("2.99"), "EUR", "pay-1"),
        (10, Decimal("0"), "EUR", "pay-1"),
        (10, Decimal("NaN"), "EUR", "pay-1"),
        (10, Decimal("0.001"), "EUR", "pay-1"),
        (10, Decimal("123456789.00"), "EUR", "pay-1"),
        (10, Decimal("100000000"), "EUR", "pay-1"),
        (10, Decimal("2.99"), "EURO", "pay-1"),
        (10, Decimal("2.99"), "EUR", " "),
    ],
)
def test_validate_purchase_request_rejects_bad_input(
    quantity: int,
    amount_paid: Decimal,
    currency: str,
    source_payment_id: str,
) -> None:
    with pytest.raises(ExtraPacksValidationError):
        validate_purchase_request(
            quantity=quantity,
            amount_paid=amount_paid,
            currency=currency,
            source_payment_id=source_payment_id,
        )


def test_validate_money_amount_accepts_column_sized_values() -> None:
    assert validate_money_amount(Decimal("2.990"), field_name="amount_paid") == Decimal("2.99")
    assert validate_money_amount(Decimal("99999999.99"), field_name="amount_paid") == Decimal("99999999.99")
    assert validate_money_amount(Decimal("0"), field_name="refund_amount", allow_zero=True) == Decimal("0")


@pytest.mark.parametrize("amount", [Decimal("-0.01"), Decimal("0.015"), Decimal("100000000.00")])
def test_validate_money_amount_rejects_refund_values_the_column_cannot_hold(amount: Decimal) -> None:
    with pytest.raises(ExtraPacksValidationError):
        validate_money_amount(amount, field_name="refund_amount", allow_zero=True)
