from __future__ import annotations

import pytest

from app.economy import QuotaCoordinator
from app.economy.extra_packs.errors import (
    ExtraPacksConflictError,
    ExtraPacksValidationError,
    InsufficientExtraPacksError,
)
from app.economy.usage.types import DEFAULT_PLAN_LIMITS, PlanLimits
from tests.economy.extra_packs_fixtures import NOW, DummySession, FakeLedger


class FakeUsageService:
    def __init__(self, *, used: int = 0) -> None:
        self.used = used
        self.recorded: list[tuple[int, int, str]] = []
        self.by_key: dict[tuple[int, str], int] = {}

    async def get_plan_limits(self, plan: str) -> PlanLimits:
        return DEFAULT_PLAN_LIMITS[plan]

    async def get_monthly_usage(self, user_id: int) -> int:
        return self.used

    async def get_recorded_usage(self, user_id: int, *, idempotency_key: str) -> int | None:
        return self.by_key.get((user_id, idempotency_key))

    async def record_monthly_usage(self, user_id: int, *, quantity: int, idempotency_key: str) -> int:
        self.recorded.append((user_id, quantity, idempotency_key))
        self.by_key[(user_id, idempotency_key)] = quantity
        self.used += quantity
        return self.used


@pytest.fixture
def ledger(monkeypatch) -> FakeLedger:
    fake = FakeLedger()
    fake.add_user(1)
    fake.install(monkeypatch)
    return fake


def test_split_quantity_prefers_monthly_quota() -> None:
    assert QuotaCoordinator.split_quantity(quantity=2, monthly_limit=3, monthly_used=0) == (2, 0)
    assert QuotaCoordinator.split_quantity(quantity=3, monthly_limit=3, monthly_used=2) == (1, 2)
    assert QuotaCoordinator.split_quantity(quantity=2, monthly_limit=3, monthly_used=5) == (0, 2)


@pytest.mark.asyncio
async def test_monthly_quota_is_used_before_extra_packs(ledger: FakeLedger) -> None:
    purchase = ledger.add_purchase(quantity=10)
    usage = FakeUsageService(used=0)

    result = await QuotaCoordinator.consume_pack_quota(
        DummySession(),
        usage_service=usage,
        user_id=1,
        plan="free",
        quantity=2,
        idempotency_key="action-1",
        now_utc=NOW,
    )

    assert result.source == "monthly"
    assert (result.monthly_consumed, result.extra_consumed) == (2, 0)
    assert result.monthly_remaining == 1
    assert result.extra_balance == 10
    assert purchase.consumed == 0
    assert usage.recorded == [(1, 2, "action-1")]


@pytest.mark.asyncio
async def test_shortfall_is_drawn_from_extra_packs(ledger: FakeLedger) -> None:
    purchase = ledger.add_purchase(quantity=10)
    usage = FakeUsageService(used=2)

    result = await QuotaCoordinator.consume_pack_quota(
        DummySession(),
        usage_service=usage,
        user_id=1,
        plan="free",
        quantity=4,
        idempotency_key="action-2",
        now_utc=NOW,
    )

    assert result.source == "mixed"
    assert (result.monthly_consumed, result.extra_consumed) == (1, 3)
    assert result.monthly_remaining == 0
    assert result.extra_balance == 7
    assert purchase.consumed == 3
    assert ledger.consumptions[0].idempotency_key == "action-2:extra"


@pytest.mark.asyncio
async def test_exhausted_monthly_quota_uses_only_extra_packs(ledger: FakeLedger) -> None:
    ledger.add_purchase(quantity=10)
    usage = FakeUsageService(used=3)

    result = await QuotaCoordinator.consume_pack_quota(
        DummySession(),
        usage_service=usage,
        user_id=1,
        plan="free",
        quantity=1,
        idempotency_key="action-3",
        now_utc=NOW,
    )

    assert result.source == "extra"
    assert result.extra_balance == 9
    assert usage.recorded == []


@pytest.mark.asyncio
async def test_insufficient_extra_packs_leaves_monthly_usage_untouched(ledger: FakeLedger) -> None:
    ledger.add_purchase(quantity=1)
    usage = FakeUsageService(used=2)

    with pytest.raises(InsufficientExtraPacksError):
        await QuotaCoordinator.consume_pack_quota(
            DummySession(),
            usage_service=usage,
            user_id=1,
            plan="free",
            quantity=5,
            idempotency_key="action-4",
            now_utc=NOW,
        )

    assert usage.recorded == []
    assert usage.used == 2


@pytest.mark.asyncio
async def test_consume_pack_quota_rejects_non_positive_quantity(ledger: FakeLedger) -> None:
    with pytest.raises(ExtraPacksValidationError):
        await QuotaCoordinator.consume_pack_quota(
            DummySession(),
            usage_service=FakeUsageService(),
            user_id=1,
            plan="free",
            quantity=0,
            idempotency_key="action-5",
            now_utc=NOW,
        )


@pytest.mark.asyncio
async def test_replayed_monthly_action_does_not_spill_into_extra_packs(ledger: FakeLedger) -> None:
    purchase = ledger.add_purchase(quantity=10)
    usage = FakeUsageService(used=1)

    first = await QuotaCoordinator.consume_pack_quota(
        DummySession(), usage_service=usage, user_id=1, plan="free", quantity=2, idempotency_key="k", now_utc=NOW
    )
    second = await QuotaCoordinator.consume_pack_quota(
        DummySession(), usage_service=usage, user_id=1, plan="free", quantity=2, idempotency_key="k", now_utc=NOW
    )

    assert (first.source, first.idempotent_replay) == ("monthly", False)
    assert (second.source, second.idempotent_replay) == ("monthly", True)
    assert (second.monthly_consumed, second.extra_consumed) == (2, 0)
    assert purchase.consumed == 0
    assert ledger.consumptions == []
    assert usage.recorded == [(1, 2, "k")]


@pytest.mark.asyncio
async def test_replayed_mixed_action_keeps_its_first_split(ledger: FakeLedger) -> None:
    purchase = ledger.add_purchase(quantity=10)
    usage = FakeUsageService(used=2)

    first = await QuotaCoordinator.consume_pack_quota(
        DummySession(), usage_service=usage, user_id=1, plan="free", quantity=4, idempotency_key="mix", now_utc=NOW
    )
    second = await QuotaCoordinator.consume_pack_quota(
        DummySession(), usage_service=usage, user_id=1, plan="free", quantity=4, idempotency_key="mix", now_utc=NOW
    )

    assert (first.monthly_consumed, first.extra_consumed) == (1, 3)
    assert (second.monthly_consumed, second.extra_consumed) == (1, 3)
    assert second.idempotent_replay is True
    assert second.extra_balance == 7
    assert purchase.consumed == 3
    assert len(ledger.consumptions) == 1
    assert usage.recorded == [(1, 1, "mix")]


@pytest.mark.asyncio
async def test_replay_finishes_monthly_leg_left_unrecorded(ledger: FakeLedger) -> None:
    ledger.add_purchase(quantity=10)
    usage = FakeUsageService(used=2)
    await QuotaCoordinator.consume_pack_quota(
        DummySession(), usage_service=usage, user_id=1, plan="free", quantity=4, idempotency_key="half", now_utc=NOW
    )
    usage.by_key.clear()
    usage.recorded.clear()

    result = await QuotaCoordinator.consume_pack_quota(
        DummySession(), usage_service=usage, user_id=1, plan="free", quantity=4, idempotency_key="half", now_utc=NOW
    )

    assert (result.monthly_consumed, result.extra_consumed) == (1, 3)
    assert usage.recorded == [(1, 1, "half")]


@pytest.mark.asyncio
async def test_replay_with_different_quantity_is_a_conflict(ledger: FakeLedger) -> None:
    ledger.add_purchase(quantity=10)
    usage = FakeUsageService(used=3)
    await QuotaCoordinator.consume_pack_quota(
        DummySession(), usage_service=usage, user_id=1, plan="free", quantity=3, idempotency_key="q", now_utc=NOW
    )

    with pytest.raises(ExtraPacksConflictError):
        await QuotaCoordinator.consume_pack_quota(
            DummySession(), usage_service=usage, user_id=1, plan="free", quantity=2, idempotency_key="q", now_utc=NOW
        )

@pytest.mark.asyncio
async def test_unified_availability_adds_extra_packs_to_remaining_quota(ledger: FakeLedger) -> None:
    ledger.add_purchase(quantity=10, consumed=4)

    within_quota = await QuotaCoordinator.get_unified_availability(
        DummySession(),
        usage_service=FakeUsageService(used=1),
        user_id=1,
        plan="free",
        now_utc=NOW,
    )
    over_quota = await QuotaCoordinator.get_unified_availability(
        DummySession(),
        usage_service=FakeUsageService(used=5),
        user_id=1,
        plan="free",
        now_utc=NOW,
    )

    assert (within_quota.remaining, within_quota.extra_packs_available, within_quota.total_available) == (2, 6, 8)
    assert (over_quota.remaining, over_quota.total_available) == (-2, 6)
