from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ExtraPackStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    REFUNDED = "REFUNDED"


class RefundDenialReason(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    ALREADY_REFUNDED = "ALREADY_REFUNDED"
    EXPIRED = "EXPIRED"
    PACKS_CONSUMED = "PACKS_CONSUMED"
    WINDOW_ELAPSED = "WINDOW_ELAPSED"


@dataclass(frozen=True, slots=True)
class PurchaseView:
    id: UUID
    user_id: int
    quantity: int
    consumed: int
    amount_paid: Decimal
    currency: str
    source_payment_id: str
    purchased_at: datetime
    expires_at: datetime
    status: ExtraPackStatus
    refunded_at: datetime | None = None
    refund_amount: Decimal | None = None

    @property
    def available(self) -> int:
        return self.quantity - self.consumed


@dataclass(frozen=True, slots=True)
class PackAllocation:
    purchase_id: UUID
    quantity: int


@dataclass(frozen=True, slots=True)
class AllocationPlan:
    allocations: tuple[PackAllocation, ...]
    available_before: int

    @property
    def quantity(self) -> int:
        return sum(allocation.quantity for allocation in self.allocations)

    @property
    def available_after(self) -> int:
        return self.available_before - self.quantity


@dataclass(slots=True)
class AvailableBalance:
    total: int
    purchases: list[PurchaseView] = field(default_factory=list)
    nearest_expiration: datetime | None = None


@dataclass(frozen=True, slots=True)
class ExpirationWarning:
    has_warning: bool
    count: int = 0
    expires_at: datetime | None = None
    days_remaining: int | None = None


@dataclass(slots=True)
class PurchaseCreateResult:
    purchase: PurchaseView
    idempotent_replay: bool


@dataclass(slots=True)
class ConsumptionResult:
    success: bool
    quantity: int
    new_balance: int
    source: str
    allocations: tuple[PackAllocation, ...]
    idempotent_replay: bool


@dataclass(slots=True)
class RefundEligibility:
    allowed: bool
    reason: RefundDenialReason | None = None


@dataclass(slots=True)
class ExpirationSweepResult:
    expired: int
    users_affected: int
