from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class BundleResponse(BaseModel):
    quantity: int
    price: Decimal
    price_per_pack: Decimal
    currency: str
    popular: bool = False


class BundleListResponse(BaseModel):
    bundles: list[BundleResponse]


class PurchaseCreateRequest(BaseModel):
    user_id: int = Field(gt=0)
    quantity: int
    amount_paid: Decimal
    currency: str = "EUR"
    source_payment_id: str


class PurchaseResponse(BaseModel):
    id: UUID
    user_id: int
    quantity: int
    consumed: int
    available: int
    amount_paid: Decimal
    currency: str
    source_payment_id: str
    purchased_at: datetime
    expires_at: datetime
    status: str
    refunded_at: datetime | None = None
    refund_amount: Decimal | None = None


class PurchaseCreateResponse(BaseModel):
    purchase: PurchaseResponse
    idempotent_replay: bool


class ExpirationWarningResponse(BaseModel):
    count: int
    expires_at: datetime
    days_remaining: int


class BalanceResponse(BaseModel):
    user_id: int
    total: int
    nearest_expiration: datetime | None = None
    purchases: list[PurchaseResponse]
    warning: ExpirationWarningResponse | None = None


class PurchaseHistoryResponse(BaseModel):
    user_id: int
    purchases: list[PurchaseResponse]


class ConsumeRequest(BaseModel):
    user_id: int = Field(gt=0)
    quantity: int
    idempotency_key: str


class AllocationResponse(BaseModel):
    purchase_id: UUID
    quantity: int


class ConsumeResponse(BaseModel):
    success: bool
    quantity: int
    new_balance: int
    source: str
    allocations: list[AllocationResponse]
    idempotent_replay: bool


class RefundRequest(BaseModel):
    refund_amount: Decimal
    reason: str | None = Field(default=None, max_length=256)


class RefundEligibilityResponse(BaseModel):
    purchase_id: UUID
    allowed: bool
    reason: str | None = None


class ExpireSweepResponse(BaseModel):
    expired: int
    users_affected: int
