from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class ExtraPackPurchase(Base):
    __tablename__ = "extra_pack_purchases"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_extra_pack_purchases_quantity_positive"),
        CheckConstraint(
            "consumed >= 0 AND consumed <= quantity",
            name="ck_extra_pack_purchases_consumed_range",
        ),
        CheckConstraint("amount_paid > 0", name="ck_extra_pack_purchases_amount_positive"),
        CheckConstraint(
            "status IN ('ACTIVE','EXPIRED','REFUNDED')",
            name="ck_extra_pack_purchases_status",
        ),
        CheckConstraint(
            "(status = 'REFUNDED') = (refunded_at IS NOT NULL AND refund_amount IS NOT NULL)",
            name="ck_extra_pack_purchases_refund_fields",
        ),
        CheckConstraint(
            "refund_amount IS NULL OR refund_amount >= 0",
            name="ck_extra_pack_purchases_refund_amount_non_negative",
        ),
        CheckConstraint("expires_at > purchased_at", name="ck_extra_pack_purchases_expiry_after_purchase"),
        Index("idx_extra_pack_purchases_user_status_purchased", "user_id", "status", "purchased_at"),
        Index("idx_extra_pack_purchases_status_expires", "status", "expires_at"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    consumed: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, server_default=text("'EUR'"))
    source_payment_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    purchased_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
