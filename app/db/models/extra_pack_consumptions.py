from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class ExtraPackConsumption(Base):
    __tablename__ = "extra_pack_consumptions"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_extra_pack_consumptions_quantity_positive"),
        CheckConstraint("new_balance >= 0", name="ck_extra_pack_consumptions_balance_non_negative"),
        CheckConstraint("source IN ('extra')", name="ck_extra_pack_consumptions_source"),
        UniqueConstraint(
            "user_id",
            "idempotency_key",
            name="uq_extra_pack_consumptions_user_idempotency_key",
        ),
        Index("idx_extra_pack_consumptions_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    new_balance: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(16), nullable=False)
    allocations: Mapped[list[dict[str, object]]] = mapped_column(JSONB, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
