"""extra_packs_ledger_core

Revision ID: 5c1e2a7d9b40
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "5c1e2a7d9b40"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("external_ref", sa.Text(), nullable=False),
        sa.Column("plan", sa.String(16), nullable=False, server_default=sa.text("'free'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("plan IN ('free','student_pro','pro_plus')", name="ck_users_plan"),
        sa.UniqueConstraint("external_ref", name="uq_users_external_ref"),
    )
    op.create_index("idx_users_created_at", "users", ["created_at"])

    op.create_table(
        "extra_pack_purchases",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("consumed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("amount_paid", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'EUR'")),
        sa.Column("source_payment_id", sa.Text(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("purchased_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_extra_pack_purchases_quantity_positive"),
        sa.CheckConstraint(
            "consumed >= 0 AND consumed <= quantity",
            name="ck_extra_pack_purchases_consumed_range",
        ),
        sa.CheckConstraint("amount_paid > 0", name="ck_extra_pack_purchases_amount_positive"),
        sa.CheckConstraint(
            "status IN ('ACTIVE','EXPIRED','REFUNDED')",
            name="ck_extra_pack_purchases_status",
        ),
        sa.CheckConstraint(
            "(status = 'REFUNDED') = (refunded_at IS NOT NULL AND refund_amount IS NOT NULL)",
            name="ck_extra_pack_purchases_refund_fields",
        ),
        sa.CheckConstraint(
            "refund_amount IS NULL OR refund_amount >= 0",
            name="ck_extra_pack_purchases_refund_amount_non_negative",
        ),
        sa.CheckConstraint("expires_at > purchased_at", name="ck_extra_pack_purchases_expiry_after_purchase"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.UniqueConstraint("source_payment_id", name="uq_extra_pack_purchases_source_payment_id"),
    )
    op.create_index(
        "idx_extra_pack_purchases_user_status_purchased",
        "extra_pack_purchases",
        ["user_id", "status", "purchased_at"],
    )
    op.create_index(
        "idx_extra_pack_purchases_status_expires",
        "extra_pack_purchases",
        ["status", "expires_at"],
    )

    op.create_table(
        "extra_pack_consumptions",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("idempotency_key", sa.String(128), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("new_balance", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(16), nullable=False),
        sa.Column("allocations", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_extra_pack_consumptions_quantity_positive"),
        sa.CheckConstraint("new_balance >= 0", name="ck_extra_pack_consumptions_balance_non_negative"),
        sa.CheckConstraint("source IN ('extra')", name="ck_extra_pack_consumptions_source"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.UniqueConstraint(
            "user_id",
            "idempotency_key",
            name="uq_extra_pack_consumptions_user_idempotency_key",
        ),
    )
    op.create_index(
        "idx_extra_pack_consumptions_user_created",
        "extra_pack_consumptions",
        ["user_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_extra_pack_consumptions_user_created", table_name="extra_pack_consumptions")
    op.drop_table("extra_pack_consumptions")

    op.drop_index("idx_extra_pack_purchases_status_expires", table_name="extra_pack_purchases")
    op.drop_index("idx_extra_pack_purchases_user_status_purchased", table_name="extra_pack_purchases")
    op.drop_table("extra_pack_purchases")

    op.drop_index("idx_users_created_at", table_name="users")
    op.drop_table("users")
