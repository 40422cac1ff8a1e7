from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.extra_pack_purchases import ExtraPackPurchase


class ExtraPacksRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, purchase_id: UUID) -> ExtraPackPurchase | None:
        return await session.get(ExtraPackPurchase, purchase_id)

    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, purchase_id: UUID) -> ExtraPackPurchase | None:
        stmt = select(ExtraPackPurchase).where(ExtraPackPurchase.id == purchase_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_source_payment_id(
        session: AsyncSession,
        source_payment_id: str,
    ) -> ExtraPackPurchase | None:
        stmt = select(ExtraPackPurchase).where(ExtraPackPurchase.source_payment_id == source_payment_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_active_for_user(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
    ) -> list[ExtraPackPurchase]:
        stmt = (
            select(ExtraPackPurchase)
            .where(
                ExtraPackPurchase.user_id == user_id,
                ExtraPackPurchase.status == "ACTIVE",
                ExtraPackPurchase.expires_at > now_utc,
            )
            .order_by(ExtraPackPurchase.purchased_at.asc(), ExtraPackPurchase.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_consumable_for_update(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
    ) -> list[ExtraPackPurchase]:
        stmt = (
            select(ExtraPackPurchase)
            .where(
                ExtraPackPurchase.user_id == user_id,
                ExtraPackPurchase.status == "ACTIVE",
                ExtraPackPurchase.expires_at > now_utc,
                ExtraPackPurchase.consumed < ExtraPackPurchase.quantity,
            )
            .order_by(ExtraPackPurchase.purchased_at.asc(), ExtraPackPurchase.id.asc())
            .with_for_update()
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_by_user(session: AsyncSession, *, user_id: int) -> list[ExtraPackPurchase]:
        stmt = (
            select(ExtraPackPurchase)
            .where(ExtraPackPurchase.user_id == user_id)
            .order_by(ExtraPackPurchase.purchased_at.desc(), ExtraPackPurchase.id.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def create(session: AsyncSession, *, purchase: ExtraPackPurchase) -> ExtraPackPurchase:
        session.add(purchase)
        await session.flush()
        return purchase

    @staticmethod
    async def expire_active_before(session: AsyncSession, *, now_utc: datetime) -> list[int]:
        stmt = (
            update(ExtraPackPurchase)
            .where(
                ExtraPackPurchase.status == "ACTIVE",
                ExtraPackPurchase.expires_at < now_utc,
            )
            .values(status="EXPIRED", updated_at=now_utc)
            .returning(ExtraPackPurchase.user_id)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return [int(user_id) for user_id in result.scalars().all()]
