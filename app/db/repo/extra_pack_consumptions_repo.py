from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.extra_pack_consumptions import ExtraPackConsumption


class ExtraPackConsumptionsRepo:
    @staticmethod
    async def get_by_user_and_key(
        session: AsyncSession,
        *,
        user_id: int,
        idempotency_key: str,
    ) -> ExtraPackConsumption | None:
        stmt = select(ExtraPackConsumption).where(
            ExtraPackConsumption.user_id == user_id,
            ExtraPackConsumption.idempotency_key == idempotency_key,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, record: ExtraPackConsumption) -> ExtraPackConsumption:
        session.add(record)
        await session.flush()
        return record
