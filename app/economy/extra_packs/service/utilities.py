from __future__ import annotations

from decimal import Decimal, InvalidOperation

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.users import User
from app.db.repo.users_repo import UsersRepo
from app.economy.extra_packs.errors import ExtraPacksUserNotFoundError, ExtraPacksValidationError


def _as_decimal(value: Decimal | int | float | str, *, field_name: str) -> Decimal:
    if isinstance(value, bool):
        raise ExtraPacksValidationError(f"{field_name} must be a number")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ExtraPacksValidationError(f"{field_name} must be a number") from exc


async def _lock_user(session: AsyncSession, user_id: int) -> User:
    # Every ledger write for a user goes through this row lock.
    user = await UsersRepo.get_by_id_for_update(session, user_id)
    if user is None:
        raise ExtraPacksUserNotFoundError
    return user


async def _require_user(session: AsyncSession, user_id: int) -> User:
    user = await UsersRepo.get_by_id(session, user_id)
    if user is None:
        raise ExtraPacksUserNotFoundError
    return user
