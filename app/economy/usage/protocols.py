from __future__ import annotations

from typing import Protocol

from app.economy.usage.types import PlanLimits


class UsageService(Protocol):
    """Monthly quota bookkeeping owned by the surrounding application.

    The extra-packs ledger never writes monthly usage itself; the quota
    coordinator calls through this interface. `get_recorded_usage` returns
    the monthly quantity already recorded under a key, or None when the key
    is unknown.
    """

    async def get_plan_limits(self, plan: str) -> PlanLimits: ...

    async def get_monthly_usage(self, user_id: int) -> int: ...

    async def get_recorded_usage(self, user_id: int, *, idempotency_key: str) -> int | None: ...

    async def record_monthly_usage(self, user_id: int, *, quantity: int, idempotency_key: str) -> int: ...
