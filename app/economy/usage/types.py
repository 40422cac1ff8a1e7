from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

PlanTier = Literal["free", "student_pro", "pro_plus"]
ConsumptionSource = Literal["monthly", "extra", "mixed"]


@dataclass(frozen=True, slots=True)
class PlanLimits:
    plan: PlanTier
    packs_per_month: int
    cards_per_pack: int
    questions_per_quiz: int
    mindmap_nodes_limit: int
    priority_processing: bool = False


DEFAULT_PLAN_LIMITS: dict[str, PlanLimits] = {
    "free": PlanLimits(
        plan="free",
        packs_per_month=3,
        cards_per_pack=35,
        questions_per_quiz=8,
        mindmap_nodes_limit=40,
    ),
    "student_pro": PlanLimits(
        plan="student_pro",
        packs_per_month=30,
        cards_per_pack=100,
        questions_per_quiz=20,
        mindmap_nodes_limit=120,
        priority_processing=True,
    ),
    "pro_plus": PlanLimits(
        plan="pro_plus",
        packs_per_month=150,
        cards_per_pack=200,
        questions_per_quiz=40,
        mindmap_nodes_limit=250,
        priority_processing=True,
    ),
}


@dataclass(slots=True)
class QuotaConsumptionResult:
    success: bool
    source: ConsumptionSource
    monthly_consumed: int
    extra_consumed: int
    monthly_remaining: int
    extra_balance: int
    idempotent_replay: bool = False


@dataclass(slots=True)
class UnifiedAvailability:
    monthly_limit: int
    monthly_used: int
    remaining: int
    extra_packs_available: int
    total_available: int
