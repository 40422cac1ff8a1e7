from app.economy.extra_packs.service import ExtraPacksService
from app.economy.usage.service import QuotaCoordinator

__all__ = [
    "ExtraPacksService",
    "QuotaCoordinator",
]
