from app.db.models.base import Base
from app.db.models.extra_pack_consumptions import ExtraPackConsumption
from app.db.models.extra_pack_purchases import ExtraPackPurchase
from app.db.models.users import User

__all__ = [
    "Base",
    "ExtraPackConsumption",
    "ExtraPackPurchase",
    "User",
]
