from app.db.repo.extra_pack_consumptions_repo import ExtraPackConsumptionsRepo
from app.db.repo.extra_packs_repo import ExtraPacksRepo
from app.db.repo.users_repo import UsersRepo

__all__ = [
    "ExtraPackConsumptionsRepo",
    "ExtraPacksRepo",
    "UsersRepo",
]
