from app.workers.tasks.extra_packs_expiry import expire_extra_packs

__all__ = [
    "expire_extra_packs",
]
