from __future__ import annotations

from app.economy.extra_packs.catalog import get_bundle, get_bundles

from .balance import get_available_balance, get_expiration_warning, get_purchase_history
from .builder import _as_consumption_result, _as_purchase_view, _build_consumption_record, _build_purchase
from .consume import consume_extra_packs
from .expiration import expire_purchases
from .purchase import create_purchase
from .refund import check_refund_eligibility, refund_purchase
from .utilities import _as_decimal, _lock_user, _require_user


class ExtraPacksService:
    _as_decimal = staticmethod(_as_decimal)
    _lock_user = staticmethod(_lock_user)
    _require_user = staticmethod(_require_user)
    _as_purchase_view = staticmethod(_as_purchase_view)
    _build_purchase = staticmethod(_build_purchase)
    _build_consumption_record = staticmethod(_build_consumption_record)
    _as_consumption_result = staticmethod(_as_consumption_result)
    get_bundles = staticmethod(get_bundles)
    get_bundle = staticmethod(get_bundle)
    create_purchase = staticmethod(create_purchase)
    get_available_balance = staticmethod(get_available_balance)
    get_expiration_warning = staticmethod(get_expiration_warning)
    get_purchase_history = staticmethod(get_purchase_history)
    consume_extra_packs = staticmethod(consume_extra_packs)
    refund_purchase = staticmethod(refund_purchase)
    check_refund_eligibility = staticmethod(check_refund_eligibility)
    expire_purchases = staticmethod(expire_purchases)


__all__ = ["ExtraPacksService"]
