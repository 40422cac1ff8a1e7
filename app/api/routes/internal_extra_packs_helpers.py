from __future__ import annotations

import structlog
from fastapi import HTTPException, Request

from app.core.config import get_settings
from app.economy.extra_packs.catalog import CURRENCY, PackBundle
from app.economy.extra_packs.errors import (
    ExtraPackPurchaseNotFoundError,
    ExtraPacksConflictError,
    ExtraPacksError,
    ExtraPacksRefundNotAllowedError,
    ExtraPacksUserNotFoundError,
    ExtraPacksValidationError,
    InsufficientExtraPacksError,
)
from app.economy.extra_packs.types import ConsumptionResult, PurchaseView
from app.services.internal_auth import (
    extract_client_ip,
    is_client_ip_allowed,
    is_internal_request_authenticated,
)

from .internal_extra_packs_models import (
    AllocationResponse,
    BundleResponse,
    ConsumeResponse,
    PurchaseResponse,
)

logger = structlog.get_logger(__name__)


def _assert_internal_access(request: Request) -> None:
    settings = get_settings()
    client_ip = extract_client_ip(
        request,
        trusted_proxies=getattr(settings, "internal_api_trusted_proxies", ""),
    )

    if not is_client_ip_allowed(client_ip=client_ip, allowlist=settings.internal_api_allowlist):
        logger.warning("internal_extra_packs_auth_failed", reason="ip_not_allowed", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})

    if not is_internal_request_authenticated(request, expected_token=settings.internal_api_token):
        logger.warning(
            "internal_extra_packs_auth_failed",
            reason="invalid_credentials",
            client_ip=client_ip,
        )
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})


def _as_http_error(exc: ExtraPacksError) -> HTTPException:
    if isinstance(exc, InsufficientExtraPacksError):
        return HTTPException(
            status_code=402,
            detail={
                "code": "E_INSUFFICIENT_EXTRA_PACKS",
                "requested": exc.requested,
                "available": exc.available,
            },
        )
    if isinstance(exc, ExtraPacksValidationError):
        return HTTPException(status_code=400, detail={"code": "E_VALIDATION", "message": str(exc)})
    if isinstance(exc, ExtraPacksUserNotFoundError):
        return HTTPException(status_code=404, detail={"code": "E_USER_NOT_FOUND"})
    if isinstance(exc, ExtraPackPurchaseNotFoundError):
        return HTTPException(status_code=404, detail={"code": "E_PURCHASE_NOT_FOUND"})
    if isinstance(exc, ExtraPacksRefundNotAllowedError):
        return HTTPException(status_code=409, detail={"code": "E_REFUND_NOT_ALLOWED"})
    if isinstance(exc, ExtraPacksConflictError):
        return HTTPException(status_code=409, detail={"code": "E_CONFLICT"})
    return HTTPException(status_code=500, detail={"code": "E_EXTRA_PACKS"})


def _bundle_as_response(bundle: PackBundle) -> BundleResponse:
    return BundleResponse(
        quantity=bundle.quantity,
        price=bundle.price,
        price_per_pack=bundle.price_per_pack,
        currency=CURRENCY,
        popular=bundle.popular,
    )


def _purchase_as_response(purchase: PurchaseView) -> PurchaseResponse:
    return PurchaseResponse(
        id=purchase.id,
        user_id=purchase.user_id,
        quantity=purchase.quantity,
        consumed=purchase.consumed,
        available=purchase.available,
        amount_paid=purchase.amount_paid,
        currency=purchase.currency,
        source_payment_id=purchase.source_payment_id,
        purchased_at=purchase.purchased_at,
        expires_at=purchase.expires_at,
        status=purchase.status.value,
        refunded_at=purchase.refunded_at,
        refund_amount=purchase.refund_amount,
    )


def _consumption_as_response(result: ConsumptionResult) -> ConsumeResponse:
    return ConsumeResponse(
        success=result.success,
        quantity=result.quantity,
        new_balance=result.new_balance,
        source=result.source,
        allocations=[
            AllocationResponse(purchase_id=allocation.purchase_id, quantity=allocation.quantity)
            for allocation in result.allocations
        ],
        idempotent_replay=result.idempotent_replay,
    )
