from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, Request, Response, status

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.economy.extra_packs.errors import ExtraPacksConflictError, ExtraPacksError
from app.economy.extra_packs.rules import build_expiration_warning
from app.economy.extra_packs.service import ExtraPacksService

from .internal_extra_packs_helpers import (
    _as_http_error,
    _assert_internal_access,
    _bundle_as_response,
    _consumption_as_response,
    _purchase_as_response,
)
from .internal_extra_packs_models import (
    BalanceResponse,
    BundleListResponse,
    ConsumeRequest,
    ConsumeResponse,
    ExpirationWarningResponse,
    ExpireSweepResponse,
    PurchaseCreateRequest,
    PurchaseCreateResponse,
    PurchaseHistoryResponse,
    PurchaseResponse,
    RefundEligibilityResponse,
    RefundRequest,
)

router = APIRouter(tags=["internal", "extra-packs"])
logger = structlog.get_logger(__name__)

CONSUME_CONFLICT_ATTEMPTS = 2


@router.get("/internal/extra-packs/bundles", response_model=BundleListResponse)
async def list_extra_pack_bundles(request: Request) -> BundleListResponse:
    _assert_internal_access(request)
    return BundleListResponse(
        bundles=[_bundle_as_response(bundle) for bundle in ExtraPacksService.get_bundles()]
    )


@router.post("/internal/extra-packs/purchases", response_model=PurchaseCreateResponse)
async def create_extra_pack_purchase(
    request: Request,
    payload: PurchaseCreateRequest,
    response: Response,
) -> PurchaseCreateResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)

    try:
        async with SessionLocal.begin() as session:
            result = await ExtraPacksService.create_purchase(
                session,
                user_id=payload.user_id,
                quantity=payload.quantity,
                amount_paid=payload.amount_paid,
                currency=payload.currency,
                source_payment_id=payload.source_payment_id,
                now_utc=now_utc,
            )
    except ExtraPacksError as exc:
        raise _as_http_error(exc) from exc

    response.status_code = status.HTTP_200_OK if result.idempotent_replay else status.HTTP_201_CREATED
    return PurchaseCreateResponse(
        purchase=_purchase_as_response(result.purchase),
        idempotent_replay=result.idempotent_replay,
    )


@router.get("/internal/extra-packs/users/{user_id}/balance", response_model=BalanceResponse)
async def get_extra_pack_balance(request: Request, user_id: int) -> BalanceResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)

    try:
        async with SessionLocal.begin() as session:
            balance = await ExtraPacksService.get_available_balance(
                session,
                user_id=user_id,
                now_utc=now_utc,
            )
    except ExtraPacksError as exc:
        raise _as_http_error(exc) from exc

    warning = build_expiration_warning(
        balance,
        now_utc=now_utc,
        warning_days=get_settings().extra_packs_warning_days,
    )
    return BalanceResponse(
        user_id=user_id,
        total=balance.total,
        nearest_expiration=balance.nearest_expiration,
        purchases=[_purchase_as_response(purchase) for purchase in balance.purchases],
        warning=(
            ExpirationWarningResponse(
                count=warning.count,
                expires_at=warning.expires_at,
                days_remaining=warning.days_remaining,
            )
            if warning.has_warning
            else None
        ),
    )


@router.get("/internal/extra-packs/users/{user_id}/history", response_model=PurchaseHistoryResponse)
async def get_extra_pack_history(request: Request, user_id: int) -> PurchaseHistoryResponse:
    _assert_internal_access(request)

    try:
        async with SessionLocal.begin() as session:
            purchases = await ExtraPacksService.get_purchase_history(session, user_id=user_id)
    except ExtraPacksError as exc:
        raise _as_http_error(exc) from exc

    return PurchaseHistoryResponse(
        user_id=user_id,
        purchases=[_purchase_as_response(purchase) for purchase in purchases],
    )


@router.post("/internal/extra-packs/consume", response_model=ConsumeResponse)
async def consume_extra_packs(request: Request, payload: ConsumeRequest) -> ConsumeResponse:
    _assert_internal_access(request)

    for attempt in range(1, CONSUME_CONFLICT_ATTEMPTS + 1):
        now_utc = datetime.now(timezone.utc)
        try:
            async with SessionLocal.begin() as session:
                result = await ExtraPacksService.consume_extra_packs(
                    session,
                    user_id=payload.user_id,
                    quantity=payload.quantity,
                    idempotency_key=payload.idempotency_key,
                    now_utc=now_utc,
                )
        except ExtraPacksConflictError as exc:
            if attempt < CONSUME_CONFLICT_ATTEMPTS:
                logger.warning(
                    "internal_extra_packs_consume_retry",
                    user_id=payload.user_id,
                    attempt=attempt,
                )
                continue
            raise _as_http_error(exc) from exc
        except ExtraPacksError as exc:
            raise _as_http_error(exc) from exc
        return _consumption_as_response(result)

    raise _as_http_error(ExtraPacksConflictError())


@router.post(
    "/internal/extra-packs/purchases/{purchase_id}/refund",
    response_model=PurchaseResponse,
)
async def refund_extra_pack_purchase(
    request: Request,
    purchase_id: UUID,
    payload: RefundRequest,
) -> PurchaseResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)

    try:
        async with SessionLocal.begin() as session:
            purchase = await ExtraPacksService.refund_purchase(
                session,
                purchase_id=purchase_id,
                refund_amount=payload.refund_amount,
                now_utc=now_utc,
            )
    except ExtraPacksError as exc:
        raise _as_http_error(exc) from exc

    logger.info(
        "internal_extra_packs_refund_applied",
        purchase_id=str(purchase_id),
        reason=payload.reason,
    )
    return _purchase_as_response(purchase)


@router.get(
    "/internal/extra-packs/purchases/{purchase_id}/refund-eligibility",
    response_model=RefundEligibilityResponse,
)
async def get_extra_pack_refund_eligibility(
    request: Request,
    purchase_id: UUID,
) -> RefundEligibilityResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)

    async with SessionLocal.begin() as session:
        eligibility = await ExtraPacksService.check_refund_eligibility(
            session,
            purchase_id=purchase_id,
            now_utc=now_utc,
        )

    return RefundEligibilityResponse(
        purchase_id=purchase_id,
        allowed=eligibility.allowed,
        reason=None if eligibility.reason is None else eligibility.reason.value,
    )


@router.post("/internal/extra-packs/expire", response_model=ExpireSweepResponse)
async def expire_extra_pack_purchases(request: Request) -> ExpireSweepResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)

    async with SessionLocal.begin() as session:
        result = await ExtraPacksService.expire_purchases(session, now_utc=now_utc)

    logger.info(
        "internal_extra_packs_expire_triggered",
        expired=result.expired,
        users_affected=result.users_affected,
    )
    return ExpireSweepResponse(expired=result.expired, users_affected=result.users_affected)
