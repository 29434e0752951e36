"""
Payment endpoints
=================

GET    /api/v1/payments/methods       -- saved payment methods
POST   /api/v1/payments/methods       -- add a method (card details from the gateway)
PUT    /api/v1/payments/methods/{id}  -- toggle the default flag
DELETE /api/v1/payments/methods/{id}  -- remove a method
POST   /api/v1/payments/process       -- charge a booking (402 when declined)
POST   /api/v1/payments/refund        -- refund a cancelled booking (502 when the gateway fails)
GET    /api/v1/payments/transactions  -- ledger, newest first
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from src.api.auth import get_identity
from src.api.dependencies import get_payment_service
from src.api.middleware import limiter
from src.api.schemas import (
    MessageResponse,
    Page,
    PaymentMethodCreateRequest,
    PaymentMethodResponse,
    PaymentMethodUpdateRequest,
    PaymentResultResponse,
    ProcessPaymentRequest,
    RefundRequest,
    TransactionPage,
    TransactionResponse,
)
from src.config import settings
from src.domain.entities import Identity
from src.domain.enums import PaymentMethod, TransactionType
from src.services.payment_gateway import GatewayResult
from src.services.payments import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


def _result(result: GatewayResult) -> PaymentResultResponse:
    return PaymentResultResponse(
        success=result.success,
        transaction_id=result.reference,
        amount=result.amount,
        status=result.status,
        error=result.error,
    )


@router.get("/methods", response_model=list[PaymentMethodResponse], summary="Payment methods")
@limiter.limit(settings.rate_limit)
async def list_methods(
    request: Request,
    identity: Identity = Depends(get_identity),
    payments: PaymentService = Depends(get_payment_service),
):
    return [PaymentMethodResponse.model_validate(m) for m in await payments.list_methods(identity)]


@router.post(
    "/methods", status_code=201, response_model=PaymentMethodResponse, summary="Add a method"
)
@limiter.limit(settings.rate_limit)
async def add_method(
    request: Request,
    body: PaymentMethodCreateRequest,
    identity: Identity = Depends(get_identity),
    payments: PaymentService = Depends(get_payment_service),
):
    method = await payments.add_method(
        identity, PaymentMethod(body.type), body.gateway_token, body.is_default
    )
    return PaymentMethodResponse.model_validate(method)


@router.put("/methods/{method_id}", response_model=PaymentMethodResponse, summary="Update a method")
@limiter.limit(settings.rate_limit)
async def update_method(
    request: Request,
    method_id: int,
    body: PaymentMethodUpdateRequest,
    identity: Identity = Depends(get_identity),
    payments: PaymentService = Depends(get_payment_service),
):
    method = await payments.update_method(identity, method_id, body.is_default)
    return PaymentMethodResponse.model_validate(method)


@router.delete("/methods/{method_id}", response_model=MessageResponse, summary="Delete a method")
@limiter.limit(settings.rate_limit)
async def delete_method(
    request: Request,
    method_id: int,
    identity: Identity = Depends(get_identity),
    payments: PaymentService = Depends(get_payment_service),
):
    await payments.delete_method(identity, method_id)
    return MessageResponse(message="Payment method deleted successfully")


@router.post(
    "/process",
    response_model=PaymentResultResponse,
    summary="Charge a booking",
    responses={402: {"model": PaymentResultResponse, "description": "Payment declined"}},
)
@limiter.limit(settings.rate_limit)
async def process_payment(
    request: Request,
    body: ProcessPaymentRequest,
    identity: Identity = Depends(get_identity),
    payments: PaymentService = Depends(get_payment_service),
):
    result, _booking = await payments.process(
        identity, body.booking_id, body.payment_method_id, body.amount
    )
    if not result.success:
        # returned, not raised: the failed transaction row must still commit
        return JSONResponse(status_code=402, content=_result(result).model_dump())
    return _result(result)


@router.post(
    "/refund",
    response_model=PaymentResultResponse,
    summary="Refund a cancelled booking",
    responses={502: {"model": PaymentResultResponse, "description": "Gateway refused the refund"}},
)
@limiter.limit(settings.rate_limit)
async def refund(
    request: Request,
    body: RefundRequest,
    identity: Identity = Depends(get_identity),
    payments: PaymentService = Depends(get_payment_service),
):
    result = await payments.refund(identity, body.booking_id, body.amount, body.reason)
    if not result.success:
        return JSONResponse(status_code=502, content=_result(result).model_dump())
    return _result(result)


@router.get("/transactions", response_model=TransactionPage, summary="Transaction history")
@limiter.limit(settings.rate_limit)
async def transactions(
    request: Request,
    type: Optional[TransactionType] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    identity: Identity = Depends(get_identity),
    payments: PaymentService = Depends(get_payment_service),
):
    items, total = await payments.transactions_for(identity, type=type, page=page, limit=limit)
    return TransactionPage(
        items=[TransactionResponse.model_validate(t) for t in items],
        total=total,
        page=page,
        limit=limit,
        pages=Page.count_pages(total, limit),
    )
