from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.pdv.core.deps import POS_ROLES, require_role
from app.pdv.core.error_catalog import AppError, ErrorCatalog
from app.pdv.core.metrics import metrics
from app.pdv.core.money import money_str, to_money
from app.pdv.db.models import PosSale
from app.pdv.db.session import get_db
from app.pdv.repos.pos_sales import PosSaleQueryFilters, PosSaleRepository
from app.pdv.schemas.errors import COMMON_ERROR_RESPONSES
from app.pdv.schemas.pos_sales import (
    AllocatedTenderResponse,
    AdjustmentIn,
    CartPriceRequest,
    CartPriceResponse,
    PaymentAllocateRequest,
    PaymentAllocateResponse,
    PosPaymentResponse,
    PosSaleCreateRequest,
    PosSaleLineResponse,
    PosSaleListResponse,
    PosSaleResponse,
    PricedLineResponse,
)
from app.pdv.services.audit import AuditEventPayload, AuditService
from app.pdv.services.idempotency import IdempotencyService, extract_idempotency_key
from app.pdv.services.payment_allocation import TenderAttempt, allocate_payment
from app.pdv.services.payment_settings import PaymentSettingsService
from app.pdv.services.pricing import Adjustment, Cart, CartItem, price_cart
from app.pdv.services.sale_finalizer import SaleFinalizer, SaleItemRequest, SaleRequest


router = APIRouter()


def _adjustment(payload: AdjustmentIn) -> Adjustment:
    return Adjustment(value=payload.value, kind=payload.kind)


def _sale_response(sale: PosSale) -> PosSaleResponse:
    return PosSaleResponse(
        id=str(sale.id),
        seller_user_id=str(sale.seller_user_id),
        seller_name=sale.seller_name,
        customer_id=str(sale.customer_id) if sale.customer_id else None,
        customer_name=sale.customer_name,
        cash_session_id=str(sale.cash_session_id),
        subtotal=to_money(sale.subtotal),
        discount_amount=to_money(sale.discount_amount),
        addition_amount=to_money(sale.addition_amount),
        total=to_money(sale.total),
        fees=to_money(sale.fees),
        final_amount=to_money(sale.final_amount),
        paid_total=to_money(sale.paid_total),
        change_due=to_money(sale.change_due),
        created_at=sale.created_at,
        lines=[
            PosSaleLineResponse(
                position=line.position,
                product_id=str(line.product_id),
                product_code=line.product_code,
                product_name=line.product_name,
                unit_price=to_money(line.unit_price),
                qty=line.qty,
                discount_value=to_money(line.discount_value),
                discount_kind=line.discount_kind,
                discount_amount=to_money(line.discount_amount),
                line_total=to_money(line.line_total),
                net_total=to_money(line.net_total),
            )
            for line in sale.lines
        ],
        payments=[
            PosPaymentResponse(
                position=payment.position,
                kind=payment.kind,
                amount=to_money(payment.amount),
                fee=to_money(payment.fee),
                store_fee=to_money(payment.store_fee),
                charge_amount=to_money(payment.charge_amount),
                net_amount=to_money(payment.net_amount),
            )
            for payment in sale.payments
        ],
    )


@router.post("/pdv/pos/cart/price", response_model=CartPriceResponse, responses=COMMON_ERROR_RESPONSES)
def price_cart_preview(payload: CartPriceRequest, _user=Depends(require_role(POS_ROLES))):
    cart = Cart(
        items=tuple(
            CartItem(
                product_id=item.product_id,
                unit_price=item.unit_price,
                qty=item.qty,
                discount=_adjustment(item.discount),
            )
            for item in payload.items
        ),
        discount=_adjustment(payload.discount),
        addition=_adjustment(payload.addition),
    )
    result = price_cart(cart)
    if result.error is not None:
        raise result.error.to_app_error()
    return CartPriceResponse(
        subtotal=result.subtotal,
        discount_amount=result.discount_amount,
        addition_amount=result.addition_amount,
        total=result.total,
        lines=[
            PricedLineResponse(
                product_id=line.item.product_id,
                unit_price=to_money(line.item.unit_price),
                qty=line.item.qty,
                line_total=line.line_total,
                discount_amount=line.discount_amount,
                net_total=line.net_total,
            )
            for line in result.lines
        ],
    )


@router.post("/pdv/pos/payments/allocate", response_model=PaymentAllocateResponse, responses=COMMON_ERROR_RESPONSES)
def allocate_payment_preview(
    payload: PaymentAllocateRequest,
    _user=Depends(require_role(POS_ROLES)),
    db=Depends(get_db),
):
    if payload.total < 0:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "total must not be negative"})
    config = PaymentSettingsService(db).snapshot()
    result = allocate_payment(
        payload.total,
        [TenderAttempt(kind=tender.kind, amount=tender.amount) for tender in payload.tenders],
        config,
        customer_id=str(payload.customer_id) if payload.customer_id else None,
    )
    if result.error is not None:
        raise result.error.to_app_error()
    return PaymentAllocateResponse(
        total=result.total,
        tenders=[
            AllocatedTenderResponse(
                kind=tender.kind,
                amount=tender.amount,
                fee=tender.fee,
                store_fee=tender.store_fee,
                charge_amount=tender.charge_amount,
                net_amount=tender.net_amount,
                remaining_before=tender.remaining_before,
            )
            for tender in result.tenders
        ],
        paid_total=result.paid_total,
        remaining=result.remaining,
        change=result.change,
        fees=result.fees,
        final_amount=result.final_amount,
        payable=result.payable,
    )


@router.post("/pdv/pos/sales", response_model=PosSaleResponse, status_code=201, responses=COMMON_ERROR_RESPONSES)
def create_sale(
    request: Request,
    payload: PosSaleCreateRequest,
    current_user=Depends(require_role(POS_ROLES)),
    db=Depends(get_db),
):
    idempotency_key = extract_idempotency_key(request.headers)
    context = None
    if idempotency_key:
        request_hash = IdempotencyService.fingerprint(payload.model_dump(mode="json"))
        context, replay = IdempotencyService(db).start(
            actor_user_id=str(current_user.id),
            endpoint=str(request.url.path),
            method=request.method,
            idempotency_key=idempotency_key,
            request_hash=request_hash,
        )
        if replay:
            metrics.increment_idempotency_replay()
            return JSONResponse(
                status_code=replay.status_code,
                content=replay.response_body,
                headers={"X-Idempotency-Result": ErrorCatalog.IDEMPOTENCY_REPLAY.code},
            )
        request.state.idempotency = context

    sale_request = SaleRequest(
        items=tuple(
            SaleItemRequest(product_id=str(item.product_id), qty=item.qty, discount=_adjustment(item.discount))
            for item in payload.items
        ),
        tenders=tuple(TenderAttempt(kind=tender.kind, amount=tender.amount) for tender in payload.tenders),
        discount=_adjustment(payload.discount),
        addition=_adjustment(payload.addition),
        customer_id=str(payload.customer_id) if payload.customer_id else None,
    )
    trace_id = getattr(request.state, "trace_id", None)
    sale = SaleFinalizer(db, trace_id=trace_id).commit_sale(sale_request, current_user)

    response = _sale_response(sale)
    body = response.model_dump(mode="json")
    if context is not None:
        context.record_success(status_code=201, response_body=body)
    AuditService(db).record_event(
        AuditEventPayload(
            user_id=str(current_user.id),
            trace_id=trace_id,
            actor=current_user.username,
            action="pos_sale.commit",
            entity_type="pos_sale",
            entity_id=response.id,
            before=None,
            after={
                "total": money_str(response.total),
                "final_amount": money_str(response.final_amount),
                "customer_id": response.customer_id,
                "cash_session_id": response.cash_session_id,
            },
            metadata={"idempotency_key": idempotency_key},
            result="success",
            actor_role=current_user.role,
        )
    )
    return JSONResponse(status_code=201, content=body)


@router.get("/pdv/pos/sales", response_model=PosSaleListResponse, responses=COMMON_ERROR_RESPONSES)
def list_sales(
    from_ts: datetime | None = None,
    to_ts: datetime | None = None,
    seller_id: UUID | None = None,
    customer_id: UUID | None = None,
    limit: int = 100,
    offset: int = 0,
    _user=Depends(require_role(POS_ROLES)),
    db=Depends(get_db),
):
    filters = PosSaleQueryFilters(
        from_ts=from_ts,
        to_ts=to_ts,
        seller_id=str(seller_id) if seller_id else None,
        customer_id=str(customer_id) if customer_id else None,
        limit=max(1, min(limit, 500)),
        offset=max(0, offset),
    )
    rows, total = PosSaleRepository(db).list_sales(filters)
    return PosSaleListResponse(rows=[_sale_response(sale) for sale in rows], total=total)


@router.get("/pdv/pos/sales/{sale_id}", response_model=PosSaleResponse, responses=COMMON_ERROR_RESPONSES)
def get_sale(sale_id: UUID, _user=Depends(require_role(POS_ROLES)), db=Depends(get_db)):
    sale = PosSaleRepository(db).get_by_id(str(sale_id))
    if sale is None:
        raise AppError(ErrorCatalog.SALE_NOT_FOUND, details={"sale_id": str(sale_id)})
    return _sale_response(sale)
