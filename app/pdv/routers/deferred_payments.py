from __future__ import annotations

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends

from app.pdv.core.deps import POS_ROLES, require_role
from app.pdv.core.money import to_money
from app.pdv.db.models import DeferredPayment, utcnow
from app.pdv.db.session import get_db
from app.pdv.repos.deferred_payments import DeferredPaymentRepository
from app.pdv.schemas.deferred_payments import DeferredPaymentListResponse, DeferredPaymentResponse


router = APIRouter()


def _status(obligation: DeferredPayment, today) -> str:
    if obligation.is_paid:
        return "paid"
    if obligation.due_date < today:
        return "overdue"
    return "unpaid"


def _obligation_response(obligation: DeferredPayment, today) -> DeferredPaymentResponse:
    return DeferredPaymentResponse(
        id=str(obligation.id),
        sale_id=str(obligation.sale_id),
        customer_id=str(obligation.customer_id),
        customer_name=obligation.customer_name,
        amount=to_money(obligation.amount),
        due_date=obligation.due_date,
        is_paid=obligation.is_paid,
        paid_at=obligation.paid_at,
        status=_status(obligation, today),
        created_at=obligation.created_at,
    )


@router.get("/pdv/deferred-payments", response_model=DeferredPaymentListResponse)
def list_deferred_payments(
    status: Literal["paid", "unpaid", "overdue"] | None = None,
    customer_id: UUID | None = None,
    limit: int = 100,
    offset: int = 0,
    _user=Depends(require_role(POS_ROLES)),
    db=Depends(get_db),
):
    today = utcnow().date()
    rows, total = DeferredPaymentRepository(db).list_obligations(
        status=status,
        customer_id=str(customer_id) if customer_id else None,
        today=today,
        limit=max(1, min(limit, 500)),
        offset=max(0, offset),
    )
    return DeferredPaymentListResponse(rows=[_obligation_response(row, today) for row in rows], total=total)
