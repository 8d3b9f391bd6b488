from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Request

from app.pdv.core.deps import POS_ROLES, is_admin, require_role
from app.pdv.core.error_catalog import AppError, ErrorCatalog
from app.pdv.core.money import money_str, to_money
from app.pdv.db.models import PosCashMovement, PosCashSession
from app.pdv.db.session import get_db
from app.pdv.repos.cash_sessions import CashSessionRepository
from app.pdv.schemas.errors import COMMON_ERROR_RESPONSES
from app.pdv.schemas.pos_cash import (
    PosCashMovementListResponse,
    PosCashMovementResponse,
    PosCashSessionActionRequest,
    PosCashSessionCurrentResponse,
    PosCashSessionOpenRequest,
    PosCashSessionSummary,
)
from app.pdv.services.audit import AuditEventPayload, AuditService
from app.pdv.services.cash_session import (
    MOVEMENT_CLOSE,
    CashSessionLedger,
    difference_type,
    expected_cash,
)


router = APIRouter()


def _session_summary(session: PosCashSession) -> PosCashSessionSummary:
    expected = to_money(session.expected_cash) if session.expected_cash is not None else expected_cash(session)
    difference = to_money(session.difference) if session.difference is not None else None
    return PosCashSessionSummary(
        id=str(session.id),
        cashier_user_id=str(session.cashier_user_id),
        cashier_name=session.cashier_name,
        status=session.status,
        opening_amount=to_money(session.opening_amount),
        total_sales=to_money(session.total_sales),
        total_cash_in=to_money(session.total_cash_in),
        total_cash_out=to_money(session.total_cash_out),
        expected_cash=expected,
        counted_cash=to_money(session.counted_cash) if session.counted_cash is not None else None,
        difference=difference,
        difference_type=difference_type(difference),
        notes=session.notes,
        opened_at=session.opened_at,
        closed_at=session.closed_at,
        closed_by_user_id=str(session.closed_by_user_id) if session.closed_by_user_id else None,
    )


def _movement_response(movement: PosCashMovement) -> PosCashMovementResponse:
    return PosCashMovementResponse(
        id=str(movement.id),
        cash_session_id=str(movement.cash_session_id),
        cashier_user_id=str(movement.cashier_user_id),
        actor_user_id=str(movement.actor_user_id),
        sale_id=str(movement.sale_id) if movement.sale_id else None,
        movement_type=movement.movement_type,
        category=movement.category,
        amount=to_money(movement.amount),
        reason=movement.reason,
        created_at=movement.created_at,
    )


@router.post(
    "/pdv/pos/cash/sessions",
    response_model=PosCashSessionSummary,
    status_code=201,
    responses=COMMON_ERROR_RESPONSES,
)
def open_session(
    request: Request,
    payload: PosCashSessionOpenRequest,
    current_user=Depends(require_role(POS_ROLES)),
    db=Depends(get_db),
):
    session = CashSessionLedger(db).open(current_user, payload.opening_amount, reason=payload.reason)
    response = _session_summary(session)
    AuditService(db).record_event(
        AuditEventPayload(
            user_id=str(current_user.id),
            trace_id=getattr(request.state, "trace_id", None),
            actor=current_user.username,
            action="pos_cash_session.open",
            entity_type="pos_cash_session",
            entity_id=response.id,
            before=None,
            after={"status": response.status, "opening_amount": money_str(response.opening_amount)},
            metadata={"reason": payload.reason},
            result="success",
            actor_role=current_user.role,
        )
    )
    return response


@router.get("/pdv/pos/cash/sessions/current", response_model=PosCashSessionCurrentResponse)
def get_current_session(current_user=Depends(require_role(POS_ROLES)), db=Depends(get_db)):
    session = CashSessionLedger(db).current(current_user.id)
    return PosCashSessionCurrentResponse(session=_session_summary(session) if session else None)


@router.post(
    "/pdv/pos/cash/sessions/{session_id}/actions",
    response_model=PosCashSessionSummary,
    responses=COMMON_ERROR_RESPONSES,
)
def cash_session_action(
    request: Request,
    session_id: UUID,
    payload: PosCashSessionActionRequest,
    current_user=Depends(require_role(POS_ROLES)),
    db=Depends(get_db),
):
    ledger = CashSessionLedger(db)
    if payload.action == MOVEMENT_CLOSE:
        if payload.counted_cash is None:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "counted_cash is required"})
        result = ledger.close(str(session_id), current_user, counted_cash=payload.counted_cash, notes=payload.notes)
        session = result.session
        after = {
            "status": session.status,
            "expected_cash": money_str(result.expected),
            "counted_cash": money_str(result.counted),
            "difference": money_str(result.difference),
            "difference_type": result.difference_type,
        }
    else:
        if payload.amount is None:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "amount is required"})
        session = ledger.record_manual_movement(
            str(session_id),
            current_user,
            movement_type=payload.action,
            amount=payload.amount,
            reason=payload.reason,
            category=payload.category,
        )
        after = {"status": session.status, "expected_cash": money_str(expected_cash(session))}

    response = _session_summary(session)
    AuditService(db).record_event(
        AuditEventPayload(
            user_id=str(current_user.id),
            trace_id=getattr(request.state, "trace_id", None),
            actor=current_user.username,
            action=f"pos_cash_session.{payload.action.lower()}",
            entity_type="pos_cash_session",
            entity_id=response.id,
            before=None,
            after=after,
            metadata={
                "reason": payload.reason,
                "category": payload.category,
                "notes": payload.notes,
                "amount": money_str(payload.amount) if payload.amount is not None else None,
            },
            result="success",
            actor_role=current_user.role,
        )
    )
    return response


@router.get("/pdv/pos/cash/movements", response_model=PosCashMovementListResponse)
def list_cash_movements(
    session_id: UUID | None = None,
    cashier_user_id: UUID | None = None,
    movement_type: str | None = None,
    category: str | None = None,
    from_ts: datetime | None = None,
    to_ts: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
    current_user=Depends(require_role(POS_ROLES)),
    db=Depends(get_db),
):
    if not is_admin(current_user.role):
        cashier_user_id = current_user.id

    rows, total = CashSessionRepository(db).list_movements(
        cashier_user_id=str(cashier_user_id) if cashier_user_id else None,
        session_id=str(session_id) if session_id else None,
        movement_type=movement_type,
        category=category,
        from_ts=from_ts,
        to_ts=to_ts,
        limit=max(1, min(limit, 500)),
        offset=max(0, offset),
    )
    return PosCashMovementListResponse(rows=[_movement_response(row) for row in rows], total=total)
