"""Cash register sessions.

A cashier owns at most one OPEN session. Sales append to it through
``append_sale_movement`` inside the finalizer's transaction. Manual deposits
and withdrawals and the close count are committed here.

Every mutation of the running totals is a conditional UPDATE guarded by
``status = 'OPEN'``, so a sale racing a close either lands before the close
computes its expected amount or fails with NO_OPEN_REGISTER.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from app.pdv.core.deps import is_admin
from app.pdv.core.error_catalog import AppError, ErrorCatalog
from app.pdv.core.money import ZERO, money_str, to_money
from app.pdv.db.models import PosCashMovement, PosCashSession, utcnow
from app.pdv.repos.cash_sessions import CashSessionRepository, cents, drawer_balance

MOVEMENT_OPEN = "OPEN"
MOVEMENT_SALE = "SALE"
MOVEMENT_CASH_IN = "CASH_IN"
MOVEMENT_CASH_OUT = "CASH_OUT"
MOVEMENT_CLOSE = "CLOSE"

CATEGORY_SALE = "SALE"
# Manual movement categories by direction; the first entry is the default.
MOVEMENT_CATEGORIES = {
    MOVEMENT_CASH_IN: ("OTHER_INCOME", "EXTERNAL_SALE"),
    MOVEMENT_CASH_OUT: ("WITHDRAWAL", "REFUND", "EXPENSE", "PURCHASE", "SUPPLIER_PAYMENT"),
}


def expected_cash(session: PosCashSession) -> Decimal:
    return to_money(
        to_money(session.opening_amount)
        + to_money(session.total_sales)
        + to_money(session.total_cash_in)
        - to_money(session.total_cash_out)
    )


def difference_type(difference: Decimal | None) -> str | None:
    if difference is None:
        return None
    if difference < 0:
        return "SHORT"
    if difference > 0:
        return "OVER"
    return "EVEN"


@dataclass(frozen=True)
class CloseResult:
    session: PosCashSession
    expected: Decimal
    counted: Decimal
    difference: Decimal

    @property
    def difference_type(self) -> str:
        return difference_type(self.difference)


class CashSessionLedger:
    def __init__(self, db):
        self.db = db
        self.repo = CashSessionRepository(db)

    def current(self, cashier_user_id) -> PosCashSession | None:
        return self.repo.get_open_for_cashier(cashier_user_id)

    def open(self, cashier, opening_amount: Decimal, *, reason: str | None = None) -> PosCashSession:
        opening_amount = to_money(opening_amount)
        if opening_amount < 0:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "opening_amount must not be negative"})

        existing = self.repo.get_open_for_cashier(cashier.id, for_update=True)
        if existing is not None:
            raise AppError(ErrorCatalog.ONE_OPEN_SESSION_PER_CASHIER, details={"session_id": str(existing.id)})

        now = utcnow()
        session = PosCashSession(
            cashier_user_id=cashier.id,
            cashier_name=cashier.full_name,
            status="OPEN",
            opening_amount=opening_amount,
            total_sales=ZERO,
            total_cash_in=ZERO,
            total_cash_out=ZERO,
            opened_at=now,
        )
        try:
            self.repo.add(session)
            self.db.flush()
            self.repo.add_movement(
                PosCashMovement(
                    cash_session_id=session.id,
                    cashier_user_id=cashier.id,
                    actor_user_id=cashier.id,
                    movement_type=MOVEMENT_OPEN,
                    amount=opening_amount,
                    reason=reason,
                    created_at=now,
                )
            )
            self.db.commit()
        except IntegrityError as exc:
            # Lost the race against a concurrent open for the same cashier.
            self.db.rollback()
            raise AppError(ErrorCatalog.ONE_OPEN_SESSION_PER_CASHIER) from exc
        return session

    def require_open_session(self, cashier_user_id) -> PosCashSession:
        session = self.repo.get_open_for_cashier(cashier_user_id)
        if session is None:
            raise AppError(ErrorCatalog.NO_OPEN_REGISTER, details={"cashier_user_id": str(cashier_user_id)})
        return session

    def append_sale_movement(
        self, session: PosCashSession, *, actor_user_id, sale_id, amount: Decimal
    ) -> PosCashMovement:
        """Add a sale to an open session. Never commits."""
        amount = to_money(amount)
        if not self.repo.increment_if_open(session.id, total_sales=amount):
            raise AppError(
                ErrorCatalog.NO_OPEN_REGISTER,
                details={"cashier_user_id": str(session.cashier_user_id), "session_id": str(session.id)},
            )
        return self.repo.add_movement(
            PosCashMovement(
                cash_session_id=session.id,
                cashier_user_id=session.cashier_user_id,
                actor_user_id=actor_user_id,
                sale_id=sale_id,
                movement_type=MOVEMENT_SALE,
                category=CATEGORY_SALE,
                amount=amount,
                created_at=utcnow(),
            )
        )

    def _load_for_change(self, session_id, actor) -> PosCashSession:
        session = self.repo.get_by_id(session_id, for_update=True)
        if session is None:
            raise AppError(ErrorCatalog.CASH_SESSION_NOT_FOUND, details={"session_id": str(session_id)})
        if str(session.cashier_user_id) != str(actor.id) and not is_admin(actor.role):
            raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"message": "only the owning cashier or an admin"})
        if session.status != "OPEN":
            raise AppError(ErrorCatalog.CASH_SESSION_CLOSED, details={"session_id": str(session.id)})
        return session

    def record_manual_movement(
        self,
        session_id,
        actor,
        *,
        movement_type: str,
        amount: Decimal,
        reason: str | None = None,
        category: str | None = None,
    ) -> PosCashSession:
        allowed = MOVEMENT_CATEGORIES.get(movement_type)
        if allowed is None:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "unsupported movement type"})
        category = (category or allowed[0]).upper()
        if category not in allowed:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": f"category not allowed for {movement_type}", "allowed": list(allowed)},
            )
        amount = to_money(amount)
        if amount <= 0:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "amount must be greater than 0"})
        session = self._load_for_change(session_id, actor)

        if movement_type == MOVEMENT_CASH_IN:
            applied = self.repo.increment_if_open(session.id, total_cash_in=amount)
        else:
            applied = self._withdraw(session.id, amount)
        if not applied:
            self.db.rollback()
            self.db.refresh(session)
            if session.status != "OPEN":
                raise AppError(ErrorCatalog.CASH_SESSION_CLOSED, details={"session_id": str(session.id)})
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={
                    "message": "cash_out would result in negative expected balance",
                    "expected_cash": money_str(expected_cash(session)),
                },
            )

        self.repo.add_movement(
            PosCashMovement(
                cash_session_id=session.id,
                cashier_user_id=session.cashier_user_id,
                actor_user_id=actor.id,
                movement_type=movement_type,
                amount=amount,
                reason=reason,
                category=category,
                created_at=utcnow(),
            )
        )
        self.db.commit()
        self.db.refresh(session)
        return session

    def _withdraw(self, session_id, amount: Decimal) -> bool:
        result = self.db.execute(
            update(PosCashSession)
            .where(
                PosCashSession.id == session_id,
                PosCashSession.status == "OPEN",
                cents(drawer_balance() - amount) >= 0,
            )
            .values(total_cash_out=cents(PosCashSession.total_cash_out + amount))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def close(self, session_id, actor, *, counted_cash: Decimal, notes: str | None = None) -> CloseResult:
        counted = to_money(counted_cash)
        if counted < 0:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "counted_cash must not be negative"})
        session = self._load_for_change(session_id, actor)

        now = utcnow()
        drawer = drawer_balance()
        result = self.db.execute(
            update(PosCashSession)
            .where(PosCashSession.id == session.id, PosCashSession.status == "OPEN")
            .values(
                status="CLOSED",
                expected_cash=drawer,
                counted_cash=counted,
                difference=cents(counted - drawer),
                notes=notes,
                closed_at=now,
                closed_by_user_id=actor.id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise AppError(ErrorCatalog.CASH_SESSION_CLOSED, details={"session_id": str(session.id)})

        self.repo.add_movement(
            PosCashMovement(
                cash_session_id=session.id,
                cashier_user_id=session.cashier_user_id,
                actor_user_id=actor.id,
                movement_type=MOVEMENT_CLOSE,
                amount=counted,
                reason=notes,
                created_at=now,
            )
        )
        self.db.commit()
        self.db.refresh(session)
        expected = to_money(session.expected_cash)
        return CloseResult(session=session, expected=expected, counted=counted, difference=counted - expected)
