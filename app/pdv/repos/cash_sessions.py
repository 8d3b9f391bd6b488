from sqlalchemy import func, select, update

from app.pdv.db.models import PosCashMovement, PosCashSession


def cents(expr):
    """Round a money expression to the cent inside the database.

    SQLite evaluates NUMERIC arithmetic in binary floating point, so sums and
    guards are compared at cent precision rather than raw.
    """
    return func.round(expr, 2)


def drawer_balance():
    return cents(
        PosCashSession.opening_amount
        + PosCashSession.total_sales
        + PosCashSession.total_cash_in
        - PosCashSession.total_cash_out
    )


class CashSessionRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, session_id: str, *, for_update: bool = False):
        stmt = select(PosCashSession).where(PosCashSession.id == session_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalars().first()

    def get_open_for_cashier(self, cashier_user_id: str, *, for_update: bool = False):
        stmt = select(PosCashSession).where(
            PosCashSession.cashier_user_id == cashier_user_id,
            PosCashSession.status == "OPEN",
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalars().first()

    def add(self, session: PosCashSession) -> PosCashSession:
        self.db.add(session)
        return session

    def add_movement(self, movement: PosCashMovement) -> PosCashMovement:
        self.db.add(movement)
        return movement

    def increment_if_open(self, session_id, **increments) -> bool:
        """Atomically add ``increments`` to the named totals of an OPEN session."""
        values = {name: cents(getattr(PosCashSession, name) + amount) for name, amount in increments.items()}
        result = self.db.execute(
            update(PosCashSession)
            .where(PosCashSession.id == session_id, PosCashSession.status == "OPEN")
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_movements(
        self,
        *,
        cashier_user_id: str | None = None,
        session_id: str | None = None,
        movement_type: str | None = None,
        category: str | None = None,
        from_ts=None,
        to_ts=None,
        limit: int = 100,
        offset: int = 0,
    ):
        filters = []
        if cashier_user_id:
            filters.append(PosCashMovement.cashier_user_id == cashier_user_id)
        if session_id:
            filters.append(PosCashMovement.cash_session_id == session_id)
        if movement_type:
            filters.append(PosCashMovement.movement_type == movement_type.upper())
        if category:
            filters.append(PosCashMovement.category == category.upper())
        if from_ts:
            filters.append(PosCashMovement.created_at >= from_ts)
        if to_ts:
            filters.append(PosCashMovement.created_at <= to_ts)

        query = select(PosCashMovement).where(*filters)
        count_query = select(func.count()).select_from(PosCashMovement).where(*filters)
        total = self.db.execute(count_query).scalar_one()
        rows = (
            self.db.execute(query.order_by(PosCashMovement.created_at.desc()).limit(limit).offset(offset))
            .scalars()
            .all()
        )
        return rows, total
