from datetime import date

from sqlalchemy import func, select

from app.pdv.db.models import DeferredPayment


class DeferredPaymentRepository:
    def __init__(self, db):
        self.db = db

    def create(self, obligation: DeferredPayment) -> DeferredPayment:
        self.db.add(obligation)
        return obligation

    def list_obligations(
        self,
        *,
        status: str | None = None,
        customer_id: str | None = None,
        today: date,
        limit: int = 100,
        offset: int = 0,
    ):
        stmt = select(DeferredPayment)
        count_stmt = select(func.count()).select_from(DeferredPayment)

        filters = []
        if customer_id:
            filters.append(DeferredPayment.customer_id == customer_id)
        if status == "paid":
            filters.append(DeferredPayment.is_paid.is_(True))
        elif status == "unpaid":
            filters.append(DeferredPayment.is_paid.is_(False))
        elif status == "overdue":
            filters.append(DeferredPayment.is_paid.is_(False))
            filters.append(DeferredPayment.due_date < today)

        if filters:
            stmt = stmt.where(*filters)
            count_stmt = count_stmt.where(*filters)

        total = self.db.execute(count_stmt).scalar_one()
        rows = (
            self.db.execute(stmt.order_by(DeferredPayment.due_date.asc()).limit(limit).offset(offset))
            .scalars()
            .all()
        )
        return rows, total
