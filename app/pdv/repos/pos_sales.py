from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select

from app.pdv.db.models import PosSale


@dataclass(frozen=True)
class PosSaleQueryFilters:
    from_ts: datetime | None = None
    to_ts: datetime | None = None
    seller_id: str | None = None
    customer_id: str | None = None
    limit: int = 100
    offset: int = 0


class PosSaleRepository:
    def __init__(self, db):
        self.db = db

    def add(self, sale: PosSale) -> PosSale:
        self.db.add(sale)
        return sale

    def list_sales(self, filters: PosSaleQueryFilters) -> tuple[list[PosSale], int]:
        conditions = []
        if filters.from_ts:
            conditions.append(PosSale.created_at >= filters.from_ts)
        if filters.to_ts:
            conditions.append(PosSale.created_at <= filters.to_ts)
        if filters.seller_id:
            conditions.append(PosSale.seller_user_id == filters.seller_id)
        if filters.customer_id:
            conditions.append(PosSale.customer_id == filters.customer_id)

        total = self.db.execute(select(func.count()).select_from(PosSale).where(*conditions)).scalar_one()
        query = (
            select(PosSale)
            .where(*conditions)
            .order_by(PosSale.created_at.desc())
            .limit(filters.limit)
            .offset(filters.offset)
        )
        return self.db.execute(query).scalars().all(), total

    def get_by_id(self, sale_id: str) -> PosSale | None:
        return self.db.execute(select(PosSale).where(PosSale.id == sale_id)).scalars().first()
