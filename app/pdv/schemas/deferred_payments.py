from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class DeferredPaymentResponse(BaseModel):
    id: str
    sale_id: str
    customer_id: str
    customer_name: str
    amount: Decimal
    due_date: date
    is_paid: bool
    paid_at: datetime | None
    status: Literal["paid", "unpaid", "overdue"]
    created_at: datetime


class DeferredPaymentListResponse(BaseModel):
    rows: list[DeferredPaymentResponse]
    total: int
