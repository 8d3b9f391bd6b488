from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class PosCashSessionOpenRequest(BaseModel):
    opening_amount: Decimal
    reason: str | None = None


class PosCashSessionActionRequest(BaseModel):
    action: Literal["CASH_IN", "CASH_OUT", "CLOSE"]
    amount: Decimal | None = None
    category: str | None = None
    counted_cash: Decimal | None = None
    reason: str | None = None
    notes: str | None = None


class PosCashSessionSummary(BaseModel):
    id: str
    cashier_user_id: str
    cashier_name: str
    status: str
    opening_amount: Decimal
    total_sales: Decimal
    total_cash_in: Decimal
    total_cash_out: Decimal
    expected_cash: Decimal
    counted_cash: Decimal | None
    difference: Decimal | None
    difference_type: Literal["SHORT", "OVER", "EVEN"] | None
    notes: str | None
    opened_at: datetime
    closed_at: datetime | None
    closed_by_user_id: str | None


class PosCashSessionCurrentResponse(BaseModel):
    session: PosCashSessionSummary | None


class PosCashMovementResponse(BaseModel):
    id: str
    cash_session_id: str
    cashier_user_id: str
    actor_user_id: str
    sale_id: str | None
    movement_type: str
    category: str | None
    amount: Decimal
    reason: str | None
    created_at: datetime


class PosCashMovementListResponse(BaseModel):
    rows: list[PosCashMovementResponse]
    total: int
