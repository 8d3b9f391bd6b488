from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from app.pdv.core.money import ValueKind
from app.pdv.services.payment_allocation import TenderKind


class AdjustmentIn(BaseModel):
    value: Decimal = Decimal("0")
    kind: ValueKind = ValueKind.FIXED


class CartPriceItem(BaseModel):
    product_id: str
    unit_price: Decimal
    qty: int
    discount: AdjustmentIn = Field(default_factory=AdjustmentIn)


class CartPriceRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "items": [
                    {
                        "product_id": "sku-1",
                        "unit_price": "100.00",
                        "qty": 2,
                        "discount": {"value": "10", "kind": "percentage"},
                    }
                ],
                "discount": {"value": "5", "kind": "percentage"},
                "addition": {"value": "0", "kind": "fixed"},
            }
        }
    }

    items: list[CartPriceItem]
    discount: AdjustmentIn = Field(default_factory=AdjustmentIn)
    addition: AdjustmentIn = Field(default_factory=AdjustmentIn)


class PricedLineResponse(BaseModel):
    product_id: str
    unit_price: Decimal
    qty: int
    line_total: Decimal
    discount_amount: Decimal
    net_total: Decimal


class CartPriceResponse(BaseModel):
    subtotal: Decimal
    discount_amount: Decimal
    addition_amount: Decimal
    total: Decimal
    lines: list[PricedLineResponse]


class TenderIn(BaseModel):
    kind: TenderKind
    amount: Decimal


class PaymentAllocateRequest(BaseModel):
    total: Decimal
    tenders: list[TenderIn]
    customer_id: UUID | None = None


class AllocatedTenderResponse(BaseModel):
    kind: TenderKind
    amount: Decimal
    fee: Decimal
    store_fee: Decimal
    charge_amount: Decimal
    net_amount: Decimal
    remaining_before: Decimal


class PaymentAllocateResponse(BaseModel):
    total: Decimal
    tenders: list[AllocatedTenderResponse]
    paid_total: Decimal
    remaining: Decimal
    change: Decimal
    fees: Decimal
    final_amount: Decimal
    payable: bool


class SaleItemIn(BaseModel):
    product_id: UUID
    qty: int
    discount: AdjustmentIn = Field(default_factory=AdjustmentIn)


class PosSaleCreateRequest(BaseModel):
    items: list[SaleItemIn]
    tenders: list[TenderIn]
    discount: AdjustmentIn = Field(default_factory=AdjustmentIn)
    addition: AdjustmentIn = Field(default_factory=AdjustmentIn)
    customer_id: UUID | None = None


class PosSaleLineResponse(BaseModel):
    position: int
    product_id: str
    product_code: str
    product_name: str
    unit_price: Decimal
    qty: int
    discount_value: Decimal
    discount_kind: str
    discount_amount: Decimal
    line_total: Decimal
    net_total: Decimal


class PosPaymentResponse(BaseModel):
    position: int
    kind: str
    amount: Decimal
    fee: Decimal
    store_fee: Decimal
    charge_amount: Decimal
    net_amount: Decimal


class PosSaleResponse(BaseModel):
    id: str
    seller_user_id: str
    seller_name: str
    customer_id: str | None
    customer_name: str | None
    cash_session_id: str
    subtotal: Decimal
    discount_amount: Decimal
    addition_amount: Decimal
    total: Decimal
    fees: Decimal
    final_amount: Decimal
    paid_total: Decimal
    change_due: Decimal
    created_at: datetime
    lines: list[PosSaleLineResponse]
    payments: list[PosPaymentResponse]


class PosSaleListResponse(BaseModel):
    rows: list[PosSaleResponse]
    total: int
