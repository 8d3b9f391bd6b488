from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from app.pdv.core.money import ValueKind
from app.pdv.services.payment_allocation import FeeResponsibility, TenderKind


class PaymentMethodSettingResponse(BaseModel):
    kind: TenderKind
    enabled: bool
    fee: Decimal
    fee_kind: ValueKind
    fee_responsibility: FeeResponsibility | None
    effective_fee_responsibility: FeeResponsibility


class PaymentSettingsResponse(BaseModel):
    default_fee_responsibility: FeeResponsibility
    methods: list[PaymentMethodSettingResponse]


class PaymentMethodSettingUpdate(BaseModel):
    enabled: bool | None = None
    fee: Decimal | None = Field(default=None, ge=0)
    fee_kind: ValueKind | None = None
    fee_responsibility: FeeResponsibility | None = None


class PaymentSettingsUpdateRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "default_fee_responsibility": "customer",
                "methods": {"credit": {"fee": "3.09", "fee_responsibility": "store"}},
            }
        }
    }

    default_fee_responsibility: FeeResponsibility | None = None
    methods: dict[TenderKind, PaymentMethodSettingUpdate] = Field(default_factory=dict)
