from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.pdv.core.deps import ADMIN_ROLES, POS_ROLES, require_role
from app.pdv.db.session import get_db
from app.pdv.schemas.errors import COMMON_ERROR_RESPONSES
from app.pdv.schemas.payment_settings import (
    PaymentMethodSettingResponse,
    PaymentSettingsResponse,
    PaymentSettingsUpdateRequest,
)
from app.pdv.services.audit import AuditEventPayload, AuditService
from app.pdv.services.payment_allocation import PaymentConfig
from app.pdv.services.payment_settings import PaymentSettingsService


router = APIRouter()


def _settings_response(config: PaymentConfig) -> PaymentSettingsResponse:
    return PaymentSettingsResponse(
        default_fee_responsibility=config.default_fee_responsibility,
        methods=[
            PaymentMethodSettingResponse(
                kind=kind,
                enabled=method.enabled,
                fee=method.fee,
                fee_kind=method.fee_kind,
                fee_responsibility=method.fee_responsibility,
                effective_fee_responsibility=config.responsibility_for(kind),
            )
            for kind, method in config.methods.items()
        ],
    )


@router.get("/pdv/settings/payments", response_model=PaymentSettingsResponse)
def get_payment_settings(_user=Depends(require_role(POS_ROLES)), db=Depends(get_db)):
    return _settings_response(PaymentSettingsService(db).snapshot())


@router.put("/pdv/settings/payments", response_model=PaymentSettingsResponse, responses=COMMON_ERROR_RESPONSES)
def update_payment_settings(
    request: Request,
    payload: PaymentSettingsUpdateRequest,
    current_user=Depends(require_role(ADMIN_ROLES)),
    db=Depends(get_db),
):
    service = PaymentSettingsService(db)
    before = _settings_response(service.snapshot()).model_dump(mode="json")
    config = service.update(
        default_fee_responsibility=payload.default_fee_responsibility.value
        if payload.default_fee_responsibility
        else None,
        methods={kind.value: changes.model_dump(exclude_unset=True) for kind, changes in payload.methods.items()},
        user_id=current_user.id,
    )
    response = _settings_response(config)
    AuditService(db).record_event(
        AuditEventPayload(
            user_id=str(current_user.id),
            trace_id=getattr(request.state, "trace_id", None),
            actor=current_user.username,
            action="payment_settings.update",
            entity_type="payment_settings",
            entity_id=None,
            before=before,
            after=response.model_dump(mode="json"),
            metadata=None,
            result="success",
            actor_role=current_user.role,
        )
    )
    return response
