from __future__ import annotations

from decimal import Decimal

from app.pdv.core.config import settings
from app.pdv.core.money import ValueKind
from app.pdv.db.models import PaymentMethodSetting, PaymentSettings, utcnow
from app.pdv.repos.payment_settings import SETTINGS_ROW_ID, PaymentSettingsRepository
from app.pdv.services.payment_allocation import FeeResponsibility, MethodConfig, PaymentConfig, TenderKind

DEFAULT_METHODS: dict[TenderKind, MethodConfig] = {
    TenderKind.CASH: MethodConfig(enabled=True, fee=Decimal("0")),
    TenderKind.PIX: MethodConfig(enabled=True, fee=Decimal("0"), fee_kind=ValueKind.PERCENTAGE),
    TenderKind.PIX_QR: MethodConfig(
        enabled=True,
        fee=Decimal("0.99"),
        fee_kind=ValueKind.PERCENTAGE,
        fee_responsibility=FeeResponsibility.CUSTOMER,
    ),
    TenderKind.DEBIT: MethodConfig(
        enabled=True,
        fee=Decimal("1.99"),
        fee_kind=ValueKind.PERCENTAGE,
        fee_responsibility=FeeResponsibility.CUSTOMER,
    ),
    TenderKind.CREDIT: MethodConfig(
        enabled=True,
        fee=Decimal("3.09"),
        fee_kind=ValueKind.PERCENTAGE,
        fee_responsibility=FeeResponsibility.CUSTOMER,
    ),
    TenderKind.DEFERRED_CREDIT: MethodConfig(enabled=True, fee=Decimal("0")),
}


def _to_method_config(row: PaymentMethodSetting) -> MethodConfig:
    return MethodConfig(
        enabled=bool(row.enabled),
        fee=Decimal(str(row.fee)),
        fee_kind=ValueKind(row.fee_kind),
        fee_responsibility=FeeResponsibility(row.fee_responsibility) if row.fee_responsibility else None,
    )


class PaymentSettingsService:
    def __init__(self, db):
        self.db = db
        self.repo = PaymentSettingsRepository(db)

    def ensure_defaults(self) -> None:
        """Insert the default configuration rows that are missing. Does not commit."""
        if self.repo.get_settings() is None:
            self.repo.add(
                PaymentSettings(id=SETTINGS_ROW_ID, default_fee_responsibility=settings.DEFAULT_FEE_RESPONSIBILITY)
            )
        for kind, config in DEFAULT_METHODS.items():
            if self.repo.get_method(kind.value) is not None:
                continue
            self.repo.add(
                PaymentMethodSetting(
                    kind=kind.value,
                    enabled=config.enabled,
                    fee=config.fee,
                    fee_kind=config.fee_kind.value,
                    fee_responsibility=config.fee_responsibility.value if config.fee_responsibility else None,
                )
            )

    def snapshot(self) -> PaymentConfig:
        """Read the configuration once into an immutable value.

        Kinds without a stored row fall back to their defaults so a fresh
        database still prices sales the way the store is set up out of the box.
        """
        methods = dict(DEFAULT_METHODS)
        for row in self.repo.list_methods():
            try:
                kind = TenderKind(row.kind)
            except ValueError:
                continue
            methods[kind] = _to_method_config(row)
        stored = self.repo.get_settings()
        default_responsibility = FeeResponsibility(
            stored.default_fee_responsibility if stored else settings.DEFAULT_FEE_RESPONSIBILITY
        )
        return PaymentConfig(methods=methods, default_fee_responsibility=default_responsibility)

    def update(self, *, default_fee_responsibility: str | None, methods: dict, user_id) -> PaymentConfig:
        self.ensure_defaults()
        self.db.flush()
        now = utcnow()
        stored = self.repo.get_settings()
        if default_fee_responsibility is not None:
            stored.default_fee_responsibility = FeeResponsibility(default_fee_responsibility).value
        stored.updated_by_user_id = user_id
        stored.updated_at = now
        for kind, changes in methods.items():
            row = self.repo.get_method(TenderKind(kind).value)
            for field, value in changes.items():
                # fee_responsibility may be cleared to inherit the default; other fields are required.
                if value is None and field != "fee_responsibility":
                    continue
                setattr(row, field, getattr(value, "value", value))
            row.updated_at = now
        self.db.commit()
        return self.snapshot()
