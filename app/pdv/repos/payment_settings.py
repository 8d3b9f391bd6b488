from sqlalchemy import select

from app.pdv.db.models import PaymentMethodSetting, PaymentSettings

SETTINGS_ROW_ID = 1


class PaymentSettingsRepository:
    def __init__(self, db):
        self.db = db

    def get_settings(self) -> PaymentSettings | None:
        return self.db.get(PaymentSettings, SETTINGS_ROW_ID)

    def list_methods(self) -> list[PaymentMethodSetting]:
        return self.db.execute(select(PaymentMethodSetting).order_by(PaymentMethodSetting.kind)).scalars().all()

    def get_method(self, kind: str) -> PaymentMethodSetting | None:
        return self.db.get(PaymentMethodSetting, kind)

    def add(self, row) -> None:
        self.db.add(row)
