from sqlalchemy import select

from app.pdv.core.config import settings
from app.pdv.core.security import get_password_hash
from app.pdv.db.models import User
from app.pdv.services.payment_settings import PaymentSettingsService


def _get_or_create_admin(db):
    user = db.execute(select(User).where(User.username == settings.ADMIN_USERNAME)).scalars().first()
    if user:
        return user
    user = User(
        username=settings.ADMIN_USERNAME,
        email=settings.ADMIN_EMAIL,
        full_name="Administrator",
        hashed_password=get_password_hash(settings.ADMIN_PASSWORD),
        role="ADMIN",
        is_active=True,
    )
    db.add(user)
    return user


def run_seed(db):
    _get_or_create_admin(db)
    PaymentSettingsService(db).ensure_defaults()
    db.commit()
