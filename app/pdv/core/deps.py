from typing import Iterable

from fastapi import Depends
from jose import JWTError
from pydantic import ValidationError

from app.pdv.core.error_catalog import AppError, ErrorCatalog
from app.pdv.core.security import TokenData, decode_token, oauth2_scheme
from app.pdv.db.session import get_db
from app.pdv.repos.users import UserRepository

ADMIN_ROLES = {"ADMIN"}
POS_ROLES = {"ADMIN", "SELLER", "CASHIER"}


def normalize_role(role: str | None) -> str:
    return (role or "").upper()


def is_admin(role: str | None) -> bool:
    return normalize_role(role) in ADMIN_ROLES


def get_current_token_data(token: str = Depends(oauth2_scheme)) -> TokenData:
    try:
        payload = decode_token(token)
        return TokenData(**payload)
    except (JWTError, ValidationError, TypeError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc


def get_current_user(token_data: TokenData = Depends(get_current_token_data), db=Depends(get_db)):
    repo = UserRepository(db)
    user = repo.get_by_id(token_data.sub)
    if user is None:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    return user


def require_active_user(user=Depends(get_current_user)):
    if not user.is_active:
        raise AppError(ErrorCatalog.USER_INACTIVE)
    return user


def require_role(roles: Iterable[str]):
    allowed = {normalize_role(role) for role in roles}

    def dependency(user=Depends(require_active_user)):
        if normalize_role(user.role) not in allowed:
            raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"required_roles": sorted(allowed)})
        return user

    return dependency


__all__ = [
    "ADMIN_ROLES",
    "POS_ROLES",
    "get_current_token_data",
    "get_current_user",
    "is_admin",
    "require_active_user",
    "require_role",
]
