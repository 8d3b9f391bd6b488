from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, Request

from app.pdv.core.error_catalog import AppError
from app.pdv.db.session import get_db
from app.pdv.repos.users import UserRepository
from app.pdv.schemas.auth import LoginRequest, OAuth2TokenResponse, TokenResponse
from app.pdv.services.audit import AuditEventPayload, AuditService
from app.pdv.services.auth import AuthService

router = APIRouter()


def _login_event(user, identifier: str, trace_id: str, *, error_code: str | None = None) -> AuditEventPayload:
    failed = error_code is not None
    return AuditEventPayload(
        user_id=str(user.id),
        trace_id=trace_id or None,
        actor=identifier if failed else user.username,
        action="auth.login.failed" if failed else "auth.login",
        entity_type="user",
        entity_id=str(user.id),
        before=None,
        after=None,
        metadata={"error_code": error_code} if failed else None,
        result="failure" if failed else "success",
        actor_role=None if failed else user.role,
    )


@router.post("/login", response_model=TokenResponse, summary="Terminal login (JSON)")
def login(request: Request, payload: LoginRequest, db=Depends(get_db)):
    trace_id = getattr(request.state, "trace_id", "")
    audit = AuditService(db)
    try:
        user, token = AuthService(db).login(payload.username_or_email, payload.password)
    except AppError as exc:
        # Failed attempts against a known account are audited; unknown identifiers are not.
        known = UserRepository(db).get_by_username_or_email(payload.username_or_email)
        if known is not None:
            audit.record_event(_login_event(known, payload.username_or_email, trace_id, error_code=exc.error.code))
        raise

    audit.record_event(_login_event(user, payload.username_or_email, trace_id))
    return TokenResponse(access_token=token, role=user.role, trace_id=trace_id)


@router.post("/token", response_model=OAuth2TokenResponse, summary="OAuth2 password flow (Swagger)")
async def oauth2_token(request: Request, db=Depends(get_db)):
    form = parse_qs((await request.body()).decode())
    _, token = AuthService(db).login(form.get("username", [""])[0], form.get("password", [""])[0])
    return OAuth2TokenResponse(access_token=token)
