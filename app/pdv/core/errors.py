from decimal import Decimal

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app.pdv.core.error_catalog import TRANSIENT_ERROR_CODES, AppError, ErrorCatalog, ErrorDefinition
from app.pdv.core.metrics import metrics


_GENERIC_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
}

# Driver messages that mean "another transaction holds the row", across sqlite and postgres.
_LOCK_MARKERS = (
    "database is locked",
    "deadlock detected",
    "lock timeout",
    "could not obtain lock",
    "could not serialize access",
)


def is_lock_conflict(exc: Exception) -> bool:
    if not isinstance(exc, OperationalError):
        return False
    message = str(exc).lower()
    return any(marker in message for marker in _LOCK_MARKERS)


def json_safe(value):
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, dict):
        return {key: json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(item) for item in value]
    return value


def error_response(code: str, message: str, details: object, trace_id: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"code": code, "message": message, "details": details, "trace_id": trace_id},
    )


def _payload(request: Request, code: str, message: str, details: object) -> dict:
    return {
        "code": code,
        "message": message,
        "details": json_safe(details),
        "trace_id": getattr(request.state, "trace_id", ""),
    }


def _finish(
    request: Request,
    status_code: int,
    payload: dict,
    exc: Exception,
    *,
    idempotent: bool = True,
    transient: bool = False,
) -> JSONResponse:
    """Tag the request for the access log, settle any idempotency record, build the response.

    Transient outcomes release the key so the same attempt can be retried;
    every other outcome is stored and replayed.
    """
    request.state.error_code = payload["code"]
    request.state.error_class = exc.__class__.__name__
    context = getattr(request.state, "idempotency", None)
    if idempotent and context is not None:
        if transient or payload["code"] in TRANSIENT_ERROR_CODES:
            context.release()
        else:
            context.record_failure(status_code=status_code, response_body=payload)
    return JSONResponse(status_code=status_code, content=payload)


def _from_definition(
    request: Request, error: ErrorDefinition, details: object, exc: Exception, *, transient: bool = False
) -> JSONResponse:
    payload = _payload(request, error.code, error.message, details)
    return _finish(request, error.status_code, payload, exc, transient=transient)


def _validation_details(exc: RequestValidationError) -> dict:
    errors = []
    for error in exc.errors():
        loc = list(error.get("loc", []))
        ctx = error.get("ctx")
        if isinstance(ctx, dict):
            ctx = {key: str(item) if isinstance(item, Exception) else item for key, item in ctx.items()}
        errors.append(
            {
                "field": ".".join(str(part) for part in loc if part not in {"body", "query", "path", "header"})
                or None,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
                "loc": loc,
                "input": error.get("input"),
                "ctx": ctx,
            }
        )
    return {"errors": errors}


def _http_exception_payload(request: Request, exc: HTTPException) -> dict:
    detail = exc.detail
    message = "HTTP error" if detail is None else str(detail)
    details = None
    if isinstance(detail, dict):
        message = str(detail.get("message", message))
        details = {key: value for key, value in detail.items() if key != "message"} or None
    elif isinstance(detail, list):
        details = {"errors": detail}
    return _payload(request, _GENERIC_HTTP_CODES.get(exc.status_code, "HTTP_ERROR"), message, details)


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return _from_definition(request, exc.error, exc.details, exc)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _finish(request, exc.status_code, _http_exception_payload(request, exc), exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        # Body validation runs before the route opens an idempotency record.
        payload = _payload(
            request,
            ErrorCatalog.VALIDATION_ERROR.code,
            ErrorCatalog.VALIDATION_ERROR.message,
            _validation_details(exc),
        )
        return _finish(request, ErrorCatalog.VALIDATION_ERROR.status_code, payload, exc, idempotent=False)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        if is_lock_conflict(exc):
            metrics.increment_concurrency_conflict()
            return _from_definition(
                request, ErrorCatalog.CONCURRENCY_CONFLICT, {"type": exc.__class__.__name__}, exc
            )
        # Not a business outcome: free the key instead of replaying the failure.
        return _from_definition(
            request, ErrorCatalog.INTERNAL_ERROR, {"type": exc.__class__.__name__}, exc, transient=True
        )
