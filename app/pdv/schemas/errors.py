from pydantic import BaseModel


class ApiErrorResponse(BaseModel):
    code: str
    message: str
    details: dict | list | None = None
    trace_id: str | None = None


class ApiValidationErrorItem(BaseModel):
    field: str | None = None
    message: str
    type: str
    loc: list[str | int] | None = None
    input: object | None = None
    ctx: dict | None = None


class ApiValidationErrorDetails(BaseModel):
    errors: list[ApiValidationErrorItem]


class ApiValidationErrorResponse(ApiErrorResponse):
    details: ApiValidationErrorDetails | dict | None = None


COMMON_ERROR_RESPONSES = {
    401: {"model": ApiErrorResponse, "description": "Missing or invalid token"},
    403: {"model": ApiErrorResponse, "description": "Role not allowed"},
    409: {"model": ApiErrorResponse, "description": "Conflicting state: stock, register or idempotency key"},
    422: {"model": ApiValidationErrorResponse, "description": "Validation or business-rule rejection"},
}
