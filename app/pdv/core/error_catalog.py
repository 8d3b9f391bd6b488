from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    INVALID_CREDENTIALS = ErrorDefinition(
        "INVALID_CREDENTIALS",
        "Invalid credentials",
        status.HTTP_401_UNAUTHORIZED,
    )
    USER_INACTIVE = ErrorDefinition(
        "USER_INACTIVE",
        "User is inactive",
        status.HTTP_403_FORBIDDEN,
    )
    PERMISSION_DENIED = ErrorDefinition(
        "PERMISSION_DENIED",
        "Permission denied",
        status.HTTP_403_FORBIDDEN,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    INVALID_CART = ErrorDefinition(
        "INVALID_CART",
        "Cart contains invalid values",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    PRODUCT_NOT_FOUND = ErrorDefinition(
        "PRODUCT_NOT_FOUND",
        "Product not found",
        status.HTTP_404_NOT_FOUND,
    )
    CUSTOMER_NOT_FOUND = ErrorDefinition(
        "CUSTOMER_NOT_FOUND",
        "Customer not found",
        status.HTTP_404_NOT_FOUND,
    )
    SALE_NOT_FOUND = ErrorDefinition(
        "SALE_NOT_FOUND",
        "Sale not found",
        status.HTTP_404_NOT_FOUND,
    )
    INSUFFICIENT_STOCK = ErrorDefinition(
        "INSUFFICIENT_STOCK",
        "Insufficient stock",
        status.HTTP_409_CONFLICT,
    )
    INVALID_PAYMENT_AMOUNT = ErrorDefinition(
        "INVALID_PAYMENT_AMOUNT",
        "Invalid payment amount",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    PAYMENT_METHOD_DISABLED = ErrorDefinition(
        "PAYMENT_METHOD_DISABLED",
        "Payment method disabled",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    DEFERRED_CREDIT_REQUIRES_CUSTOMER = ErrorDefinition(
        "DEFERRED_CREDIT_REQUIRES_CUSTOMER",
        "Deferred credit requires a customer",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    NO_OPEN_REGISTER = ErrorDefinition(
        "NO_OPEN_REGISTER",
        "No open cash register session",
        status.HTTP_409_CONFLICT,
    )
    ONE_OPEN_SESSION_PER_CASHIER = ErrorDefinition(
        "ONE_OPEN_SESSION_PER_CASHIER",
        "Cashier already has an open cash register session",
        status.HTTP_409_CONFLICT,
    )
    CASH_SESSION_NOT_FOUND = ErrorDefinition(
        "CASH_SESSION_NOT_FOUND",
        "Cash register session not found",
        status.HTTP_404_NOT_FOUND,
    )
    CASH_SESSION_CLOSED = ErrorDefinition(
        "CASH_SESSION_CLOSED",
        "Cash register session is closed",
        status.HTTP_409_CONFLICT,
    )
    CONCURRENCY_CONFLICT = ErrorDefinition(
        "CONCURRENCY_CONFLICT",
        "Concurrent update detected, retry the operation",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD = ErrorDefinition(
        "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD",
        "Idempotency key reused with different payload",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REQUEST_IN_PROGRESS = ErrorDefinition(
        "IDEMPOTENCY_REQUEST_IN_PROGRESS",
        "Idempotency request already in progress",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REPLAY = ErrorDefinition(
        "IDEMPOTENCY_REPLAY",
        "Idempotent replay",
        status.HTTP_200_OK,
    )


TRANSIENT_ERROR_CODES = {ErrorCatalog.CONCURRENCY_CONFLICT.code, ErrorCatalog.DB_UNAVAILABLE.code}


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)


@dataclass(frozen=True)
class EngineError:
    """Business-rule rejection returned (not raised) by the pure pricing and payment engines."""

    error: ErrorDefinition
    details: dict | None = None

    def to_app_error(self) -> AppError:
        return AppError(self.error, details=self.details)
