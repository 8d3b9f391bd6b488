"""Split a sale total across payment tenders.

Like pricing, allocation is pure: it takes the total, a frozen payment
configuration snapshot and the ordered tender attempts, and returns either an
allocation or an ``EngineError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Mapping

from app.pdv.core.error_catalog import EngineError, ErrorCatalog
from app.pdv.core.money import ZERO, ValueKind, apply_kind, money_str, to_money


class TenderKind(str, Enum):
    CASH = "cash"
    PIX = "pix"
    PIX_QR = "pix_qr"
    DEBIT = "debit"
    CREDIT = "credit"
    DEFERRED_CREDIT = "deferred_credit"


class FeeResponsibility(str, Enum):
    CUSTOMER = "customer"
    STORE = "store"


@dataclass(frozen=True)
class MethodConfig:
    enabled: bool = True
    fee: Decimal = ZERO
    fee_kind: ValueKind = ValueKind.PERCENTAGE
    fee_responsibility: FeeResponsibility | None = None


@dataclass(frozen=True)
class PaymentConfig:
    methods: Mapping[TenderKind, MethodConfig]
    default_fee_responsibility: FeeResponsibility = FeeResponsibility.CUSTOMER

    def method(self, kind: TenderKind) -> MethodConfig | None:
        return self.methods.get(kind)

    def responsibility_for(self, kind: TenderKind) -> FeeResponsibility:
        method = self.methods.get(kind)
        if method is not None and method.fee_responsibility is not None:
            return method.fee_responsibility
        return self.default_fee_responsibility


@dataclass(frozen=True)
class TenderAttempt:
    kind: TenderKind
    amount: Decimal


@dataclass(frozen=True)
class AllocatedTender:
    kind: TenderKind
    amount: Decimal
    fee: Decimal
    store_fee: Decimal
    charge_amount: Decimal
    net_amount: Decimal
    remaining_before: Decimal


@dataclass(frozen=True)
class AllocationResult:
    total: Decimal
    tenders: tuple[AllocatedTender, ...] = ()
    paid_total: Decimal = ZERO
    remaining: Decimal = ZERO
    change: Decimal = ZERO
    fees: Decimal = ZERO
    final_amount: Decimal = ZERO
    payable: bool = False
    error: EngineError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def has_deferred_credit(self) -> bool:
        return any(tender.kind == TenderKind.DEFERRED_CREDIT for tender in self.tenders)


def compute_fee(amount: Decimal, method: MethodConfig) -> Decimal:
    return apply_kind(amount, method.fee, method.fee_kind)


def _reject(total: Decimal, error, **details) -> AllocationResult:
    return AllocationResult(total=total, error=EngineError(error, details=details))


def allocate_payment(
    total: Decimal,
    tenders: list[TenderAttempt] | tuple[TenderAttempt, ...],
    config: PaymentConfig,
    *,
    customer_id: str | None = None,
) -> AllocationResult:
    total = to_money(total)
    accepted: list[AllocatedTender] = []
    paid = ZERO
    cash_paid = ZERO

    for index, attempt in enumerate(tenders):
        kind = TenderKind(attempt.kind)
        amount = to_money(attempt.amount)
        if amount <= 0:
            return _reject(
                total,
                ErrorCatalog.INVALID_PAYMENT_AMOUNT,
                index=index,
                kind=kind.value,
                message="amount must be greater than 0",
            )
        method = config.method(kind)
        if method is None or not method.enabled:
            return _reject(total, ErrorCatalog.PAYMENT_METHOD_DISABLED, index=index, kind=kind.value)
        if kind == TenderKind.DEFERRED_CREDIT and not customer_id:
            return _reject(total, ErrorCatalog.DEFERRED_CREDIT_REQUIRES_CUSTOMER, index=index)

        remaining_before = total - paid
        if kind != TenderKind.CASH and amount > remaining_before:
            return _reject(
                total,
                ErrorCatalog.INVALID_PAYMENT_AMOUNT,
                index=index,
                kind=kind.value,
                amount=money_str(amount),
                remaining=money_str(max(remaining_before, ZERO)),
                message="non-cash tender exceeds remaining balance",
            )

        fee = compute_fee(amount, method)
        if config.responsibility_for(kind) == FeeResponsibility.CUSTOMER:
            surfaced, absorbed = fee, ZERO
        else:
            surfaced, absorbed = ZERO, fee
        accepted.append(
            AllocatedTender(
                kind=kind,
                amount=amount,
                fee=surfaced,
                store_fee=absorbed,
                charge_amount=amount + surfaced,
                net_amount=amount - absorbed,
                remaining_before=max(remaining_before, ZERO),
            )
        )
        paid += amount
        if kind == TenderKind.CASH:
            cash_paid += amount

    fees = sum((tender.fee for tender in accepted), ZERO)
    # Only cash tenders produce change.
    change = max(cash_paid - total, ZERO)
    return AllocationResult(
        total=total,
        tenders=tuple(accepted),
        paid_total=paid,
        remaining=max(total - paid, ZERO),
        change=change,
        fees=fees,
        final_amount=total + fees,
        payable=to_money(paid) >= total,
    )


def require_payable(result: AllocationResult) -> EngineError | None:
    """Commit-time check: a preview may be partial, a sale may not."""
    if result.error is not None:
        return result.error
    if not result.payable:
        return EngineError(
            ErrorCatalog.INVALID_PAYMENT_AMOUNT,
            details={
                "message": "tendered amount is less than total due",
                "total": money_str(result.total),
                "paid_total": money_str(result.paid_total),
                "remaining": money_str(result.remaining),
            },
        )
    return None
