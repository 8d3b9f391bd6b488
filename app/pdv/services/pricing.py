"""Cart pricing.

Pure functions over an immutable cart snapshot. Nothing here touches the
database, so the same code backs the live preview endpoint and the
server-side re-pricing done by the sale finalizer.

Per line the discount is clamped to ``[0, line_total]``. Cart level discount
and addition are both resolved against the subtotal of the discounted lines
(siblings, never stacked), and only the final total is clamped to zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from app.pdv.core.error_catalog import EngineError, ErrorCatalog
from app.pdv.core.money import ZERO, ValueKind, apply_kind, to_money


@dataclass(frozen=True)
class Adjustment:
    value: Decimal = ZERO
    kind: ValueKind = ValueKind.FIXED

    def amount_for(self, base: Decimal) -> Decimal:
        return apply_kind(base, self.value, self.kind)


@dataclass(frozen=True)
class CartItem:
    product_id: str
    unit_price: Decimal
    qty: int
    discount: Adjustment = field(default_factory=Adjustment)


@dataclass(frozen=True)
class Cart:
    items: tuple[CartItem, ...]
    discount: Adjustment = field(default_factory=Adjustment)
    addition: Adjustment = field(default_factory=Adjustment)
    customer_id: str | None = None


@dataclass(frozen=True)
class PricedLine:
    item: CartItem
    line_total: Decimal
    discount_amount: Decimal
    net_total: Decimal


@dataclass(frozen=True)
class PricingResult:
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    addition_amount: Decimal = ZERO
    total: Decimal = ZERO
    lines: tuple[PricedLine, ...] = ()
    error: EngineError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _invalid(message: str, **details) -> PricingResult:
    return PricingResult(error=EngineError(ErrorCatalog.INVALID_CART, details={"message": message, **details}))


def _validate(cart: Cart) -> PricingResult | None:
    if not cart.items:
        return _invalid("cart is empty")
    for index, item in enumerate(cart.items):
        if item.qty < 1:
            return _invalid("qty must be at least 1", index=index, product_id=item.product_id)
        if item.unit_price < 0:
            return _invalid("unit_price must not be negative", index=index, product_id=item.product_id)
        if item.discount.value < 0:
            return _invalid("discount must not be negative", index=index, product_id=item.product_id)
    if cart.discount.value < 0:
        return _invalid("cart discount must not be negative")
    if cart.addition.value < 0:
        return _invalid("cart addition must not be negative")
    return None


def price_line(item: CartItem) -> PricedLine:
    line_total = to_money(to_money(item.unit_price) * item.qty)
    discount_amount = min(max(item.discount.amount_for(line_total), ZERO), line_total)
    return PricedLine(
        item=item,
        line_total=line_total,
        discount_amount=discount_amount,
        net_total=line_total - discount_amount,
    )


def price_cart(cart: Cart) -> PricingResult:
    invalid = _validate(cart)
    if invalid is not None:
        return invalid

    lines = tuple(price_line(item) for item in cart.items)
    subtotal = to_money(sum((line.net_total for line in lines), ZERO))
    discount_amount = cart.discount.amount_for(subtotal)
    addition_amount = cart.addition.amount_for(subtotal)
    total = max(subtotal - discount_amount + addition_amount, ZERO)
    return PricingResult(
        subtotal=subtotal,
        discount_amount=discount_amount,
        addition_amount=addition_amount,
        total=to_money(total),
        lines=lines,
    )
