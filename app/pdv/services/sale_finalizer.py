"""Atomic sale commit.

A commit attempt moves through ``priced -> stock_reserved -> committed`` or
ends ``aborted``. Everything from the first stock decrement to the register
movement runs in one database transaction; any failure rolls the whole
attempt back before the error is raised.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy.exc import IntegrityError, OperationalError

from app.pdv.core.config import settings
from app.pdv.core.error_catalog import AppError, ErrorCatalog
from app.pdv.core.errors import is_lock_conflict
from app.pdv.core.logging import log_json
from app.pdv.core.metrics import metrics
from app.pdv.core.money import money_str
from app.pdv.db.models import (
    CustomerPurchase,
    DeferredPayment,
    PosPayment,
    PosSale,
    PosSaleLine,
    StockMovement,
    utcnow,
)
from app.pdv.repos.catalog import ProductRepository
from app.pdv.repos.customers import CustomerRepository
from app.pdv.repos.deferred_payments import DeferredPaymentRepository
from app.pdv.repos.pos_sales import PosSaleRepository
from app.pdv.services.cash_session import CashSessionLedger
from app.pdv.services.payment_allocation import (
    AllocationResult,
    TenderAttempt,
    TenderKind,
    allocate_payment,
    require_payable,
)
from app.pdv.services.payment_settings import PaymentSettingsService
from app.pdv.services.pricing import Adjustment, Cart, CartItem, PricingResult, price_cart

logger = logging.getLogger("pdv.sales")


@dataclass(frozen=True)
class SaleItemRequest:
    product_id: str
    qty: int
    discount: Adjustment = field(default_factory=Adjustment)


@dataclass(frozen=True)
class SaleRequest:
    items: tuple[SaleItemRequest, ...]
    tenders: tuple[TenderAttempt, ...]
    discount: Adjustment = field(default_factory=Adjustment)
    addition: Adjustment = field(default_factory=Adjustment)
    customer_id: str | None = None


def aggregate_quantities(items) -> dict[str, int]:
    """Total quantity per distinct product, ordered by product id.

    Stock rows are decremented in this order, so two carts sharing products
    always lock them in the same sequence.
    """
    totals: dict[str, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.qty
    return dict(sorted(totals.items()))


class SaleFinalizer:
    def __init__(self, db, *, trace_id: str | None = None):
        self.db = db
        self.trace_id = trace_id
        self.products = ProductRepository(db)
        self.customers = CustomerRepository(db)
        self.sales = PosSaleRepository(db)
        self.deferred = DeferredPaymentRepository(db)
        self.ledger = CashSessionLedger(db)

    def _log(self, event: str, sale_id, **fields) -> None:
        payload = {"event": event, "sale_id": str(sale_id), "trace_id": self.trace_id}
        payload.update(fields)
        log_json(logger, payload)

    def commit_sale(self, request: SaleRequest, seller) -> PosSale:
        sale_id = uuid.uuid4()
        try:
            sale = self._commit(request, seller, sale_id)
        except AppError as exc:
            self.db.rollback()
            self._abort(sale_id, exc.error.code, exc.details)
            raise
        except (IntegrityError, OperationalError) as exc:
            self.db.rollback()
            details = {"type": exc.__class__.__name__}
            if isinstance(exc, OperationalError) and not is_lock_conflict(exc):
                self._abort(sale_id, ErrorCatalog.DB_UNAVAILABLE.code, details)
                raise AppError(ErrorCatalog.DB_UNAVAILABLE, details=details) from exc
            metrics.increment_concurrency_conflict()
            self._abort(sale_id, ErrorCatalog.CONCURRENCY_CONFLICT.code, details)
            raise AppError(ErrorCatalog.CONCURRENCY_CONFLICT, details=details) from exc
        metrics.increment_sale_committed()
        self._log(
            "sale_attempt.committed",
            sale.id,
            seller_id=str(seller.id),
            total=money_str(sale.total),
            final_amount=money_str(sale.final_amount),
        )
        return sale

    def _abort(self, sale_id, code: str, details) -> None:
        metrics.increment_sale_aborted(code)
        self._log("sale_attempt.aborted", sale_id, error_code=code, details=details)

    def _price(self, request: SaleRequest, customer):
        product_ids = list(dict.fromkeys(item.product_id for item in request.items))
        products = self.products.get_many(product_ids)
        for product_id in product_ids:
            product = products.get(product_id)
            if product is None or not product.active:
                raise AppError(ErrorCatalog.PRODUCT_NOT_FOUND, details={"product_id": product_id})

        cart = Cart(
            items=tuple(
                CartItem(
                    product_id=item.product_id,
                    unit_price=products[item.product_id].sale_price,
                    qty=item.qty,
                    discount=item.discount,
                )
                for item in request.items
            ),
            discount=request.discount,
            addition=request.addition,
            customer_id=str(customer.id) if customer is not None else None,
        )
        pricing: PricingResult = price_cart(cart)
        if pricing.error is not None:
            raise pricing.error.to_app_error()

        config = PaymentSettingsService(self.db).snapshot()
        allocation: AllocationResult = allocate_payment(
            pricing.total, request.tenders, config, customer_id=cart.customer_id
        )
        rejection = require_payable(allocation)
        if rejection is not None:
            raise rejection.to_app_error()
        return products, pricing, allocation

    def _commit(self, request: SaleRequest, seller, sale_id) -> PosSale:
        customer = None
        if request.customer_id:
            customer = self.customers.get_by_id(request.customer_id)
            if customer is None:
                raise AppError(ErrorCatalog.CUSTOMER_NOT_FOUND, details={"customer_id": request.customer_id})

        products, pricing, allocation = self._price(request, customer)
        register = self.ledger.require_open_session(seller.id)
        self._log(
            "sale_attempt.priced",
            sale_id,
            seller_id=str(seller.id),
            total=money_str(pricing.total),
            fees=money_str(allocation.fees),
            final_amount=money_str(allocation.final_amount),
        )

        stock_changes = []
        for product_id, qty in aggregate_quantities(request.items).items():
            new_stock = self.products.decrement_stock(product_id, qty)
            if new_stock is None:
                available = self.products.current_stock(product_id)
                raise AppError(
                    ErrorCatalog.INSUFFICIENT_STOCK,
                    details={
                        "product_id": product_id,
                        "requested": qty,
                        "available": available if available is not None else 0,
                    },
                )
            stock_changes.append((product_id, qty, new_stock))
        self._log("sale_attempt.stock_reserved", sale_id, products=len(stock_changes))

        now = utcnow()
        sale = PosSale(
            id=sale_id,
            seller_user_id=seller.id,
            seller_name=seller.full_name,
            customer_id=customer.id if customer is not None else None,
            customer_name=customer.name if customer is not None else None,
            cash_session_id=register.id,
            subtotal=pricing.subtotal,
            discount_value=request.discount.value,
            discount_kind=request.discount.kind.value,
            discount_amount=pricing.discount_amount,
            addition_value=request.addition.value,
            addition_kind=request.addition.kind.value,
            addition_amount=pricing.addition_amount,
            total=pricing.total,
            fees=allocation.fees,
            final_amount=allocation.final_amount,
            paid_total=allocation.paid_total,
            change_due=allocation.change,
            created_at=now,
        )
        self.sales.add(sale)
        self.db.flush()

        for position, line in enumerate(pricing.lines):
            product = products[line.item.product_id]
            self.db.add(
                PosSaleLine(
                    sale_id=sale_id,
                    position=position,
                    product_id=product.id,
                    product_code=product.code,
                    product_name=product.name,
                    unit_price=line.item.unit_price,
                    qty=line.item.qty,
                    discount_value=line.item.discount.value,
                    discount_kind=line.item.discount.kind.value,
                    discount_amount=line.discount_amount,
                    line_total=line.line_total,
                    net_total=line.net_total,
                )
            )
        for position, tender in enumerate(allocation.tenders):
            self.db.add(
                PosPayment(
                    sale_id=sale_id,
                    position=position,
                    kind=tender.kind.value,
                    amount=tender.amount,
                    fee=tender.fee,
                    store_fee=tender.store_fee,
                    charge_amount=tender.charge_amount,
                    net_amount=tender.net_amount,
                )
            )
            if tender.kind == TenderKind.DEFERRED_CREDIT:
                self.deferred.create(
                    DeferredPayment(
                        sale_id=sale_id,
                        customer_id=customer.id,
                        customer_name=customer.name,
                        amount=tender.amount,
                        due_date=now.date() + timedelta(days=settings.DEFERRED_PAYMENT_TERM_DAYS),
                        is_paid=False,
                        created_at=now,
                    )
                )

        for product_id, qty, new_stock in stock_changes:
            self.products.add_movement(
                StockMovement(
                    product_id=products[product_id].id,
                    sale_id=sale_id,
                    movement_type="OUT",
                    quantity=qty,
                    previous_stock=new_stock + qty,
                    new_stock=new_stock,
                    reason="sale",
                    user_id=seller.id,
                    created_at=now,
                )
            )

        if customer is not None:
            self.customers.append_purchase(
                CustomerPurchase(
                    customer_id=customer.id,
                    sale_id=sale_id,
                    purchased_at=now,
                    amount=allocation.final_amount,
                )
            )

        self.ledger.append_sale_movement(
            register,
            actor_user_id=seller.id,
            sale_id=sale_id,
            amount=allocation.final_amount,
        )
        self.db.commit()
        return self.sales.get_by_id(sale_id)
