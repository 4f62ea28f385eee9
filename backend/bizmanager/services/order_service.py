"""
Order Service - the only write path that creates orders.

Steps, in order:
1. Discount check for every discounted line (fail-fast, nothing written).
2. Stock scan: a missing product/variant fails fast; shortfalls are
   collected exhaustively and returned together.
3. Customer/salesman lookup and name snapshot, then the order row.
4. Stock decrements (fullstock products skipped) and salesman aggregates.

Steps 2-4 share one write transaction. The decrement is conditional
(stock >= quantity); a writer that loses a race rolls back with no order
row and no partial decrement.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Order, OrderItem, User, ORDER_STATUSES, ORDER_STATUS_PENDING
from ..time_utils import utcnow
from ..validation import ValidationError, coerce_int, require_text
from .concurrency import begin_write
from .discount_service import DiscountError, discount_percent, validate_discount
from .stock_service import (
    InsufficientStockError,
    OutOfStockItem,
    StockError,
    decrement_stock,
    scan_order_lines,
)
from .user_service import update_salesman_stats


class OrderError(Exception):
    """Raised for unexpected order failures (backend/connectivity)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass
class DraftItem:
    product_id: int
    size: str
    color: str
    quantity: int
    selling_price_cents: int
    final_price_cents: int | None = None
    discount_given_cents: int = 0
    cost_price_cents: int | None = None
    product_name: str | None = None

    @property
    def unit_price_cents(self) -> int:
        if self.final_price_cents is not None:
            return self.final_price_cents
        return self.selling_price_cents - self.discount_given_cents


@dataclass
class OrderDraft:
    customer_id: int
    salesman_id: int
    items: list[DraftItem] = field(default_factory=list)
    worker_id: int | None = None
    notes: str | None = None


@dataclass
class OrderResult:
    success: bool
    order_id: int | None = None
    message: str | None = None
    out_of_stock_items: list[OutOfStockItem] | None = None

    def to_dict(self) -> dict:
        data: dict = {"success": self.success}
        if self.order_id is not None:
            data["order_id"] = self.order_id
        if self.message:
            data["message"] = self.message
        if self.out_of_stock_items is not None:
            data["out_of_stock_items"] = [i.to_dict() for i in self.out_of_stock_items]
        return data


def parse_draft_items(raw) -> list[DraftItem]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("items must be a non-empty list")

    items = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"items[{i}] must be an object")
        final_price = entry.get("final_price_cents")
        cost_price = entry.get("cost_price_cents")
        items.append(DraftItem(
            product_id=coerce_int(entry.get("product_id"), f"items[{i}].product_id"),
            size=require_text(entry.get("size"), f"items[{i}].size"),
            color=require_text(entry.get("color", "Default"), f"items[{i}].color"),
            quantity=coerce_int(entry.get("quantity"), f"items[{i}].quantity", minimum=1),
            selling_price_cents=coerce_int(
                entry.get("selling_price_cents", 0), f"items[{i}].selling_price_cents", minimum=0
            ),
            final_price_cents=(
                None if final_price is None
                else coerce_int(final_price, f"items[{i}].final_price_cents", minimum=0)
            ),
            discount_given_cents=coerce_int(
                entry.get("discount_given_cents", 0), f"items[{i}].discount_given_cents", minimum=0
            ),
            cost_price_cents=(
                None if cost_price is None
                else coerce_int(cost_price, f"items[{i}].cost_price_cents", minimum=0)
            ),
            product_name=entry.get("product_name"),
        ))
    return items


def parse_draft(payload: dict) -> OrderDraft:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    worker_id = payload.get("worker_id")
    return OrderDraft(
        customer_id=coerce_int(payload.get("customer_id"), "customer_id"),
        salesman_id=coerce_int(payload.get("salesman_id"), "salesman_id"),
        worker_id=None if worker_id is None else coerce_int(worker_id, "worker_id"),
        items=parse_draft_items(payload.get("items")),
        notes=payload.get("notes"),
    )


def _check_lines(draft: OrderDraft) -> str | None:
    if not draft.items:
        return "Order has no items"
    for item in draft.items:
        if item.quantity <= 0:
            return f"Invalid quantity for {item.product_name or item.product_id}"
        if item.unit_price_cents < 0:
            return f"Discount exceeds price for {item.product_name or item.product_id}"
    return None


def _check_discounts(draft: OrderDraft) -> str | None:
    for item in draft.items:
        if item.discount_given_cents <= 0:
            continue
        percent = discount_percent(item.discount_given_cents, item.selling_price_cents)
        check = validate_discount(draft.salesman_id, percent)
        if not check.is_valid:
            name = item.product_name or f"product {item.product_id}"
            return f"Discount validation failed for {name}: {check.message}"
    return None


def _reject(message: str, out_of_stock_items: list[OutOfStockItem] | None = None) -> OrderResult:
    db.session.rollback()
    return OrderResult(success=False, message=message, out_of_stock_items=out_of_stock_items)


def _assemble(draft: OrderDraft) -> OrderResult:
    begin_write()

    try:
        resolved, shortfalls = scan_order_lines(draft.items, strict=True, lock=True)
    except StockError as exc:
        return _reject(str(exc))
    if shortfalls:
        return _reject("Insufficient stock for one or more items", shortfalls)

    customer = db.session.get(User, draft.customer_id)
    if customer is None:
        return _reject("Customer not found")
    salesman = db.session.get(User, draft.salesman_id)
    if salesman is None:
        return _reject("Salesman not found")
    worker = db.session.get(User, draft.worker_id) if draft.worker_id is not None else None

    now = utcnow()
    order = Order(
        customer_id=customer.id,
        customer_name=customer.name,
        salesman_id=salesman.id,
        salesman_name=salesman.name,
        worker_id=worker.id if worker else None,
        worker_name=worker.name if worker else None,
        status=ORDER_STATUS_PENDING,
        notes=draft.notes,
        delivered_amount_cents=0,
        delivered_profit_cents=0,
        created_at=now,
        updated_at=now,
    )

    total_amount = total_cost = total_discount = 0
    for position, line in enumerate(resolved):
        item, product = line.item, line.product
        cost = item.cost_price_cents if item.cost_price_cents is not None else (product.cost_price_cents or 0)
        unit_price = item.unit_price_cents
        order.items.append(OrderItem(
            position=position,
            product_id=product.id,
            product_name=item.product_name or product.title,
            size=item.size,
            color=item.color,
            quantity=item.quantity,
            cost_price_cents=cost,
            selling_price_cents=item.selling_price_cents,
            final_price_cents=unit_price,
            discount_given_cents=item.discount_given_cents,
            delivered_quantity=0,
        ))
        total_amount += unit_price * item.quantity
        total_cost += cost * item.quantity
        total_discount += item.discount_given_cents * item.quantity

    order.total_amount_cents = total_amount
    order.total_cost_cents = total_cost
    order.total_profit_cents = total_amount - total_cost

    db.session.add(order)
    db.session.flush()

    try:
        for line in resolved:
            if line.product.fullstock:
                continue
            decrement_stock(line.product.id, line.item.size, line.item.color, line.item.quantity, commit=False)
    except InsufficientStockError as exc:
        return _reject(
            "Insufficient stock for one or more items",
            [OutOfStockItem(**exc.details)],
        )

    update_salesman_stats(
        salesman.id,
        order.total_amount_cents,
        total_discount,
        order.total_profit_cents,
        commit=False,
    )

    db.session.commit()
    current_app.logger.info(
        "Order %s created for customer %s by salesman %s (%s lines, total %s)",
        order.id, customer.id, salesman.id, len(resolved), order.total_amount_cents,
    )
    return OrderResult(success=True, order_id=order.id)


def create_order(draft: OrderDraft) -> OrderResult:
    """
    Validate and persist a new order, then apply its stock and salesman effects.

    Business-rule failures come back as OrderResult(success=False, ...);
    out_of_stock_items is set only when stock is the reason.
    Backend failures raise OrderError.
    """
    problem = _check_lines(draft)
    if problem:
        return OrderResult(success=False, message=problem)

    try:
        problem = _check_discounts(draft)
    except DiscountError as exc:
        raise OrderError("Failed to create order") from exc
    if problem:
        return OrderResult(success=False, message=problem)

    try:
        return _assemble(draft)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise OrderError("Failed to create order") from exc


def get_order(order_id: int) -> Order | None:
    try:
        return db.session.get(Order, order_id)
    except SQLAlchemyError as exc:
        raise OrderError("Failed to fetch order") from exc


def list_orders(
    *,
    salesman_id: int | None = None,
    customer_id: int | None = None,
    status: str | None = None,
) -> list[Order]:
    """Orders newest first, optionally filtered."""
    if status is not None and status not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")

    query = db.session.query(Order)
    if salesman_id is not None:
        query = query.filter(Order.salesman_id == salesman_id)
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)
    if status is not None:
        query = query.filter(Order.status == status)

    try:
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()
    except SQLAlchemyError as exc:
        raise OrderError("Failed to fetch orders") from exc
