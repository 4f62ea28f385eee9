# Overview: Service-layer reconciliation of delivery events against persisted orders.

"""
Delivery semantics (authoritative)

- Events are incremental: each names a line (product_id, size, color) and
  the units handed over now.
- A line's delivered_quantity is clamped to its ordered quantity; asking for
  more than remains is not an error. When one variant appears on several
  lines, units fill those lines in position order.
- delivered_amount/profit grow by the units actually applied (the clamped
  delta). DELIVERY_CREDIT_REQUESTED_QUANTITY=True credits the requested
  units instead.
- Status is recomputed from the full item list after every call.
- Stock and salesman aggregates are never touched here; they were settled
  against ordered quantities when the order was created.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import (
    Order,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_PARTIALLY_DELIVERED,
    ORDER_STATUS_PENDING,
)
from ..time_utils import utcnow
from ..validation import ValidationError, coerce_int, require_text
from .concurrency import lock_for_update


@dataclass
class DeliveryEvent:
    product_id: int
    size: str
    color: str
    delivered_quantity: int


@dataclass
class DeliveryResult:
    success: bool
    message: str | None = None
    status: str | None = None

    def to_dict(self) -> dict:
        data: dict = {"success": self.success}
        if self.message:
            data["message"] = self.message
        if self.status:
            data["status"] = self.status
        return data


def parse_delivery_events(raw) -> list[DeliveryEvent]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("delivered_items must be a non-empty list")
    events = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"delivered_items[{i}] must be an object")
        events.append(DeliveryEvent(
            product_id=coerce_int(entry.get("product_id"), f"delivered_items[{i}].product_id"),
            size=require_text(entry.get("size"), f"delivered_items[{i}].size"),
            color=require_text(entry.get("color", "Default"), f"delivered_items[{i}].color"),
            delivered_quantity=coerce_int(
                entry.get("delivered_quantity"), f"delivered_items[{i}].delivered_quantity", minimum=0
            ),
        ))
    return events


def derive_order_status(items) -> str:
    """
    Pure function of per-line delivered vs ordered quantities.

    Delivered: every line complete.
    Partially Delivered: some line has 0 < delivered < quantity.
    Pending: otherwise.
    """
    items = list(items)
    if items and all((i.delivered_quantity or 0) >= i.quantity for i in items):
        return ORDER_STATUS_DELIVERED
    if any(0 < (i.delivered_quantity or 0) < i.quantity for i in items):
        return ORDER_STATUS_PARTIALLY_DELIVERED
    return ORDER_STATUS_PENDING


def get_order_delivery_summary(order) -> dict:
    """Progress figures for display and for gating further deliveries."""
    total = sum(i.quantity for i in order.items)
    delivered = sum(i.delivered_quantity or 0 for i in order.items)
    remaining = total - delivered
    progress = (delivered * 100 + total // 2) // total if total else 0
    return {
        "total_items": total,
        "delivered_items": delivered,
        "remaining_items": remaining,
        "progress": progress,
        "is_fully_delivered": total > 0 and remaining == 0,
        "is_partially_delivered": delivered > 0 and remaining > 0,
    }


def _apply(order_id: int, events: list[DeliveryEvent]) -> DeliveryResult:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        return DeliveryResult(success=False, message="Order not found")

    credit_requested = current_app.config.get("DELIVERY_CREDIT_REQUESTED_QUANTITY", False)

    # Resolve every event before mutating so a bad event leaves the order untouched.
    targets = []
    for event in events:
        lines = [i for i in order.items if i.matches(event.product_id, event.size, event.color)]
        if not lines:
            db.session.rollback()
            return DeliveryResult(
                success=False,
                message=f"Order item not found: product {event.product_id} ({event.size}, {event.color})",
            )
        targets.append((lines, event))

    batch_amount = 0
    batch_profit = 0
    for lines, event in targets:
        # Repeated lines for one variant fill in position order.
        remaining = event.delivered_quantity
        for line in lines:
            before = line.delivered_quantity or 0
            applied = min(remaining, line.quantity - before)
            if applied <= 0:
                continue
            line.delivered_quantity = before + applied
            remaining -= applied
            if not credit_requested:
                batch_amount += applied * line.final_price_cents
                batch_profit += applied * (line.final_price_cents - line.cost_price_cents)

        if credit_requested:
            first = lines[0]
            batch_amount += event.delivered_quantity * first.final_price_cents
            batch_profit += event.delivered_quantity * (first.final_price_cents - first.cost_price_cents)

    order.status = derive_order_status(order.items)
    order.delivered_amount_cents = (order.delivered_amount_cents or 0) + batch_amount
    order.delivered_profit_cents = (order.delivered_profit_cents or 0) + batch_profit
    order.updated_at = utcnow()

    db.session.commit()
    current_app.logger.info(
        "Order %s delivery applied (%s events), status now %s", order_id, len(targets), order.status
    )
    return DeliveryResult(success=True, status=order.status)


def update_order_partial_delivery(order_id: int, delivered_items: list[DeliveryEvent]) -> DeliveryResult:
    """
    Apply a batch of delivery events to one order.

    Every outcome, including backend failures, is reported as a DeliveryResult.
    A failed write is not retried.
    """
    if not delivered_items:
        return DeliveryResult(success=False, message="No delivered items supplied")
    for event in delivered_items:
        if event.delivered_quantity < 0:
            return DeliveryResult(success=False, message="delivered_quantity must be >= 0")

    try:
        return _apply(order_id, delivered_items)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to update delivery for order %s", order_id)
        return DeliveryResult(success=False, message="Failed to update order delivery")
