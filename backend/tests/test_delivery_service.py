"""Delivery reconciliation: clamping, status derivation and delivered totals."""

from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from bizmanager.models import Order, ORDER_STATUS_DELIVERED, ORDER_STATUS_PARTIALLY_DELIVERED, ORDER_STATUS_PENDING
from bizmanager.services import delivery_service, order_service
from bizmanager.services.delivery_service import DeliveryEvent
from bizmanager.services.order_service import DraftItem, OrderDraft
from bizmanager.validation import ValidationError

from conftest import make_product


def _place(customer, salesman, lines):
    """lines: list of (product, size, color, quantity)."""
    result = order_service.create_order(OrderDraft(
        customer_id=customer.id,
        salesman_id=salesman.id,
        items=[
            DraftItem(product_id=p.id, size=s, color=c, quantity=q, selling_price_cents=10000)
            for p, s, c, q in lines
        ],
    ))
    assert result.success, result.message
    return result.order_id


def _deliver(order_id, product, quantity, size="M", color="Default"):
    return delivery_service.update_order_partial_delivery(
        order_id, [DeliveryEvent(product_id=product.id, size=size, color=color, delivered_quantity=quantity)]
    )


def test_partial_then_full_delivery_clamps(db_session, customer, salesman):
    bulk = make_product(db_session, "Bulk", [("M", "Default", 50)])
    order_id = _place(customer, salesman, [(bulk, "M", "Default", 10)])

    first = _deliver(order_id, bulk, 4)
    assert first.success is True
    assert first.status == ORDER_STATUS_PARTIALLY_DELIVERED
    order = db_session.get(Order, order_id)
    assert order.items[0].delivered_quantity == 4

    second = _deliver(order_id, bulk, 10)
    assert second.success is True
    assert second.status == ORDER_STATUS_DELIVERED
    db_session.expire_all()
    order = db_session.get(Order, order_id)
    assert order.items[0].delivered_quantity == 10


def test_delivered_totals_use_applied_units(db_session, customer, salesman):
    bulk = make_product(db_session, "Bulk", [("M", "Default", 50)])
    order_id = _place(customer, salesman, [(bulk, "M", "Default", 10)])

    _deliver(order_id, bulk, 4)
    _deliver(order_id, bulk, 10)

    db_session.expire_all()
    order = db_session.get(Order, order_id)
    # 10 units at 100.00, cost 60.00
    assert order.delivered_amount_cents == 100000
    assert order.delivered_profit_cents == 40000


def test_legacy_credit_of_requested_units(app, db_session, customer, salesman):
    app.config["DELIVERY_CREDIT_REQUESTED_QUANTITY"] = True
    bulk = make_product(db_session, "Bulk", [("M", "Default", 50)])
    order_id = _place(customer, salesman, [(bulk, "M", "Default", 10)])

    _deliver(order_id, bulk, 4)
    _deliver(order_id, bulk, 10)

    db_session.expire_all()
    order = db_session.get(Order, order_id)
    assert order.items[0].delivered_quantity == 10
    assert order.delivered_amount_cents == 140000


def test_delivery_does_not_touch_stock(db_session, customer, salesman, product):
    order_id = _place(customer, salesman, [(product, "M", "Default", 3)])
    _deliver(order_id, product, 3)
    db_session.expire_all()
    assert product.variants[0].stock == 2


def test_repeat_delivery_is_idempotent_on_status(db_session, customer, salesman, product):
    order_id = _place(customer, salesman, [(product, "M", "Default", 2)])
    assert _deliver(order_id, product, 2).status == ORDER_STATUS_DELIVERED
    again = _deliver(order_id, product, 1)
    assert again.success is True
    assert again.status == ORDER_STATUS_DELIVERED
    db_session.expire_all()
    assert db_session.get(Order, order_id).delivered_amount_cents == 20000


def test_unknown_line_leaves_order_untouched(db_session, customer, salesman, product):
    order_id = _place(customer, salesman, [(product, "M", "Default", 2)])
    result = delivery_service.update_order_partial_delivery(order_id, [
        DeliveryEvent(product_id=product.id, size="M", color="Default", delivered_quantity=1),
        DeliveryEvent(product_id=product.id, size="XL", color="Default", delivered_quantity=1),
    ])

    assert result.success is False
    assert result.message.startswith("Order item not found")
    db_session.expire_all()
    order = db_session.get(Order, order_id)
    assert order.items[0].delivered_quantity == 0
    assert order.status == ORDER_STATUS_PENDING


def test_missing_order(db_session, product):
    result = _deliver(31337, product, 1)
    assert result.success is False
    assert result.message == "Order not found"


def test_empty_batch_is_rejected(db_session):
    result = delivery_service.update_order_partial_delivery(1, [])
    assert result.success is False


def test_derive_order_status():
    def line(quantity, delivered):
        return SimpleNamespace(quantity=quantity, delivered_quantity=delivered)

    assert delivery_service.derive_order_status([line(5, 5), line(3, 3)]) == ORDER_STATUS_DELIVERED
    assert delivery_service.derive_order_status([line(5, 2), line(3, 0)]) == ORDER_STATUS_PARTIALLY_DELIVERED
    assert delivery_service.derive_order_status([line(5, 0), line(3, 0)]) == ORDER_STATUS_PENDING
    # One line complete, the other untouched: no line is strictly in progress
    assert delivery_service.derive_order_status([line(5, 5), line(5, 0)]) == ORDER_STATUS_PENDING


def test_delivery_summary():
    order = SimpleNamespace(items=[
        SimpleNamespace(quantity=5, delivered_quantity=5),
        SimpleNamespace(quantity=5, delivered_quantity=0),
    ])
    summary = delivery_service.get_order_delivery_summary(order)

    assert summary["total_items"] == 10
    assert summary["delivered_items"] == 5
    assert summary["remaining_items"] == 5
    assert summary["progress"] == 50
    assert summary["is_partially_delivered"] is True
    assert summary["is_fully_delivered"] is False


def test_delivery_summary_rounds_half_up():
    order = SimpleNamespace(items=[SimpleNamespace(quantity=8, delivered_quantity=1)])
    # 12.5% -> 13
    assert delivery_service.get_order_delivery_summary(order)["progress"] == 13


def test_parse_delivery_events_rejects_negative():
    with pytest.raises(ValidationError):
        delivery_service.parse_delivery_events([
            {"product_id": 1, "size": "M", "delivered_quantity": -1},
        ])


def test_repeated_variant_lines_fill_in_order(db_session, customer, salesman, product):
    order_id = _place(customer, salesman, [
        (product, "M", "Default", 2),
        (product, "M", "Default", 3),
    ])

    result = _deliver(order_id, product, 5)

    assert result.success is True
    assert result.status == ORDER_STATUS_DELIVERED
    db_session.expire_all()
    order = db_session.get(Order, order_id)
    assert [(i.quantity, i.delivered_quantity) for i in order.items] == [(2, 2), (3, 3)]
    assert order.delivered_amount_cents == 50000


def test_repeated_variant_lines_partial_spill(db_session, customer, salesman, product):
    order_id = _place(customer, salesman, [
        (product, "M", "Default", 2),
        (product, "M", "Default", 3),
    ])

    assert _deliver(order_id, product, 3).status == ORDER_STATUS_PARTIALLY_DELIVERED
    db_session.expire_all()
    order = db_session.get(Order, order_id)
    assert [i.delivered_quantity for i in order.items] == [2, 1]


def test_backend_failure_is_reported_without_retry(db_session, monkeypatch, customer, salesman, product):
    order_id = _place(customer, salesman, [(product, "M", "Default", 2)])
    calls = []

    def locked(order_id, events):
        calls.append(order_id)
        raise OperationalError("UPDATE orders", {}, Exception("database is locked"))

    monkeypatch.setattr(delivery_service, "_apply", locked)
    result = _deliver(order_id, product, 1)

    assert result.success is False
    assert result.message == "Failed to update order delivery"
    assert calls == [order_id]
