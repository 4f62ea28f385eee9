"""
Order creation: validation order, stock effects and salesman aggregates.
"""

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from bizmanager.models import Order, OrderItem, ProductVariant, User, ORDER_STATUS_PENDING
from bizmanager.services import order_service
from bizmanager.services.order_service import DraftItem, OrderDraft, OrderError
from bizmanager.validation import ValidationError

from conftest import make_product


def _draft(customer, salesman, *items, worker_id=None):
    return OrderDraft(customer_id=customer.id, salesman_id=salesman.id, items=list(items), worker_id=worker_id)


def _item(product, quantity, size="M", color="Default", discount=0, price=10000, **extra):
    return DraftItem(
        product_id=product.id,
        size=size,
        color=color,
        quantity=quantity,
        selling_price_cents=price,
        discount_given_cents=discount,
        **extra,
    )


def test_create_order_decrements_stock(db_session, customer, salesman, product):
    result = order_service.create_order(_draft(customer, salesman, _item(product, 3)))

    assert result.success is True
    assert result.order_id is not None
    db_session.expire_all()
    assert product.variants[0].stock == 2

    order = db_session.get(Order, result.order_id)
    assert order.status == ORDER_STATUS_PENDING
    assert order.customer_name == "Corner Boutique"
    assert order.salesman_name == "Sam Seller"
    assert order.total_amount_cents == 30000
    assert order.total_cost_cents == 18000
    assert order.total_profit_cents == 12000
    assert order.delivered_amount_cents == 0
    assert order.items[0].delivered_quantity == 0
    assert order.items[0].product_name == "P1"


def test_create_order_insufficient_stock(db_session, customer, salesman, product):
    result = order_service.create_order(_draft(customer, salesman, _item(product, 6)))

    assert result.success is False
    assert len(result.out_of_stock_items) == 1
    shortfall = result.out_of_stock_items[0]
    assert shortfall.product_name == "P1"
    assert shortfall.size == "M"
    assert shortfall.color == "Default"
    assert shortfall.available_stock == 5

    db_session.expire_all()
    assert product.variants[0].stock == 5
    assert db_session.query(Order).count() == 0


def test_shortfalls_are_reported_exhaustively(db_session, customer, salesman, product):
    other = make_product(db_session, "P2", [("L", "Blue", 1)])
    result = order_service.create_order(_draft(
        customer, salesman,
        _item(product, 6),
        _item(other, 2, size="L", color="Blue"),
    ))

    assert result.success is False
    assert [i.product_name for i in result.out_of_stock_items] == ["P1", "P2"]
    db_session.expire_all()
    assert product.variants[0].stock == 5
    assert other.variants[0].stock == 1


def test_no_partial_decrement_when_one_line_fails(db_session, customer, salesman, product):
    other = make_product(db_session, "P2", [("L", "Blue", 1)])
    result = order_service.create_order(_draft(
        customer, salesman,
        _item(product, 2),
        _item(other, 2, size="L", color="Blue"),
    ))

    assert result.success is False
    db_session.expire_all()
    assert product.variants[0].stock == 5
    assert other.variants[0].stock == 1


def test_fullstock_lines_skip_stock(db_session, customer, salesman):
    tee = make_product(db_session, "Tee", [("Free", "Default", 0)], fullstock=True)
    result = order_service.create_order(_draft(customer, salesman, _item(tee, 100, size="Free")))

    assert result.success is True
    db_session.expire_all()
    assert tee.variants[0].stock == 0


def test_missing_variant_fails_fast(db_session, customer, salesman, product):
    result = order_service.create_order(_draft(customer, salesman, _item(product, 1, size="XXL")))
    assert result.success is False
    assert result.out_of_stock_items is None
    assert "Variant not found" in result.message


def test_missing_product_fails_fast(db_session, customer, salesman, product):
    ghost = DraftItem(product_id=777777, size="M", color="Default", quantity=1,
                      selling_price_cents=100, product_name="Ghost")
    result = order_service.create_order(_draft(customer, salesman, ghost))
    assert result.success is False
    assert result.message == "Product not found: Ghost"


def test_unknown_customer(db_session, salesman, product):
    draft = OrderDraft(customer_id=555555, salesman_id=salesman.id, items=[_item(product, 1)])
    result = order_service.create_order(draft)
    assert result.success is False
    assert result.message == "Customer not found"
    db_session.expire_all()
    assert product.variants[0].stock == 5


def test_unknown_salesman(db_session, customer, product):
    draft = OrderDraft(customer_id=customer.id, salesman_id=555555, items=[_item(product, 1)])
    result = order_service.create_order(draft)
    assert result.success is False
    assert result.message == "Salesman not found"
    assert db_session.query(Order).count() == 0
    db_session.expire_all()
    assert product.variants[0].stock == 5


def test_discount_over_ceiling_writes_nothing(db_session, customer, salesman, product):
    result = order_service.create_order(_draft(customer, salesman, _item(product, 1, discount=1100)))

    assert result.success is False
    assert result.message.startswith("Discount validation failed for")
    assert "Discount cannot exceed 10%" in result.message
    db_session.expire_all()
    assert product.variants[0].stock == 5
    assert db_session.query(Order).count() == 0


def test_discounted_line_pricing_and_salesman_stats(db_session, customer, salesman, product):
    result = order_service.create_order(_draft(customer, salesman, _item(product, 2, discount=1000)))
    assert result.success is True

    item = db_session.query(OrderItem).filter_by(order_id=result.order_id).one()
    assert item.final_price_cents == 9000
    assert item.discount_given_cents == 1000
    assert item.cost_price_cents == 6000

    db_session.expire_all()
    seller = db_session.get(User, salesman.id)
    assert seller.total_sales_cents == 18000
    assert seller.total_discount_given_cents == 2000
    assert seller.total_profit_generated_cents == 6000


def test_explicit_final_price_is_kept(db_session, customer, salesman, product):
    result = order_service.create_order(_draft(
        customer, salesman,
        _item(product, 1, final_price_cents=9500, cost_price_cents=5000),
    ))
    order = db_session.get(Order, result.order_id)
    assert order.total_amount_cents == 9500
    assert order.total_cost_cents == 5000


def test_worker_name_snapshot(db_session, customer, salesman, product):
    worker = User(name="Wes", role="worker", approved=True, salesman_id=salesman.id)
    db_session.add(worker)
    db_session.commit()

    result = order_service.create_order(_draft(customer, salesman, _item(product, 1), worker_id=worker.id))
    order = db_session.get(Order, result.order_id)
    assert order.worker_name == "Wes"

    result = order_service.create_order(_draft(customer, salesman, _item(product, 1), worker_id=424242))
    assert result.success is True
    orphan = db_session.get(Order, result.order_id)
    assert orphan.worker_name is None
    assert orphan.worker_id is None


def test_second_order_sees_first_decrement(db_session, customer, salesman, product):
    assert order_service.create_order(_draft(customer, salesman, _item(product, 3))).success
    second = order_service.create_order(_draft(customer, salesman, _item(product, 3)))
    assert second.success is False
    assert second.out_of_stock_items[0].available_stock == 2


def test_list_orders_filters(db_session, customer, salesman, product):
    first = order_service.create_order(_draft(customer, salesman, _item(product, 1))).order_id
    second = order_service.create_order(_draft(customer, salesman, _item(product, 1))).order_id

    assert [o.id for o in order_service.list_orders(salesman_id=salesman.id)] == [second, first]
    assert order_service.list_orders(customer_id=salesman.id) == []
    assert len(order_service.list_orders(status=ORDER_STATUS_PENDING)) == 2
    with pytest.raises(ValidationError):
        order_service.list_orders(status="Shipped")


def test_parse_draft_validates_payload():
    draft = order_service.parse_draft({
        "customer_id": 1,
        "salesman_id": "2",
        "items": [{"product_id": 3, "size": "M", "quantity": 2, "selling_price_cents": 500}],
    })
    assert draft.items[0].color == "Default"
    assert draft.items[0].unit_price_cents == 500

    with pytest.raises(ValidationError):
        order_service.parse_draft({"customer_id": 1, "salesman_id": 2, "items": []})
    with pytest.raises(ValidationError):
        order_service.parse_draft({
            "customer_id": 1,
            "salesman_id": 2,
            "items": [{"product_id": 3, "size": "M", "quantity": 0}],
        })


def test_lost_race_at_decrement_rolls_back(db_session, monkeypatch, customer, salesman, product):
    real_scan = order_service.scan_order_lines
    variant_id = product.variants[0].id

    def scan_then_competing_sale(items, **kwargs):
        resolved, shortfalls = real_scan(items, **kwargs)
        # Another order takes four units after the scan saw five.
        db_session.execute(
            update(ProductVariant).where(ProductVariant.id == variant_id).values(stock=1)
        )
        return resolved, shortfalls

    monkeypatch.setattr(order_service, "scan_order_lines", scan_then_competing_sale)
    result = order_service.create_order(_draft(customer, salesman, _item(product, 3)))

    assert result.success is False
    assert result.message == "Insufficient stock for one or more items"
    assert len(result.out_of_stock_items) == 1
    shortfall = result.out_of_stock_items[0]
    assert shortfall.product_id == product.id
    assert shortfall.available_stock == 1
    assert shortfall.requested_quantity == 3

    assert db_session.query(Order).count() == 0
    assert db_session.query(OrderItem).count() == 0
    db_session.expire_all()
    assert product.variants[0].stock == 5
    assert db_session.get(User, salesman.id).total_sales_cents == 0


def test_backend_failure_raises_without_retry(db_session, monkeypatch, customer, salesman, product):
    calls = []

    def locked(draft):
        calls.append(draft)
        raise OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))

    monkeypatch.setattr(order_service, "_assemble", locked)
    with pytest.raises(OrderError) as exc:
        order_service.create_order(_draft(customer, salesman, _item(product, 1)))

    assert str(exc.value) == "Failed to create order"
    assert len(calls) == 1
    db_session.expire_all()
    assert product.variants[0].stock == 5
