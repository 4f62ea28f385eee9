# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/bizmanager/routes/orders.py
"""Order API routes: stock pre-flight, creation, listing and deliveries."""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_principal, require_role
from ..models import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_SALESMAN
from ..services import order_service, delivery_service, stock_service
from ..services.order_service import OrderError
from ..services.stock_service import StockError
from ..validation import ValidationError, coerce_int


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _json_body() -> dict:
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


@orders_bp.post("/stock-check")
@require_principal
@require_role(ROLE_ADMIN, ROLE_SALESMAN)
def stock_check_route():
    """Pre-flight a cart without creating anything."""
    try:
        data = _json_body()
        items = order_service.parse_draft_items(data.get("items"))
        result = stock_service.check_order_stock(items)
        return jsonify(result.to_dict()), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StockError:
        current_app.logger.exception("Failed to check order stock")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("")
@require_principal
@require_role(ROLE_ADMIN, ROLE_SALESMAN)
def create_order_route():
    """
    Create an order.

    Salesmen may only create orders under their own id; it is filled in
    when omitted.
    """
    try:
        data = _json_body()
        if g.current_user.role == ROLE_SALESMAN:
            salesman_id = data.get("salesman_id")
            salesman_id = g.current_user.id if salesman_id is None else coerce_int(salesman_id, "salesman_id")
            if salesman_id != g.current_user.id:
                return jsonify({"error": "Salesmen can only create their own orders"}), 403
            data["salesman_id"] = salesman_id
        draft = order_service.parse_draft(data)
        result = order_service.create_order(draft)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderError:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500

    if result.success:
        return jsonify(result.to_dict()), 201
    status = 409 if result.out_of_stock_items else 400
    return jsonify(result.to_dict()), status


@orders_bp.get("")
@require_principal
def list_orders_route():
    """
    Salesmen and customers only ever see their own orders.
    """
    user = g.current_user
    salesman_id = request.args.get("salesman_id", type=int)
    customer_id = request.args.get("customer_id", type=int)
    status = request.args.get("status")

    if user.role == ROLE_SALESMAN:
        salesman_id = user.id
    elif user.role == ROLE_CUSTOMER:
        customer_id = user.id
    elif user.role != ROLE_ADMIN:
        return jsonify({"error": "Forbidden"}), 403

    try:
        orders = order_service.list_orders(salesman_id=salesman_id, customer_id=customer_id, status=status)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderError:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "orders": [o.to_dict() for o in orders],
        "count": len(orders),
    }), 200


@orders_bp.get("/<int:order_id>")
@require_principal
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
    except OrderError:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500

    user = g.current_user
    if order is None or (
        (user.role == ROLE_SALESMAN and order.salesman_id != user.id)
        or (user.role == ROLE_CUSTOMER and order.customer_id != user.id)
    ):
        return jsonify({"error": "Order not found"}), 404

    return jsonify({
        "order": order.to_dict(),
        "delivery_summary": delivery_service.get_order_delivery_summary(order),
    }), 200


@orders_bp.post("/<int:order_id>/deliveries")
@require_principal
@require_role(ROLE_ADMIN)
def record_delivery_route(order_id: int):
    """Apply incremental delivery quantities to an order's lines."""
    try:
        data = _json_body()
        events = delivery_service.parse_delivery_events(data.get("delivered_items"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    result = delivery_service.update_order_partial_delivery(order_id, events)
    if result.success:
        return jsonify(result.to_dict()), 200
    if result.message == "Order not found":
        return jsonify(result.to_dict()), 404
    return jsonify(result.to_dict()), 400
