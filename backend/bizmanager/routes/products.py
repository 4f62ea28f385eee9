# Overview: Flask API routes for products, categories and stock; parses input and returns JSON responses.

# backend/bizmanager/routes/products.py
"""
Product management routes.

- Read operations: any approved principal
- Write operations: admin only
"""
from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_principal, require_role
from ..models import ROLE_ADMIN
from ..services import products_service, stock_service
from ..services.products_service import ProductError
from ..services.stock_service import StockError
from ..validation import ConflictError, ValidationError, coerce_int, require_text

products_bp = Blueprint("products", __name__, url_prefix="/api/products")
categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


def _product_payload(product) -> dict:
    data = product.to_dict()
    data["stock_status"] = stock_service.stock_status(product)
    return data


@products_bp.get("")
@require_principal
def list_products():
    """
    Query params:
    - include_inactive: "true" to include deactivated products
    - category_id: int (optional)
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    category_id = request.args.get("category_id", type=int)
    try:
        products = products_service.list_products(include_inactive=include_inactive, category_id=category_id)
    except ProductError:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"items": [_product_payload(p) for p in products], "count": len(products)}), 200


@products_bp.get("/low-stock")
@require_principal
@require_role(ROLE_ADMIN)
def low_stock_products():
    threshold = request.args.get("threshold", type=int)
    products = stock_service.get_low_stock_products(threshold)
    return jsonify({"items": [_product_payload(p) for p in products], "count": len(products)}), 200


@products_bp.get("/out-of-stock")
@require_principal
@require_role(ROLE_ADMIN)
def out_of_stock_products():
    products = stock_service.get_out_of_stock_products()
    return jsonify({"items": [_product_payload(p) for p in products], "count": len(products)}), 200


@products_bp.get("/<int:product_id>")
@require_principal
def get_product_route(product_id: int):
    product = products_service.get_product(product_id)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(_product_payload(product)), 200


@products_bp.post("")
@require_principal
@require_role(ROLE_ADMIN)
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.create_product(payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ProductError:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(_product_payload(product)), 201


@products_bp.patch("/<int:product_id>")
@require_principal
@require_role(ROLE_ADMIN)
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product(product_id, payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ProductError as e:
        if str(e) == "Product not found":
            return jsonify({"error": str(e)}), 404
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(_product_payload(product)), 200


@products_bp.delete("/<int:product_id>")
@require_principal
@require_role(ROLE_ADMIN)
def delete_product_route(product_id: int):
    """Soft delete: the product is deactivated, never removed."""
    try:
        product = products_service.deactivate_product(product_id)
    except ProductError as e:
        if str(e) == "Product not found":
            return jsonify({"error": str(e)}), 404
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(_product_payload(product)), 200


@products_bp.put("/<int:product_id>/stock")
@require_principal
@require_role(ROLE_ADMIN)
def set_variant_stock_route(product_id: int):
    """Body: {size, color, stock?, production?} with absolute values."""
    data = request.get_json(silent=True) or {}
    try:
        size = require_text(data.get("size"), "size")
        color = require_text(data.get("color", "Default"), "color")
        stock = data.get("stock")
        production = data.get("production")
        variant = stock_service.set_variant_stock(
            product_id,
            size,
            color,
            stock=None if stock is None else coerce_int(stock, "stock", minimum=0),
            production=None if production is None else coerce_int(production, "production", minimum=0),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StockError as e:
        if e.details:
            return jsonify({"error": str(e), "details": e.details}), 404
        current_app.logger.exception("Failed to update product stock")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(variant.to_dict()), 200


@categories_bp.get("")
@require_principal
def list_categories_route():
    categories = products_service.list_categories()
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)}), 200


@categories_bp.post("")
@require_principal
@require_role(ROLE_ADMIN)
def create_category_route():
    data = request.get_json(silent=True) or {}
    try:
        category = products_service.create_category(data.get("name"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ProductError:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(category.to_dict()), 201
