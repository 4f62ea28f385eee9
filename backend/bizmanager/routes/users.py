# Overview: Flask API routes for user administration and discount checks.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_principal, require_role
from ..models import ROLE_ADMIN, ROLE_SALESMAN
from ..services import user_service
from ..services.discount_service import DiscountError, validate_discount
from ..services.user_service import UserError
from ..validation import ValidationError, coerce_float, coerce_int


users_bp = Blueprint("users", __name__, url_prefix="/api/users")
discounts_bp = Blueprint("discounts", __name__, url_prefix="/api/discounts")


def _user_error(e: UserError, action: str):
    if str(e) == "User not found":
        return jsonify({"error": str(e)}), 404
    if e.details:
        return jsonify({"error": str(e), "details": e.details}), 400
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500


@users_bp.get("")
@require_principal
@require_role(ROLE_ADMIN)
def list_users_route():
    role = request.args.get("role")
    approved_arg = request.args.get("approved")
    approved = None if approved_arg is None else approved_arg.lower() == "true"
    try:
        users = user_service.list_users(role=role, approved=approved)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except UserError as e:
        return _user_error(e, "list users")
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)}), 200


@users_bp.post("")
@require_principal
@require_role(ROLE_ADMIN)
def create_user_route():
    try:
        user = user_service.create_user(request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except UserError as e:
        return _user_error(e, "create user")
    return jsonify(user.to_dict()), 201


@users_bp.get("/customers")
@require_principal
@require_role(ROLE_ADMIN, ROLE_SALESMAN)
def list_customers_route():
    """Salesmen get their own customers; admins may filter by salesman_id."""
    salesman_id = request.args.get("salesman_id", type=int)
    if g.current_user.role == ROLE_SALESMAN:
        salesman_id = g.current_user.id
    try:
        customers = user_service.list_customers(salesman_id)
    except UserError as e:
        return _user_error(e, "list customers")
    return jsonify({"users": [u.to_dict() for u in customers], "count": len(customers)}), 200


@users_bp.get("/workers")
@require_principal
@require_role(ROLE_ADMIN, ROLE_SALESMAN)
def list_workers_route():
    salesman_id = request.args.get("salesman_id", type=int)
    if g.current_user.role == ROLE_SALESMAN:
        salesman_id = g.current_user.id
    if salesman_id is None:
        return jsonify({"error": "salesman_id is required"}), 400
    try:
        workers = user_service.list_workers(salesman_id)
    except UserError as e:
        return _user_error(e, "list workers")
    return jsonify({"users": [u.to_dict() for u in workers], "count": len(workers)}), 200


@users_bp.post("/<int:user_id>/approve")
@require_principal
@require_role(ROLE_ADMIN)
def approve_user_route(user_id: int):
    try:
        user = user_service.approve_user(user_id)
    except UserError as e:
        return _user_error(e, "approve user")
    return jsonify(user.to_dict()), 200


@users_bp.post("/<int:user_id>/revoke")
@require_principal
@require_role(ROLE_ADMIN)
def revoke_user_route(user_id: int):
    try:
        user = user_service.revoke_user_approval(user_id)
    except UserError as e:
        return _user_error(e, "revoke user approval")
    return jsonify(user.to_dict()), 200


@users_bp.post("/<int:user_id>/role")
@require_principal
@require_role(ROLE_ADMIN)
def change_role_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        user = user_service.change_user_role(user_id, data.get("role"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except UserError as e:
        return _user_error(e, "change user role")
    return jsonify(user.to_dict()), 200


@users_bp.put("/<int:user_id>/max-discount")
@require_principal
@require_role(ROLE_ADMIN)
def set_max_discount_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        percent = coerce_float(data.get("max_discount_percent"), "max_discount_percent")
        user = user_service.set_max_discount(user_id, percent)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except UserError as e:
        return _user_error(e, "update discount ceiling")
    return jsonify(user.to_dict()), 200


@discounts_bp.post("/validate")
@require_principal
@require_role(ROLE_ADMIN, ROLE_SALESMAN)
def validate_discount_route():
    """Body: {salesman_id?, discount_percent}. Salesmen check their own ceiling."""
    data = request.get_json(silent=True) or {}
    try:
        salesman_id = data.get("salesman_id")
        if g.current_user.role == ROLE_SALESMAN or salesman_id is None:
            salesman_id = g.current_user.id
        else:
            salesman_id = coerce_int(salesman_id, "salesman_id")
        percent = coerce_float(data.get("discount_percent"), "discount_percent", minimum=0)
        result = validate_discount(salesman_id, percent)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except DiscountError:
        current_app.logger.exception("Failed to validate discount")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result.to_dict()), 200
