# Overview: Flask API routes for profit, sales and leaderboard reports over stored orders.

from flask import Blueprint, jsonify, request, g, current_app

from ..decorators import require_principal, require_role
from ..models import Order, ROLE_ADMIN, ROLE_SALESMAN
from ..services import order_service, reporting_service
from ..time_utils import parse_iso_datetime


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _orders(salesman_id: int | None = None) -> list[Order]:
    return order_service.list_orders(salesman_id=salesman_id)


def _as_of():
    """Optional ?as_of=ISO-8601 pins "now" for period boundaries."""
    return parse_iso_datetime(request.args.get("as_of"))


def _scope() -> int | None:
    # Salesmen only ever report on their own orders.
    if g.current_user.role == ROLE_SALESMAN:
        return g.current_user.id
    return request.args.get("salesman_id", type=int)


@reports_bp.get("/profit")
@require_principal
@require_role(ROLE_ADMIN, ROLE_SALESMAN)
def profit_report():
    period = request.args.get("period", "monthly")
    try:
        as_of = _as_of()
    except ValueError:
        return jsonify({"error": "as_of must be an ISO-8601 datetime"}), 400
    orders = _orders(_scope())

    if period == "weekly":
        rows = reporting_service.calculate_weekly_profit(orders, now=as_of)
    elif period == "monthly":
        months = request.args.get("months", type=int)
        if months:
            try:
                rows = reporting_service.get_complete_monthly_data(orders, months)
            except reporting_service.ReportError as exc:
                return jsonify({"error": str(exc)}), 400
        else:
            rows = reporting_service.calculate_monthly_profit(orders)
    elif period == "yearly":
        rows = reporting_service.calculate_yearly_profit(orders, now=as_of)
    else:
        return jsonify({"error": "period must be weekly, monthly, or yearly"}), 400

    return jsonify({"period": period, "rows": rows}), 200


@reports_bp.get("/sales")
@require_principal
@require_role(ROLE_ADMIN, ROLE_SALESMAN)
def monthly_sales_report():
    return jsonify({"rows": reporting_service.calculate_monthly_sales(_orders(_scope()))}), 200


@reports_bp.get("/top-products")
@require_principal
@require_role(ROLE_ADMIN, ROLE_SALESMAN)
def top_products_report():
    limit = request.args.get("limit", type=int) or current_app.config.get("TOP_PRODUCTS_LIMIT", 5)
    return jsonify({"rows": reporting_service.get_top_products(_orders(_scope()), limit)}), 200


@reports_bp.get("/top-customers")
@require_principal
@require_role(ROLE_ADMIN, ROLE_SALESMAN)
def top_customers_report():
    limit = request.args.get("limit", type=int) or 5
    return jsonify({"rows": reporting_service.get_top_customers(_orders(_scope()), limit)}), 200


@reports_bp.get("/salesmen/<int:salesman_id>/performance")
@require_principal
@require_role(ROLE_ADMIN, ROLE_SALESMAN)
def salesman_performance_report(salesman_id: int):
    if g.current_user.role == ROLE_SALESMAN and salesman_id != g.current_user.id:
        return jsonify({"error": "Forbidden"}), 403
    orders = _orders(salesman_id)
    return jsonify(reporting_service.calculate_salesman_performance(orders, salesman_id)), 200
