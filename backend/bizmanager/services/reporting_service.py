# Overview: Side-effect-free folds over order collections for dashboards and reports.

"""
Reporting policy

- Only orders with status == Delivered count towards realized profit/sales
  series and product leaderboards. Pending and partially delivered orders
  contribute nothing there.
- Period boundaries depend on `now` (UTC-naive, defaults to utcnow()); pass
  it explicitly for reproducible output.
- Amounts are integer cents; derived percentages and averages round half-up.

Every function accepts any iterable of objects shaped like models.Order.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from ..models import ORDER_STATUS_DELIVERED
from ..time_utils import month_start, shift_months, utcnow

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


def _round_div(numerator: int, denominator: int) -> int:
    # half-up for non-negative numerators
    return (numerator + denominator // 2) // denominator


def _delivered(orders: Iterable) -> list:
    return [o for o in orders if o.status == ORDER_STATUS_DELIVERED]


def month_label(dt: datetime) -> str:
    return f"{MONTH_NAMES[dt.month - 1]} {dt.year}"


def calculate_weekly_profit(orders: Iterable, now: datetime | None = None) -> list[dict]:
    """
    Profit of the last 7 calendar days (today included), oldest first,
    keyed by weekday name.
    """
    now = now or utcnow()
    today = now.date()
    buckets: dict[str, int] = {}
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        buckets[DAY_NAMES[day.weekday()]] = 0

    for order in _delivered(orders):
        created = order.created_at.date()
        age = (today - created).days
        if 0 <= age <= 6:
            buckets[DAY_NAMES[created.weekday()]] += order.total_profit_cents or 0

    return [{"period": day, "profit_cents": profit} for day, profit in buckets.items()]


def calculate_monthly_profit(orders: Iterable) -> list[dict]:
    """Delivered profit per calendar month, chronological."""
    buckets: dict[datetime, int] = {}
    for order in _delivered(orders):
        key = month_start(order.created_at)
        buckets[key] = buckets.get(key, 0) + (order.total_profit_cents or 0)

    return [
        {"month": month_label(start), "month_start": start.date().isoformat(), "profit_cents": profit}
        for start, profit in sorted(buckets.items())
    ]


def get_complete_monthly_data(orders: Iterable, months_to_show: int = 6) -> list[dict]:
    """
    Monthly profit for the `months_to_show` months ending at the latest month
    that has delivered orders, with empty months filled in as zero.
    """
    if months_to_show <= 0:
        raise ReportError("months_to_show must be > 0")

    monthly = calculate_monthly_profit(orders)
    if not monthly:
        return monthly

    by_month = {row["month"]: row["profit_cents"] for row in monthly}
    latest = datetime.fromisoformat(monthly[-1]["month_start"])

    rows = []
    for back in range(months_to_show - 1, -1, -1):
        start = shift_months(latest, -back)
        label = month_label(start)
        rows.append({
            "month": label,
            "month_start": start.date().isoformat(),
            "profit_cents": by_month.get(label, 0),
        })
    return rows


def calculate_yearly_profit(orders: Iterable, now: datetime | None = None) -> list[dict]:
    """Delivered profit per month of the current year, Jan..Dec."""
    year = (now or utcnow()).year
    profits = [0] * 12
    for order in _delivered(orders):
        if order.created_at.year == year:
            profits[order.created_at.month - 1] += order.total_profit_cents or 0

    return [
        {"period": f"{MONTH_NAMES[i]} {year}", "profit_cents": profit}
        for i, profit in enumerate(profits)
    ]


def calculate_monthly_sales(orders: Iterable) -> list[dict]:
    """Delivered order value per calendar month, chronological."""
    buckets: dict[datetime, int] = {}
    for order in _delivered(orders):
        key = month_start(order.created_at)
        buckets[key] = buckets.get(key, 0) + (order.total_amount_cents or 0)

    return [
        {"month": month_label(start), "month_start": start.date().isoformat(), "sales_cents": sales}
        for start, sales in sorted(buckets.items())
    ]


def get_top_products(orders: Iterable, limit: int = 5) -> list[dict]:
    """Best sellers among delivered orders: units sold, then profit."""
    products: dict[int, dict] = {}
    for order in _delivered(orders):
        for item in order.items:
            row = products.setdefault(item.product_id, {
                "product_id": item.product_id,
                "name": item.product_name,
                "units_sold": 0,
                "profit_cents": 0,
            })
            row["units_sold"] += item.quantity
            row["profit_cents"] += (item.final_price_cents - item.cost_price_cents) * item.quantity

    ranked = sorted(products.values(), key=lambda r: (-r["units_sold"], -r["profit_cents"], r["product_id"]))
    return ranked[:limit]


def calculate_salesman_performance(orders: Iterable, salesman_id: int) -> dict:
    """
    totals over all of the salesman's orders; sales and profit from delivered ones only.
    """
    own = [o for o in orders if o.salesman_id == salesman_id]
    delivered = _delivered(own)

    total_sales = sum(o.total_amount_cents or 0 for o in delivered)
    total_profit = sum(o.total_profit_cents or 0 for o in delivered)

    return {
        "total_orders": len(own),
        "delivered_orders": len(delivered),
        "total_sales_cents": total_sales,
        "total_profit_cents": total_profit,
        "average_order_value_cents": _round_div(total_sales, len(delivered)) if delivered else 0,
        "completion_rate": _round_div(len(delivered) * 100, len(own)) if own else 0,
    }


def get_top_customers(orders: Iterable, limit: int = 5) -> list[dict]:
    """Customers ranked by pieces actually delivered to them."""
    customers: dict[int, dict] = {}
    for order in orders:
        row = customers.setdefault(order.customer_id, {
            "customer_id": order.customer_id,
            "customer_name": order.customer_name,
            "orders": 0,
            "delivered_pieces": 0,
            "delivered_amount_cents": 0,
        })
        row["orders"] += 1
        row["delivered_pieces"] += sum(i.delivered_quantity or 0 for i in order.items)
        row["delivered_amount_cents"] += order.delivered_amount_cents or 0

    ranked = sorted(
        (r for r in customers.values() if r["delivered_pieces"] > 0),
        key=lambda r: (-r["delivered_pieces"], -r["delivered_amount_cents"], r["customer_id"]),
    )
    return ranked[:limit]
