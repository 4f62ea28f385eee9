# Overview: Service-layer check of a line discount against the salesman's ceiling.

from __future__ import annotations

import math
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import User


class DiscountError(Exception):
    """Raised when the discount ceiling cannot be read."""


@dataclass
class DiscountCheck:
    is_valid: bool
    max_allowed: float
    message: str | None = None

    def to_dict(self) -> dict:
        data = {"is_valid": self.is_valid, "max_allowed": self.max_allowed}
        if self.message:
            data["message"] = self.message
        return data


def discount_percent(discount_given_cents: int, selling_price_cents: int) -> float:
    """
    Percent-off of one unit. A discount on a zero price is unbounded.
    """
    if discount_given_cents <= 0:
        return 0.0
    if selling_price_cents <= 0:
        return math.inf
    return discount_given_cents * 100 / selling_price_cents


def within_ceiling(percent: float, max_allowed: float) -> bool:
    # Inclusive; the percent is a derived float, so equality is fuzzy.
    return percent <= max_allowed or math.isclose(percent, max_allowed, rel_tol=1e-9, abs_tol=1e-9)


def validate_discount(salesman_id: int, percent: float) -> DiscountCheck:
    """Pure read-and-compare against the salesman's max_discount_percent."""
    try:
        salesman = db.session.get(User, salesman_id)
    except SQLAlchemyError as exc:
        raise DiscountError("Error validating discount") from exc

    if salesman is None:
        return DiscountCheck(is_valid=False, max_allowed=0, message="User not found")

    max_allowed = salesman.max_discount_percent or 0
    if not within_ceiling(percent, max_allowed):
        return DiscountCheck(
            is_valid=False,
            max_allowed=max_allowed,
            message=f"Discount cannot exceed {max_allowed:g}%",
        )

    return DiscountCheck(is_valid=True, max_allowed=max_allowed)
