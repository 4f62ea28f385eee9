# backend/bizmanager/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/bizmanager.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///bizmanager.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Ceiling given to a user promoted to salesman without one
    DEFAULT_MAX_DISCOUNT_PERCENT = float(os.environ.get("DEFAULT_MAX_DISCOUNT_PERCENT", "10"))

    # 0 < stock <= threshold counts as low stock
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "3"))

    TOP_PRODUCTS_LIMIT = int(os.environ.get("TOP_PRODUCTS_LIMIT", "5"))

    # Legacy behaviour: credit delivered amount/profit with the requested
    # (unclamped) quantity instead of the quantity actually applied.
    DELIVERY_CREDIT_REQUESTED_QUANTITY = _env_bool("DELIVERY_CREDIT_REQUESTED_QUANTITY", False)

    USER_APPROVED_DEFAULT = _env_bool("USER_APPROVED_DEFAULT", False)

    CORS_ALLOWED_ORIGINS = tuple(
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:8081,http://127.0.0.1:8081,http://localhost:19006",
        ).split(",")
        if o.strip()
    )
