# Overview: Service-layer operations for the stock ledger; per-variant availability and guarded decrements.

"""
Stock ledger invariants (authoritative)

- Stock lives on ProductVariant rows, keyed within a product by exact
  (size, color) string equality. When a pair is duplicated the first variant
  by position governs.
- fullstock products are always available and never decremented; their
  counters are informational only.
- stock never goes below zero. decrement_stock() is a single conditional
  UPDATE (stock >= quantity) so two concurrent orders cannot both consume
  the last units; the loser gets InsufficientStockError.
- Nothing here commits unless asked to; the order path composes these calls
  inside its own transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, ProductVariant
from ..time_utils import utcnow
from ..validation import ValidationError
from .concurrency import lock_for_update

STOCK_STATUS_IN = "In Stock"
STOCK_STATUS_LOW = "Low Stock"
STOCK_STATUS_OUT = "Out of Stock"


class StockError(Exception):
    """Raised for stock ledger errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(StockError):
    """A decrement would drive a variant below zero."""


@dataclass
class OutOfStockItem:
    product_id: int
    product_name: str
    size: str
    color: str
    available_stock: int
    requested_quantity: int

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "size": self.size,
            "color": self.color,
            "available_stock": self.available_stock,
            "requested_quantity": self.requested_quantity,
        }


@dataclass
class StockCheck:
    has_sufficient_stock: bool
    out_of_stock_items: list[OutOfStockItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "has_sufficient_stock": self.has_sufficient_stock,
            "out_of_stock_items": [i.to_dict() for i in self.out_of_stock_items],
        }


@dataclass
class ResolvedLine:
    """A requested line matched to its product and (unless fullstock) variant."""
    item: object
    product: Product
    variant: ProductVariant | None


def _load_product(product_id: int, *, lock: bool = False) -> Product | None:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def check_availability(product_id: int, size: str, color: str, quantity: int) -> bool:
    """
    Can this variant supply `quantity` units right now?

    Missing products/variants and backend failures answer False.
    """
    try:
        product = _load_product(product_id)
    except SQLAlchemyError:
        current_app.logger.warning("Stock availability lookup failed for product %s", product_id, exc_info=True)
        return False

    if product is None:
        return False
    if product.fullstock:
        return True

    variant = product.find_variant(size, color)
    return variant is not None and variant.stock >= quantity


def scan_order_lines(items: Iterable, *, strict: bool, lock: bool = False) -> tuple[list[ResolvedLine], list[OutOfStockItem]]:
    """
    Resolve each requested line and collect every stock shortfall.

    strict=True: a missing product or variant raises StockError immediately
    (fail-fast). strict=False: it is reported as a shortfall with zero
    availability.

    Lines that hit the same variant share its stock: each line is checked
    against what earlier lines in the same request left over.
    """
    resolved: list[ResolvedLine] = []
    shortfalls: list[OutOfStockItem] = []
    claimed: dict[int, int] = {}
    products: dict[int, Product | None] = {}

    for item in items:
        product_id = item.product_id
        if product_id not in products:
            products[product_id] = _load_product(product_id, lock=lock)
        product = products[product_id]
        name = getattr(item, "product_name", None) or (product.title if product else "Unknown product")

        if product is None:
            if strict:
                raise StockError(
                    f"Product not found: {name}",
                    details={"product_id": product_id},
                )
            shortfalls.append(OutOfStockItem(product_id, name, item.size, item.color, 0, item.quantity))
            continue

        if product.fullstock:
            resolved.append(ResolvedLine(item, product, None))
            continue

        variant = product.find_variant(item.size, item.color)
        if variant is None:
            if strict:
                raise StockError(
                    f"Variant not found for {name} ({item.size}, {item.color})",
                    details={"product_id": product_id, "size": item.size, "color": item.color},
                )
            shortfalls.append(OutOfStockItem(product_id, name, item.size, item.color, 0, item.quantity))
            continue

        available = max(variant.stock - claimed.get(variant.id, 0), 0)
        if available < item.quantity:
            shortfalls.append(OutOfStockItem(product_id, name, item.size, item.color, available, item.quantity))
        claimed[variant.id] = claimed.get(variant.id, 0) + item.quantity
        resolved.append(ResolvedLine(item, product, variant))

    return resolved, shortfalls


def check_order_stock(items: Iterable) -> StockCheck:
    """Read-only pre-flight of a cart; never mutates anything."""
    try:
        _, shortfalls = scan_order_lines(items, strict=False)
    except SQLAlchemyError as exc:
        raise StockError("Failed to check stock") from exc
    return StockCheck(has_sufficient_stock=not shortfalls, out_of_stock_items=shortfalls)


def decrement_stock(product_id: int, size: str, color: str, quantity: int, *, commit: bool = True) -> None:
    """
    Remove `quantity` units from one variant.

    No-op for fullstock products. Raises InsufficientStockError when the
    variant holds fewer than `quantity` units at the moment of the write.
    """
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")

    product = _load_product(product_id)
    if product is None:
        raise StockError("Product not found", details={"product_id": product_id})
    if product.fullstock:
        return

    variant = product.find_variant(size, color)
    if variant is None:
        raise StockError(
            "Variant not found",
            details={"product_id": product_id, "size": size, "color": color},
        )

    result = db.session.execute(
        update(ProductVariant)
        .where(ProductVariant.id == variant.id, ProductVariant.stock >= quantity)
        .values(stock=ProductVariant.stock - quantity)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount != 1:
        db.session.refresh(variant)
        raise InsufficientStockError(
            "Insufficient stock",
            details={
                "product_id": product_id,
                "product_name": product.title,
                "size": size,
                "color": color,
                "available_stock": variant.stock,
                "requested_quantity": quantity,
            },
        )

    product.updated_at = utcnow()

    if commit:
        db.session.commit()


def set_variant_stock(
    product_id: int,
    size: str,
    color: str,
    *,
    stock: int | None = None,
    production: int | None = None,
) -> ProductVariant:
    """Admin correction of a variant's counters (absolute values)."""
    if stock is not None and stock < 0:
        raise ValidationError("stock must be >= 0")
    if production is not None and production < 0:
        raise ValidationError("production must be >= 0")

    product = _load_product(product_id, lock=True)
    if product is None:
        raise StockError("Product not found", details={"product_id": product_id})

    variant = product.find_variant(size, color)
    if variant is None:
        raise StockError(
            "Variant not found",
            details={"product_id": product_id, "size": size, "color": color},
        )

    if stock is not None:
        variant.stock = stock
    if production is not None:
        variant.production = production
    product.updated_at = utcnow()

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StockError("Failed to update product stock") from exc
    return variant


def stock_status(product: Product, threshold: int | None = None) -> str:
    if product.fullstock:
        return STOCK_STATUS_IN
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 3)

    variants = product.variants
    if sum(v.stock for v in variants) == 0:
        return STOCK_STATUS_OUT
    if any(0 < v.stock <= threshold for v in variants):
        return STOCK_STATUS_LOW
    return STOCK_STATUS_IN


def _tracked_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.active.is_(True), Product.fullstock.is_(False))
        .order_by(Product.title.asc())
        .all()
    )


def get_low_stock_products(threshold: int | None = None) -> list[Product]:
    """Active, tracked products with at least one variant at 0 < stock <= threshold."""
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 3)
    return [
        p for p in _tracked_products()
        if any(0 < v.stock <= threshold for v in p.variants)
    ]


def get_out_of_stock_products() -> list[Product]:
    """Active, tracked products whose every variant is at zero."""
    return [
        p for p in _tracked_products()
        if all(v.stock == 0 for v in p.variants)
    ]
