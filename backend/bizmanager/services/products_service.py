# backend/bizmanager/services/products_service.py
"""
Products Service

- Products are soft-deleted only (active=False); orders keep referencing them.
- A variants payload replaces the whole ordered variant list.
- Stock counters are edited here only as part of a full product edit;
  order-driven decrements go through stock_service.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Category, Product, ProductVariant
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    require_text,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "title", "description", "category_id", "selling_price_cents", "cost_price_cents",
        "images", "active", "fullstock", "variants",
    },
    required_on_create={"title", "selling_price_cents"},
)


class ProductError(Exception):
    """Raised for product operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _commit(message: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise ProductError(message) from exc


def _check_category(category_id: int | None) -> None:
    if category_id is None:
        return
    if db.session.get(Category, category_id) is None:
        raise ValidationError("category not found")


def _replace_variants(product: Product, variants: list[dict]) -> None:
    product.variants = [
        ProductVariant(position=i, **variant)
        for i, variant in enumerate(variants)
    ]


def apply_product_patch(product: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k == "variants":
            _replace_variants(product, v)
        elif k in PRODUCT_POLICY.writable_fields:
            setattr(product, k, v)


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    _check_category(patch.get("category_id"))

    product = Product(images=[], active=True, fullstock=False)
    apply_product_patch(product, patch)
    db.session.add(product)
    _commit("Failed to add product")
    return product


def update_product(product_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)
    if "category_id" in patch:
        _check_category(patch["category_id"])

    product = get_product(product_id)
    if product is None:
        raise ProductError("Product not found", details={"product_id": product_id})

    apply_product_patch(product, patch)
    product.updated_at = utcnow()
    _commit("Failed to update product")
    return product


def deactivate_product(product_id: int) -> Product:
    product = get_product(product_id)
    if product is None:
        raise ProductError("Product not found", details={"product_id": product_id})
    product.active = False
    product.updated_at = utcnow()
    _commit("Failed to delete product")
    return product


def get_product(product_id: int) -> Product | None:
    try:
        return db.session.get(Product, product_id)
    except SQLAlchemyError as exc:
        raise ProductError("Failed to fetch product") from exc


def list_products(*, include_inactive: bool = False, category_id: int | None = None) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.active.is_(True))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    try:
        return query.order_by(Product.created_at.desc(), Product.id.desc()).all()
    except SQLAlchemyError as exc:
        raise ProductError("Failed to fetch products") from exc


def create_category(name) -> Category:
    category = Category(name=require_text(name, "name"), active=True)
    db.session.add(category)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("Category already exists") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise ProductError("Failed to add category") from exc
    return category


def list_categories(*, include_inactive: bool = False) -> list[Category]:
    query = db.session.query(Category)
    if not include_inactive:
        query = query.filter(Category.active.is_(True))
    return query.order_by(Category.name.asc()).all()
