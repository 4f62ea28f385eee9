import pytest

from bizmanager.services import products_service
from bizmanager.services.products_service import ProductError
from bizmanager.validation import ConflictError, ValidationError


def _payload(**overrides):
    payload = {
        "title": "Oxford Shirt",
        "selling_price_cents": 2500,
        "cost_price_cents": 1200,
        "variants": [
            {"size": "M", "color": "White", "stock": 4},
            {"size": "L", "stock": 1},
        ],
    }
    payload.update(overrides)
    return payload


def test_create_product_with_ordered_variants(db_session):
    product = products_service.create_product(_payload())

    assert product.id is not None
    assert product.active is True
    assert product.fullstock is False
    assert [(v.size, v.color, v.stock) for v in product.variants] == [
        ("M", "White", 4),
        ("L", "Default", 1),
    ]


def test_create_product_validation(db_session):
    with pytest.raises(ValidationError):
        products_service.create_product({"title": "No price"})
    with pytest.raises(ValidationError):
        products_service.create_product(_payload(selling_price_cents=-1))
    with pytest.raises(ValidationError):
        products_service.create_product(_payload(selling_price_cents="12.50"))
    with pytest.raises(ValidationError):
        products_service.create_product(_payload(sku="NOPE"))
    with pytest.raises(ValidationError):
        products_service.create_product(_payload(variants=[
            {"size": "M", "color": "White"},
            {"size": "M", "color": "White"},
        ]))
    with pytest.raises(ValidationError):
        products_service.create_product(_payload(variants=[{"size": "M", "stock": -2}]))


def test_update_product_replaces_variants(db_session):
    product = products_service.create_product(_payload())
    updated = products_service.update_product(product.id, {
        "title": "Oxford Shirt II",
        "variants": [{"size": "S", "color": "Blue", "stock": 9}],
    })

    assert updated.title == "Oxford Shirt II"
    assert [(v.size, v.color, v.stock) for v in updated.variants] == [("S", "Blue", 9)]

    with pytest.raises(ProductError):
        products_service.update_product(999999, {"title": "Missing"})


def test_deactivate_product_is_soft(db_session):
    product = products_service.create_product(_payload())
    products_service.deactivate_product(product.id)

    assert products_service.get_product(product.id).active is False
    assert products_service.list_products() == []
    assert [p.id for p in products_service.list_products(include_inactive=True)] == [product.id]


def test_categories(db_session):
    shirts = products_service.create_category("Shirts")
    products_service.create_category("Accessories")

    with pytest.raises(ConflictError):
        products_service.create_category("Shirts")
    with pytest.raises(ValidationError):
        products_service.create_category("  ")

    assert [c.name for c in products_service.list_categories()] == ["Accessories", "Shirts"]

    product = products_service.create_product(_payload(category_id=shirts.id))
    assert product.to_dict()["category"] == "Shirts"
    assert [p.id for p in products_service.list_products(category_id=shirts.id)] == [product.id]

    with pytest.raises(ValidationError):
        products_service.create_product(_payload(category_id=424242))
