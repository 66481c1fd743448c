from decimal import Decimal

import pytest

from config import DB_INT_MAX
from schemas import CreateOrderRequest, OrderLineRequest, ProductRequest, RegisterRequest
from validation import validate_order, validate_product, validate_registration


def product(**overrides):
    fields = {"name": "Desk Lamp", "price": Decimal("19.99"), "category": "Home & Garden", "stock_quantity": 3}
    fields.update(overrides)
    return ProductRequest(**fields)


def fields_of(errors):
    return [error.field for error in errors]


def test_valid_product_has_no_errors():
    assert validate_product(product()) == []


@pytest.mark.parametrize("overrides,field", [
    ({"name": ""}, "name"),
    ({"name": "L"}, "name"),
    ({"name": "L" * 101}, "name"),
    ({"description": "d" * 501}, "description"),
    ({"image_url": "/" * 501}, "imageUrl"),
    ({"price": Decimal("0.00")}, "price"),
    ({"price": Decimal("1000000.00")}, "price"),
    ({"category": ""}, "category"),
    ({"category": "Lamps"}, "category"),
    ({"stock_quantity": -1}, "stockQuantity"),
])
def test_product_field_rules(overrides, field):
    assert fields_of(validate_product(product(**overrides))) == [field]


@pytest.mark.parametrize("price", [Decimal("0.01"), Decimal("999999.99")])
def test_price_bounds_are_inclusive(price):
    assert validate_product(product(price=price)) == []


def test_category_must_match_exactly():
    assert fields_of(validate_product(product(category="electronics"))) == ["category"]


def test_order_line_errors_are_indexed():
    request = CreateOrderRequest(
        items=[OrderLineRequest(product_id=1, quantity=2), OrderLineRequest(product_id=2, quantity=-1)],
        shipping_address="42 Elm Street"
    )

    errors = validate_order(request)

    assert fields_of(errors) == ["items[1].quantity"]


def test_order_limits():
    request = CreateOrderRequest(
        items=[OrderLineRequest(product_id=1, quantity=1)],
        shipping_address="a" * 201,
        notes="n" * 501
    )

    assert fields_of(validate_order(request)) == ["shippingAddress", "notes"]


def test_registration_messages():
    errors = validate_registration(RegisterRequest(
        first_name="Grace", last_name="Hopper", email="grace@example.com",
        password="cobol59", confirm_password="cobol60"
    ))

    assert [(e.field, e.message) for e in errors] == [("confirmPassword", "Passwords do not match")]


def test_name_minimum_uses_trimmed_text():
    assert fields_of(validate_product(product(name="  a  "))) == ["name"]
    assert validate_product(product(name="  ab  ")) == []


def test_stock_quantity_upper_bound():
    assert fields_of(validate_product(product(stock_quantity=DB_INT_MAX + 1))) == ["stockQuantity"]
    assert validate_product(product(stock_quantity=DB_INT_MAX)) == []


def test_padded_shipping_address_is_required():
    request = CreateOrderRequest(items=[OrderLineRequest(product_id=1, quantity=1)], shipping_address="   ")

    assert fields_of(validate_order(request)) == ["shippingAddress"]
