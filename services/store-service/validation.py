"""Explicit input validation.

Each function takes one request schema and returns every problem it finds
as a list of FieldError pairs; an empty list means the input is valid.
Field names are the camelCase keys clients send.
"""
from decimal import Decimal
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

from config import DB_INT_MAX, PRODUCT_CATEGORIES
from errors import FieldError, ValidationError
from schemas import CreateOrderRequest, LoginRequest, ProductRequest, RegisterRequest

MIN_PRICE = Decimal("0.01")
MAX_PRICE = Decimal("999999.99")


def _check_length(
    errors: List[FieldError],
    field: str,
    value: Optional[str],
    label: str,
    max_length: int,
    min_length: int = 0,
    required: bool = False
) -> None:
    if value is None or not value.strip():
        if required:
            errors.append(FieldError(field, f"{label} is required"))
        return

    # Minimum applies to the trimmed text
    if len(value) > max_length or len(value.strip()) < min_length:
        if min_length:
            errors.append(FieldError(
                field, f"{label} must be between {min_length} and {max_length} characters"
            ))
        else:
            errors.append(FieldError(field, f"{label} cannot exceed {max_length} characters"))


def ensure_valid(errors: List[FieldError]) -> None:
    """Raise ValidationError if any errors were collected."""
    if errors:
        raise ValidationError(errors)


def validate_product(data: ProductRequest) -> List[FieldError]:
    """Validate a product create/replace payload."""
    errors: List[FieldError] = []

    _check_length(errors, "name", data.name, "Product name", 100, min_length=2, required=True)
    _check_length(errors, "description", data.description, "Description", 500)
    _check_length(errors, "imageUrl", data.image_url, "Image URL", 500)

    if data.price is None:
        errors.append(FieldError("price", "Price is required"))
    elif data.price < MIN_PRICE or data.price > MAX_PRICE:
        errors.append(FieldError("price", "Price must be between $0.01 and $999,999.99"))

    if not data.category or not data.category.strip():
        errors.append(FieldError("category", "Category is required"))
    elif data.category not in PRODUCT_CATEGORIES:
        errors.append(FieldError(
            "category", f"Category must be one of: {', '.join(PRODUCT_CATEGORIES)}"
        ))

    if data.stock_quantity < 0:
        errors.append(FieldError("stockQuantity", "Stock quantity cannot be negative"))
    elif data.stock_quantity > DB_INT_MAX:
        errors.append(FieldError("stockQuantity", f"Stock quantity cannot exceed {DB_INT_MAX}"))

    return errors


def validate_order(data: CreateOrderRequest) -> List[FieldError]:
    """Validate an order placement payload."""
    errors: List[FieldError] = []

    if not data.items:
        errors.append(FieldError("items", "At least one item is required"))

    for index, line in enumerate(data.items):
        if line.quantity < 1:
            errors.append(FieldError(f"items[{index}].quantity", "Quantity must be at least 1"))

    _check_length(
        errors, "shippingAddress", data.shipping_address, "Shipping address", 200, required=True
    )
    _check_length(errors, "notes", data.notes, "Notes", 500)

    return errors


def validate_registration(data: RegisterRequest) -> List[FieldError]:
    """Validate a registration payload."""
    errors: List[FieldError] = []

    _check_length(errors, "firstName", data.first_name, "First name", 50, min_length=2, required=True)
    _check_length(errors, "lastName", data.last_name, "Last name", 50, min_length=2, required=True)

    if not data.email or not data.email.strip():
        errors.append(FieldError("email", "Email is required"))
    else:
        try:
            validate_email(data.email, check_deliverability=False)
        except EmailNotValidError:
            errors.append(FieldError("email", "Invalid email address"))

    if not data.password:
        errors.append(FieldError("password", "Password is required"))
    elif not 6 <= len(data.password) <= 100:
        errors.append(FieldError("password", "Password must be at least 6 characters"))

    if not data.confirm_password:
        errors.append(FieldError("confirmPassword", "Confirm password is required"))
    elif data.confirm_password != data.password:
        errors.append(FieldError("confirmPassword", "Passwords do not match"))

    return errors


def validate_login(data: LoginRequest) -> List[FieldError]:
    """Validate a login payload."""
    errors: List[FieldError] = []
    if not data.email or not data.email.strip():
        errors.append(FieldError("email", "Email is required"))
    if not data.password:
        errors.append(FieldError("password", "Password is required"))
    return errors
