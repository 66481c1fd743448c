"""Shared fixtures: in-memory SQLite, seeded users, API client."""
import os

# Must be set before any service module reads config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OTEL_ENABLED"] = "false"
os.environ["PYROSCOPE_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SEED_DATABASE"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from config import ROLE_ADMIN, ROLE_USER  # noqa: E402
from database import SessionLocal, engine  # noqa: E402
from main import app  # noqa: E402
from models import Base, Product  # noqa: E402
from schemas import LoginRequest  # noqa: E402
from services.auth_service import AuthService  # noqa: E402
from services.order_service import OrderService  # noqa: E402
from services.product_service import ProductService  # noqa: E402

ADMIN_EMAIL = "admin@test.com"
ADMIN_PASSWORD = "Admin123!"
SHOPPER_EMAIL = "shopper@test.com"
SHOPPER_PASSWORD = "Shopper123!"
OTHER_EMAIL = "other@test.com"
OTHER_PASSWORD = "Other123!"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def product_service():
    return ProductService()


@pytest.fixture
def order_service(product_service):
    return OrderService(product_service)


@pytest.fixture
def auth_service():
    return AuthService()


@pytest.fixture
def make_product(db):
    def _make_product(name="Widget", price="10.00", stock=10, category="Electronics",
                      is_active=True, description=None):
        product = Product(
            name=name,
            description=description,
            price=Decimal(price),
            category=category,
            stock_quantity=stock,
            is_active=is_active
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make_product


@pytest.fixture
def users(db, auth_service):
    admin = auth_service.create_user(db, ADMIN_EMAIL, ADMIN_PASSWORD, "Admin", "User", [ROLE_ADMIN])
    shopper = auth_service.create_user(db, SHOPPER_EMAIL, SHOPPER_PASSWORD, "Sam", "Shopper", [ROLE_USER])
    other = auth_service.create_user(db, OTHER_EMAIL, OTHER_PASSWORD, "Olive", "Other", [ROLE_USER])
    db.commit()
    return {"admin": admin.id, "shopper": shopper.id, "other": other.id}


def _bearer(db, auth_service, email, password):
    _, session = auth_service.login(db, LoginRequest(email=email, password=password))
    return {"Authorization": f"Bearer {session.token}"}


@pytest.fixture
def admin_headers(db, auth_service, users):
    return _bearer(db, auth_service, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def shopper_headers(db, auth_service, users):
    return _bearer(db, auth_service, SHOPPER_EMAIL, SHOPPER_PASSWORD)


@pytest.fixture
def other_headers(db, auth_service, users):
    return _bearer(db, auth_service, OTHER_EMAIL, OTHER_PASSWORD)


@pytest.fixture
def stock_of(db):
    """Fresh stock level straight from the database."""
    def _stock_of(product_id):
        db.expire_all()
        return db.get(Product, product_id).stock_quantity

    return _stock_of
