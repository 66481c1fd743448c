"""Database connection and session management."""
from decimal import Decimal
from typing import Any, Dict, Generator
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from config import DATABASE_URL, SEED_DATABASE
from models import Base, Product
from services.auth_service import AuthService

logger = logging.getLogger(__name__)

SEED_PRODUCTS = [
    {"name": "Laptop Pro 15", "description": "High-performance laptop with 15-inch display",
     "price": Decimal("1299.99"), "category": "Electronics", "stock_quantity": 50,
     "image_url": "/images/laptop.jpg"},
    {"name": "Wireless Mouse", "description": "Ergonomic wireless mouse with long battery life",
     "price": Decimal("29.99"), "category": "Electronics", "stock_quantity": 200,
     "image_url": "/images/mouse.jpg"},
    {"name": "Programming T-Shirt", "description": "Cotton t-shirt with programming humor",
     "price": Decimal("24.99"), "category": "Clothing", "stock_quantity": 100,
     "image_url": "/images/tshirt.jpg"},
    {"name": "Clean Code Book", "description": "A handbook of agile software craftsmanship",
     "price": Decimal("39.99"), "category": "Books", "stock_quantity": 75,
     "image_url": "/images/book.jpg"},
    {"name": "Standing Desk", "description": "Adjustable height standing desk",
     "price": Decimal("499.99"), "category": "Home & Garden", "stock_quantity": 25,
     "image_url": "/images/desk.jpg"},
    {"name": "Yoga Mat", "description": "Non-slip exercise yoga mat",
     "price": Decimal("34.99"), "category": "Sports", "stock_quantity": 150,
     "image_url": "/images/yogamat.jpg"},
    {"name": "Building Blocks Set", "description": "500-piece creative building blocks",
     "price": Decimal("49.99"), "category": "Toys", "stock_quantity": 80,
     "image_url": "/images/blocks.jpg"},
    {"name": "Organic Coffee Beans", "description": "Premium organic coffee beans, 1lb bag",
     "price": Decimal("18.99"), "category": "Food & Beverages", "stock_quantity": 200,
     "image_url": "/images/coffee.jpg"},
    {"name": "Vitamin D Supplements", "description": "Daily vitamin D3 supplements, 90 count",
     "price": Decimal("14.99"), "category": "Health & Beauty", "stock_quantity": 300,
     "image_url": "/images/vitamins.jpg"},
    {"name": "Discontinued Product", "description": "This product is no longer available",
     "price": Decimal("9.99"), "category": "Electronics", "stock_quantity": 0,
     "is_active": False, "image_url": "/images/discontinued.jpg"},
]


def _engine_options(url: str) -> Dict[str, Any]:
    """Pool settings per backend; SQLite cannot take the server pool arguments."""
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if parsed.database in (None, "", ":memory:"):
            # One shared connection so every session sees the same in-memory DB
            options["poolclass"] = StaticPool
        return options

    return {
        "pool_size": 10,
        "max_overflow": 20,  # Burst traffic
        "pool_pre_ping": True,  # Verify connections before use
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_timeout": 30,  # Wait max 30 seconds for a connection
    }


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session.

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def seed_db(db: Session) -> None:
    """Insert demo accounts and catalog if they are missing."""
    AuthService().ensure_seed_users(db)

    if db.query(Product).count() == 0:
        db.add_all([Product(**fields) for fields in SEED_PRODUCTS])
        db.commit()
        logger.info("Seeded database with sample products", extra={
            "product_count": len(SEED_PRODUCTS)
        })


def init_db() -> None:
    """Initialize database tables and seed data."""
    Base.metadata.create_all(bind=engine)

    if not SEED_DATABASE:
        return

    db = SessionLocal()
    try:
        seed_db(db)
    finally:
        db.close()
