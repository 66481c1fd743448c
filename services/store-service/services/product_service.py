"""Product catalog service."""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from opentelemetry import trace

from config import DB_INT_MAX, PRODUCT_CATEGORIES
from errors import FieldError, InsufficientStockError, NotFoundError, ValidationError
from models import Product, utcnow
from monitoring import product_changes_counter, stock_adjustments_counter
from schemas import ProductRequest
from validation import ensure_valid, validate_product

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class ProductFilter:
    """Selects which products list_products returns."""
    kind: str
    value: Optional[str] = None

    ALL = "all"
    ACTIVE_ONLY = "active_only"
    BY_CATEGORY = "by_category"
    SEARCH = "search"

    @classmethod
    def all(cls) -> "ProductFilter":
        return cls(cls.ALL)

    @classmethod
    def active_only(cls) -> "ProductFilter":
        return cls(cls.ACTIVE_ONLY)

    @classmethod
    def by_category(cls, category: str) -> "ProductFilter":
        return cls(cls.BY_CATEGORY, category)

    @classmethod
    def search(cls, term: Optional[str]) -> "ProductFilter":
        return cls(cls.SEARCH, term)


class ProductService:
    """Service for the product catalog and the stock counters it owns."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def list_products(self, db: Session, product_filter: ProductFilter) -> List[Product]:
        """
        List products matching a filter, ascending by name.

        Args:
            db: Database session
            product_filter: Which products to include

        Returns:
            Matching products
        """
        kind = product_filter.kind
        term = product_filter.value

        # A blank search is the plain active listing
        if kind == ProductFilter.SEARCH and (term is None or not term.strip()):
            kind = ProductFilter.ACTIVE_ONLY

        with self.tracer.start_as_current_span("db.query.list_products") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("products.filter", kind)

            query = db.query(Product)
            if kind == ProductFilter.ACTIVE_ONLY:
                query = query.filter(Product.is_active.is_(True))
            elif kind == ProductFilter.BY_CATEGORY:
                query = query.filter(
                    Product.is_active.is_(True),
                    func.lower(Product.category) == (term or "").lower()
                )
            elif kind == ProductFilter.SEARCH:
                needle = term.strip().lower()
                query = query.filter(
                    Product.is_active.is_(True),
                    or_(
                        func.lower(Product.name).contains(needle, autoescape=True),
                        func.lower(Product.description).contains(needle, autoescape=True),
                        func.lower(Product.category).contains(needle, autoescape=True),
                    )
                )
            elif kind != ProductFilter.ALL:
                raise ValueError(f"Unknown product filter: {kind}")

            products = query.order_by(Product.name, Product.id).all()
            db_span.set_attribute("db.rows_returned", len(products))

        return products

    def get_all_products(self, db: Session) -> List[Product]:
        return self.list_products(db, ProductFilter.all())

    def get_active_products(self, db: Session) -> List[Product]:
        return self.list_products(db, ProductFilter.active_only())

    def get_products_by_category(self, db: Session, category: str) -> List[Product]:
        return self.list_products(db, ProductFilter.by_category(category))

    def search_products(self, db: Session, term: Optional[str]) -> List[Product]:
        return self.list_products(db, ProductFilter.search(term))

    def get_categories(self) -> List[str]:
        return list(PRODUCT_CATEGORIES)

    def get_product(self, db: Session, product_id: int) -> Product:
        """
        Get a single product.

        Raises:
            NotFoundError: If the product does not exist
        """
        with self.tracer.start_as_current_span("db.query.get_product") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("product.id", product_id)

            product = db.query(Product).filter(Product.id == product_id).first()
            db_span.set_attribute("db.rows_returned", 1 if product else 0)

        if product is None:
            raise NotFoundError(f"Product with ID {product_id} not found")
        return product

    def lock_products(self, db: Session, product_ids: Iterable[int]) -> Dict[int, Product]:
        """
        Load and row-lock products for a stock change.

        Rows are locked in ascending id order so that two transactions
        touching the same products always queue in the same order.
        Missing ids are simply absent from the result.

        Args:
            db: Database session (transaction stays open)
            product_ids: Products about to have their stock changed

        Returns:
            Mapping of product id to locked product
        """
        ids = sorted(set(product_ids))
        if not ids:
            return {}

        with self.tracer.start_as_current_span("db.query.lock_products") as db_span:
            db_span.set_attribute("db.operation", "SELECT FOR UPDATE")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("products.count", len(ids))

            products = (
                db.query(Product)
                .filter(Product.id.in_(ids))
                .order_by(Product.id)
                .with_for_update()
                .all()
            )
            db_span.set_attribute("db.rows_returned", len(products))

        return {product.id: product for product in products}

    def apply_stock_delta(self, product: Product, delta: int, source: str) -> None:
        """
        Apply a signed stock delta to a locked product.

        Every stock writer goes through here. Nothing is committed; the
        caller owns the transaction.

        Args:
            product: Product locked by lock_products
            delta: Signed quantity change
            source: Who is changing the stock (admin, order, cancel)

        Raises:
            InsufficientStockError: If stock would go negative
            ValidationError: If stock would overflow the column
        """
        new_quantity = product.stock_quantity + delta
        if new_quantity < 0:
            raise InsufficientStockError(f"Insufficient stock for '{product.name}'")
        if new_quantity > DB_INT_MAX:
            raise ValidationError([FieldError("stockQuantity", f"Stock quantity cannot exceed {DB_INT_MAX}")])

        product.stock_quantity = new_quantity
        product.updated_at = utcnow()

        stock_adjustments_counter.add(1, {"source": source})

    def adjust_stock(self, db: Session, product_id: int, delta: int) -> Product:
        """
        Change a product's stock by a signed delta.

        Args:
            db: Database session
            product_id: Product identifier
            delta: Signed quantity change

        Returns:
            Updated product

        Raises:
            NotFoundError: If the product does not exist
            InsufficientStockError: If stock would go negative
            ValidationError: If stock would overflow the column
        """
        try:
            product = self.lock_products(db, [product_id]).get(product_id)
            if product is None:
                raise NotFoundError(f"Product with ID {product_id} not found")

            self.apply_stock_delta(product, delta, source="admin")
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Stock updated", extra={
            "product_id": product_id,
            "delta": delta,
            "stock_quantity": product.stock_quantity
        })
        return product

    def create_product(self, db: Session, data: ProductRequest) -> Product:
        """
        Create a product.

        Raises:
            ValidationError: If any field is out of range
        """
        ensure_valid(validate_product(data))

        product = Product(
            name=data.name.strip(),
            description=data.description,
            price=data.price.quantize(CENTS),
            category=data.category,
            stock_quantity=data.stock_quantity,
            is_active=data.is_active,
            image_url=data.image_url,
            created_at=utcnow()
        )

        with self.tracer.start_as_current_span("db.query.insert_product") as db_span:
            db_span.set_attribute("db.operation", "INSERT")
            db_span.set_attribute("db.table", "products")
            try:
                db.add(product)
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(product)
            db_span.set_attribute("product.id", product.id)

        product_changes_counter.add(1, {"action": "create", "category": product.category})
        logger.info("Product created", extra={
            "product_id": product.id,
            "product_name": product.name
        })
        return product

    def update_product(self, db: Session, product_id: int, data: ProductRequest) -> Product:
        """
        Replace all mutable fields of a product.

        The new stock level is applied as a delta through the same locked
        adjustment path orders use.

        Raises:
            ValidationError: If any field is out of range
            NotFoundError: If the product does not exist
        """
        ensure_valid(validate_product(data))

        try:
            product = self.lock_products(db, [product_id]).get(product_id)
            if product is None:
                raise NotFoundError(f"Product with ID {product_id} not found")

            product.name = data.name.strip()
            product.description = data.description
            product.price = data.price.quantize(CENTS)
            product.category = data.category
            product.is_active = data.is_active
            product.image_url = data.image_url

            delta = data.stock_quantity - product.stock_quantity
            if delta:
                self.apply_stock_delta(product, delta, source="admin")
            product.updated_at = utcnow()

            db.commit()
        except Exception:
            db.rollback()
            raise

        product_changes_counter.add(1, {"action": "update", "category": product.category})
        logger.info("Product updated", extra={
            "product_id": product.id,
            "product_name": product.name
        })
        return product

    def delete_product(self, db: Session, product_id: int) -> None:
        """
        Hard-delete a product.

        Order items keep their captured name and price, so history stays
        readable after the product is gone.

        Raises:
            NotFoundError: If the product does not exist
        """
        product = self.get_product(db, product_id)
        category = product.category

        try:
            db.delete(product)
            db.commit()
        except Exception:
            db.rollback()
            raise

        product_changes_counter.add(1, {"action": "delete", "category": category})
        logger.info("Product deleted", extra={"product_id": product_id})
