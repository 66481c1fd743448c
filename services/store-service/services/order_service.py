"""Order management service."""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session
from opentelemetry import trace

from errors import (
    FieldError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    ProductUnavailableError,
    StoreError,
    UnauthorizedError,
    ValidationError,
)
from models import Order, OrderItem, OrderStatus, utcnow
from monitoring import (
    order_amount_histogram,
    order_failures_counter,
    order_status_changes_counter,
    orders_cancelled_counter,
    orders_placed_counter,
)
from schemas import CreateOrderRequest
from services.product_service import ProductService
from validation import ensure_valid, validate_order

logger = logging.getLogger(__name__)

# Forward-only happy path
NEXT_STATUS = {
    OrderStatus.PENDING: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.SHIPPED,
    OrderStatus.SHIPPED: OrderStatus.DELIVERED,
}

CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})


def order_view(order: Order) -> Dict[str, Any]:
    """Denormalized order: status as text, items with name and line total."""
    return {
        "id": order.id,
        "order_date": order.order_date,
        "status": OrderStatus(order.status).value,
        "total_amount": order.total_amount,
        "shipping_address": order.shipping_address,
        "notes": order.notes,
        "items": [
            {
                "product_id": item.product_id,
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "total_price": item.total_price
            }
            for item in order.items
        ]
    }


class OrderService:
    """Service for placing, cancelling and tracking orders."""

    def __init__(self, product_service: ProductService):
        """
        Initialize order service.

        Args:
            product_service: Owner of the stock adjustment path
        """
        self.product_service = product_service
        self.tracer = trace.get_tracer(__name__)

    def place_order(
        self,
        db: Session,
        user_id: Optional[str],
        request: CreateOrderRequest
    ) -> Dict[str, Any]:
        """
        Validate an order, reserve its stock and persist it.

        Every line is checked and its stock decremented inside a single
        transaction; if any line fails nothing is committed.

        Args:
            db: Database session
            user_id: Owning user identifier
            request: Requested lines, shipping address and notes

        Returns:
            The created order view

        Raises:
            UnauthorizedError: If no caller identity is given
            ValidationError: If the request is malformed
            NotFoundError: If a requested product does not exist
            ProductUnavailableError: If a requested product is inactive
            InsufficientStockError: If a line asks for more than is in stock
        """
        if not user_id:
            raise UnauthorizedError("User identity is required to place an order")

        span = trace.get_current_span()
        span.set_attribute("user.id", user_id)
        span.set_attribute("order.line_count", len(request.items))

        try:
            ensure_valid(validate_order(request))

            with self.tracer.start_as_current_span("db.transaction.place_order") as db_span:
                db_span.set_attribute("db.operation", "INSERT")
                db_span.set_attribute("db.table", "orders")
                db_span.set_attribute("user.id", user_id)

                products = self.product_service.lock_products(
                    db, [line.product_id for line in request.items]
                )

                total_amount = Decimal("0")
                order_items: List[OrderItem] = []

                for line in request.items:
                    product = products.get(line.product_id)
                    if product is None:
                        raise NotFoundError(f"Product with ID {line.product_id} not found")
                    if not product.is_active:
                        raise ProductUnavailableError(f"Product '{product.name}' is not available")
                    if product.stock_quantity < line.quantity:
                        raise InsufficientStockError(f"Insufficient stock for '{product.name}'")

                    unit_price = product.price
                    order_items.append(OrderItem(
                        product_id=product.id,
                        product_name=product.name,
                        quantity=line.quantity,
                        unit_price=unit_price
                    ))
                    total_amount += unit_price * line.quantity

                    self.product_service.apply_stock_delta(product, -line.quantity, source="order")

                order = Order(
                    user_id=user_id,
                    order_date=utcnow(),
                    status=OrderStatus.PENDING.value,
                    total_amount=total_amount,
                    shipping_address=request.shipping_address.strip(),
                    notes=request.notes,
                    items=order_items
                )
                db.add(order)
                db.commit()

                db_span.set_attribute("order.id", order.id)
                db_span.set_attribute("order.total_amount", float(total_amount))

        except StoreError as e:
            db.rollback()
            order_failures_counter.add(1, {"reason": type(e).__name__})
            logger.warning("Order rejected", extra={
                "user_id": user_id,
                "reason": type(e).__name__,
                "error": e.message
            })
            raise
        except Exception as e:
            db.rollback()
            order_failures_counter.add(1, {"reason": "internal_error"})
            logger.error("Failed to create order", extra={
                "user_id": user_id,
                "error": str(e)
            })
            raise

        orders_placed_counter.add(1, {"item_count": str(len(order_items))})
        order_amount_histogram.record(float(total_amount))

        logger.info("Order created", extra={
            "order_id": order.id,
            "user_id": user_id,
            "amount": float(total_amount),
            "item_count": len(order_items)
        })

        return order_view(order)

    def cancel_order(self, db: Session, user_id: str, order_id: int) -> Dict[str, Any]:
        """
        Cancel an order and put its reserved stock back.

        Stock restoration and the status change commit together.

        Args:
            db: Database session
            user_id: Owning user identifier
            order_id: Order identifier

        Returns:
            The cancelled order view

        Raises:
            NotFoundError: If the user has no such order
            InvalidTransitionError: If the order is past Processing or already cancelled
        """
        try:
            with self.tracer.start_as_current_span("db.transaction.cancel_order") as db_span:
                db_span.set_attribute("db.operation", "UPDATE")
                db_span.set_attribute("db.table", "orders")
                db_span.set_attribute("order.id", order_id)
                db_span.set_attribute("user.id", user_id)

                order = self._find_user_order(db, user_id, order_id, lock=True)

                status = OrderStatus(order.status)
                if status not in CANCELLABLE_STATUSES:
                    raise InvalidTransitionError("Only pending or processing orders can be cancelled")

                products = self.product_service.lock_products(
                    db, [item.product_id for item in order.items]
                )
                for item in order.items:
                    product = products.get(item.product_id)
                    if product is None:
                        logger.warning("Product no longer exists; stock not restored", extra={
                            "order_id": order_id,
                            "product_id": item.product_id,
                            "quantity": item.quantity
                        })
                        continue
                    self.product_service.apply_stock_delta(product, item.quantity, source="cancel")

                order.status = OrderStatus.CANCELLED.value
                db.commit()
        except Exception:
            db.rollback()
            raise

        orders_cancelled_counter.add(1, {"previous_status": status.value})
        logger.info("Order cancelled", extra={
            "order_id": order_id,
            "user_id": user_id,
            "previous_status": status.value
        })

        return order_view(order)

    def advance_status(self, db: Session, order_id: int, new_status: str) -> Dict[str, Any]:
        """
        Move an order one step along Pending, Processing, Shipped, Delivered.

        Cancellation is not a status change here; it goes through
        cancel_order so that stock is restored.

        Raises:
            ValidationError: If new_status is not a known status
            NotFoundError: If the order does not exist
            InvalidTransitionError: If new_status is not the next step
        """
        try:
            target = OrderStatus(new_status)
        except ValueError:
            allowed = ", ".join(status.value for status in OrderStatus)
            raise ValidationError([FieldError("status", f"Status must be one of: {allowed}")]) from None

        try:
            order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
            if order is None:
                raise NotFoundError(f"Order with ID {order_id} not found")

            current = OrderStatus(order.status)
            if target == OrderStatus.CANCELLED:
                raise InvalidTransitionError("Orders are cancelled through the cancel operation")
            if NEXT_STATUS.get(current) != target:
                raise InvalidTransitionError(
                    f"Cannot change order status from {current.value} to {target.value}"
                )

            order.status = target.value
            db.commit()
        except Exception:
            db.rollback()
            raise

        order_status_changes_counter.add(1, {"from": current.value, "to": target.value})
        logger.info("Order status changed", extra={
            "order_id": order_id,
            "from_status": current.value,
            "to_status": target.value
        })
        return order_view(order)

    def list_orders(self, db: Session, user_id: str) -> List[Dict[str, Any]]:
        """
        Get all orders for a user, newest first.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            List of order views
        """
        with self.tracer.start_as_current_span("db.query.get_user_orders") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("user.id", user_id)

            orders = (
                db.query(Order)
                .filter(Order.user_id == user_id)
                .order_by(Order.order_date.desc(), Order.id.desc())
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(orders))

        return [order_view(order) for order in orders]

    def get_order(self, db: Session, user_id: str, order_id: int) -> Dict[str, Any]:
        """
        Get one of the user's orders.

        Raises:
            NotFoundError: If the order is missing or belongs to someone else
        """
        return order_view(self._find_user_order(db, user_id, order_id))

    def _find_user_order(self, db: Session, user_id: str, order_id: int, lock: bool = False) -> Order:
        query = db.query(Order).filter(Order.id == order_id, Order.user_id == user_id)
        if lock:
            query = query.with_for_update()
        order = query.first()
        if order is None:
            raise NotFoundError(f"Order with ID {order_id} not found")
        return order
