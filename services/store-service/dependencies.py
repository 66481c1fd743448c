"""Dependency injection for services."""
from fastapi import Depends

from services.auth_service import AuthService
from services.order_service import OrderService
from services.product_service import ProductService


def get_product_service() -> ProductService:
    """Get product service instance."""
    return ProductService()


def get_order_service(
    product_service: ProductService = Depends(get_product_service)
) -> OrderService:
    """Get order service instance."""
    return OrderService(product_service)


def get_auth_service() -> AuthService:
    """Get auth service instance."""
    return AuthService()
