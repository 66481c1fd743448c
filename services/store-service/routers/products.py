"""Products API router."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.orm import Session
from opentelemetry import trace

from auth import Caller, require_roles
from config import DB_INT_MAX, DB_INT_MIN, ROLE_ADMIN
from database import get_db
from dependencies import get_product_service
from errors import FieldError, ValidationError
from monitoring import product_views_counter, product_detail_views_counter
from schemas import ProductRequest, ProductResponse, StockUpdateRequest, StockUpdateResponse
from services.product_service import ProductService

router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("", response_model=List[ProductResponse])
async def get_products(
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    """Get all active products."""
    products = product_service.get_active_products(db)

    span = trace.get_current_span()
    span.set_attribute("product.count", len(products))
    product_views_counter.add(1, {"listing": "active"})

    return products


@router.get("/all", response_model=List[ProductResponse])
async def get_all_products(
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_roles(ROLE_ADMIN)),
    product_service: ProductService = Depends(get_product_service)
):
    """Get all products including inactive ones - admin only."""
    product_views_counter.add(1, {"listing": "all"})
    return product_service.get_all_products(db)


@router.get("/search", response_model=List[ProductResponse])
async def search_products(
    q: Optional[str] = Query(None, description="Matched against name, description and category"),
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    """Search active products by term."""
    if q is None or not q.strip():
        raise ValidationError([FieldError("q", "Search term is required")], "Search term is required")

    products = product_service.search_products(db, q)

    span = trace.get_current_span()
    span.set_attribute("search.term", q)
    span.set_attribute("product.count", len(products))
    product_views_counter.add(1, {"listing": "search"})

    return products


@router.get("/categories", response_model=List[str])
async def get_categories(
    product_service: ProductService = Depends(get_product_service)
):
    """Get the fixed list of product categories."""
    return product_service.get_categories()


@router.get("/category/{category}", response_model=List[ProductResponse])
async def get_products_by_category(
    category: str = Path(..., description="Category name, matched case-insensitively"),
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    """Get active products in a category."""
    product_views_counter.add(1, {"listing": "category"})
    return product_service.get_products_by_category(db, category)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int = Path(..., ge=DB_INT_MIN, le=DB_INT_MAX, description="Product ID"),
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    """Get product details."""
    product = product_service.get_product(db, product_id)

    span = trace.get_current_span()
    span.set_attribute("product.id", product_id)
    product_detail_views_counter.add(1, {"category": product.category})

    return product


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    request: ProductRequest,
    response: Response,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_roles(ROLE_ADMIN)),
    product_service: ProductService = Depends(get_product_service)
):
    """Create a product - admin only."""
    product = product_service.create_product(db, request)
    response.headers["Location"] = f"{router.prefix}/{product.id}"
    return product


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    request: ProductRequest,
    product_id: int = Path(..., ge=DB_INT_MIN, le=DB_INT_MAX, description="Product ID"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_roles(ROLE_ADMIN)),
    product_service: ProductService = Depends(get_product_service)
):
    """Replace a product - admin only."""
    return product_service.update_product(db, product_id, request)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int = Path(..., ge=DB_INT_MIN, le=DB_INT_MAX, description="Product ID"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_roles(ROLE_ADMIN)),
    product_service: ProductService = Depends(get_product_service)
):
    """Delete a product - admin only."""
    product_service.delete_product(db, product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{product_id}/stock", response_model=StockUpdateResponse)
async def update_stock(
    request: StockUpdateRequest,
    product_id: int = Path(..., ge=DB_INT_MIN, le=DB_INT_MAX, description="Product ID"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_roles(ROLE_ADMIN)),
    product_service: ProductService = Depends(get_product_service)
):
    """Apply a signed stock delta - admin only."""
    product = product_service.adjust_stock(db, product_id, request.quantity)
    return {
        "message": "Stock updated successfully",
        "product_id": product.id,
        "stock_quantity": product.stock_quantity
    }
