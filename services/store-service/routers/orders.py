"""Orders API router."""
from typing import List

from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.orm import Session

from auth import Caller, get_current_caller, require_roles
from config import DB_INT_MAX, DB_INT_MIN, ROLE_ADMIN
from database import get_db
from dependencies import get_order_service
from schemas import CreateOrderRequest, MessageResponse, OrderResponse, OrderStatusUpdateRequest
from services.order_service import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.get("", response_model=List[OrderResponse])
async def get_orders(
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
    order_service: OrderService = Depends(get_order_service)
):
    """Get the caller's orders, newest first - requires authentication."""
    return order_service.list_orders(db, caller.user_id)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int = Path(..., ge=DB_INT_MIN, le=DB_INT_MAX, description="Order ID"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
    order_service: OrderService = Depends(get_order_service)
):
    """Get one of the caller's orders - requires authentication."""
    return order_service.get_order(db, caller.user_id, order_id)


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    request: CreateOrderRequest,
    response: Response,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
    order_service: OrderService = Depends(get_order_service)
):
    """Place an order and reserve its stock - requires authentication."""
    order = order_service.place_order(db, caller.user_id, request)
    response.headers["Location"] = f"{router.prefix}/{order['id']}"
    return order


@router.post("/{order_id}/cancel", response_model=MessageResponse)
async def cancel_order(
    order_id: int = Path(..., ge=DB_INT_MIN, le=DB_INT_MAX, description="Order ID"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
    order_service: OrderService = Depends(get_order_service)
):
    """Cancel a pending or processing order - requires authentication."""
    order_service.cancel_order(db, caller.user_id, order_id)
    return {"message": "Order cancelled successfully"}


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    request: OrderStatusUpdateRequest,
    order_id: int = Path(..., ge=DB_INT_MIN, le=DB_INT_MAX, description="Order ID"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_roles(ROLE_ADMIN)),
    order_service: OrderService = Depends(get_order_service)
):
    """Advance an order along its fulfilment path - admin only."""
    return order_service.advance_status(db, order_id, request.status)
