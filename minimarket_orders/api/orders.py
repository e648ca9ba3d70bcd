"""
Order API endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from minimarket_orders.config import settings
from minimarket_orders.database import get_db
from minimarket_orders.schemas.order import (
    OrderApprove,
    OrderCreate,
    OrderListResponse,
    OrderPickup,
    OrderReject,
    OrderResponse,
    OrderStatusUpdate,
    PaymentProofUpdate,
)
from minimarket_orders.services.exceptions import (
    InvalidStateError,
    InvalidStatusError,
    NotFoundError,
    OrderLifecycleError,
    ValidationError,
)
from minimarket_orders.services.order_lifecycle import OrderLifecycleManager

router = APIRouter(prefix="/orders", tags=["orders"])


def get_order_service(request: Request, db: Session = Depends(get_db)) -> OrderLifecycleManager:
    """Dependency to get OrderLifecycleManager instance"""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        return OrderLifecycleManager(db, settings)
    return OrderLifecycleManager(db, runtime.settings, publisher=runtime.publisher)


def _http_error(e: OrderLifecycleError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, InvalidStateError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, (ValidationError, InvalidStatusError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("", response_model=OrderListResponse, summary="Get all orders")
def get_orders(
    skip: int = Query(0, ge=0, description="Number of orders to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of orders to return"),
    status_filter: Optional[str] = Query(None, alias="status", description="Only orders in this status"),
    service: OrderLifecycleManager = Depends(get_order_service)
):
    """
    Retrieve orders with pagination, newest first

    - **skip**: Number of orders to skip (default: 0)
    - **limit**: Maximum number of orders to return (default: 100, max: 1000)
    - **status**: Optional status filter
    """
    return service.list_orders(skip=skip, limit=limit, status=status_filter)


@router.get("/customer/{email}", response_model=List[OrderResponse], summary="Get orders by customer")
def get_orders_by_customer(
    email: str,
    service: OrderLifecycleManager = Depends(get_order_service)
):
    """Get all orders for a specific customer email"""
    return service.get_orders_by_customer(email)


@router.get("/{order_id}", response_model=OrderResponse, summary="Get order by ID")
def get_order(
    order_id: str,
    service: OrderLifecycleManager = Depends(get_order_service)
):
    """Retrieve a specific order by ID"""
    try:
        return service.get_order(order_id)
    except OrderLifecycleError as e:
        raise _http_error(e)


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED, summary="Create order")
def create_order(
    order_data: OrderCreate,
    service: OrderLifecycleManager = Depends(get_order_service)
):
    """
    Place a web order

    The order starts as pending with an estimated delivery/pickup date.
    The confirmation email is sent in the background.
    """
    try:
        return service.create_order(order_data)
    except OrderLifecycleError as e:
        raise _http_error(e)


@router.post("/{order_id}/approve", response_model=OrderResponse, summary="Approve pending order")
def approve_order(
    order_id: str,
    body: OrderApprove = OrderApprove(),
    service: OrderLifecycleManager = Depends(get_order_service)
):
    """
    Approve a pending order

    The receipt PDF and approval email (and optionally the payment-verified
    email) are sent in the background.
    """
    try:
        return service.approve_order(order_id, send_payment_verified_email=body.send_payment_verified_email)
    except OrderLifecycleError as e:
        raise _http_error(e)


@router.post("/{order_id}/reject", response_model=OrderResponse, summary="Reject pending order")
def reject_order(
    order_id: str,
    body: OrderReject,
    service: OrderLifecycleManager = Depends(get_order_service)
):
    """Reject a pending order; a non-empty reason is required"""
    try:
        return service.reject_order(order_id, body.reason)
    except OrderLifecycleError as e:
        raise _http_error(e)


@router.put("/{order_id}/status", response_model=OrderResponse, summary="Update order status")
def update_order_status(
    order_id: str,
    status_data: OrderStatusUpdate,
    service: OrderLifecycleManager = Depends(get_order_service)
):
    """
    Update order status

    - **status**: confirmed, preparing, shipped, delivered, ready_for_pickup, cancelled
    - **tracking_url**: optional tracking link
    - **estimated_delivery**: optional new estimate
    """
    try:
        return service.update_status(
            order_id,
            status_data.status,
            tracking_url=status_data.tracking_url,
            estimated_delivery=status_data.estimated_delivery,
        )
    except OrderLifecycleError as e:
        raise _http_error(e)


@router.post("/{order_id}/pickup", response_model=OrderResponse, summary="Mark order as picked up")
def mark_order_picked_up(
    order_id: str,
    body: OrderPickup,
    service: OrderLifecycleManager = Depends(get_order_service)
):
    """Mark a pickup order as collected and record the customer's feedback"""
    try:
        return service.mark_as_picked_up(
            order_id,
            rating=body.rating,
            comment=body.comment,
            would_recommend=body.would_recommend,
        )
    except OrderLifecycleError as e:
        raise _http_error(e)


@router.put("/{order_id}/payment-proof", response_model=OrderResponse, summary="Attach payment proof")
def update_payment_proof(
    order_id: str,
    body: PaymentProofUpdate,
    service: OrderLifecycleManager = Depends(get_order_service)
):
    """Store the URL of the customer's payment proof"""
    try:
        return service.update_payment_proof(order_id, body.payment_proof_url)
    except OrderLifecycleError as e:
        raise _http_error(e)
