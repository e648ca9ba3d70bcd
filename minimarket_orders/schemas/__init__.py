"""
Schemas package
"""
from minimarket_orders.schemas.order import (
    OrderItemCreate,
    OrderCreate,
    OrderApprove,
    OrderReject,
    OrderStatusUpdate,
    OrderPickup,
    PaymentProofUpdate,
    OrderItemResponse,
    OrderResponse,
    OrderListResponse,
)
from minimarket_orders.schemas.notification import (
    DocumentKind,
    NotificationJob,
    NotificationTemplate,
    OrderSnapshot,
)

__all__ = [
    "OrderItemCreate",
    "OrderCreate",
    "OrderApprove",
    "OrderReject",
    "OrderStatusUpdate",
    "OrderPickup",
    "PaymentProofUpdate",
    "OrderItemResponse",
    "OrderResponse",
    "OrderListResponse",
    "DocumentKind",
    "NotificationJob",
    "NotificationTemplate",
    "OrderSnapshot",
]
