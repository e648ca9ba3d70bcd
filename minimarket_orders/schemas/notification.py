"""
Notification job payloads carried through the outbox
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class NotificationTemplate(str, Enum):
    CONFIRMATION = "confirmation"
    APPROVAL = "approval"
    REJECTION = "rejection"
    PAYMENT_VERIFIED = "payment_verified"
    STATUS_UPDATE = "status_update"


class DocumentKind(str, Enum):
    ORDER_RECEIPT = "order_receipt"
    SALE_RECEIPT = "sale_receipt"
    CASH_CLOSURE = "cash_closure"
    TEMPLATE_PREVIEW = "template_preview"


class OrderItemSnapshot(BaseModel):
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderSnapshot(BaseModel):
    """Order as it was when the transition committed"""
    id: str
    order_number: str
    customer_email: str
    customer_name: str
    shipping_method: str
    payment_method: str
    status: str
    subtotal: Decimal
    shipping_cost: Decimal
    total: Decimal
    tracking_url: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    created_at: datetime
    items: List[OrderItemSnapshot] = []

    model_config = ConfigDict(from_attributes=True)


class NotificationJob(BaseModel):
    """One transition's side effects: optional document plus one or more emails"""
    order: OrderSnapshot
    to: str
    template: NotificationTemplate
    also_send: List[NotificationTemplate] = []
    document_kind: Optional[DocumentKind] = None
    attachment_filename: Optional[str] = None
    reason: Optional[str] = None
    tracking_url: Optional[str] = None

    @property
    def templates(self) -> List[NotificationTemplate]:
        return [self.template, *self.also_send]
