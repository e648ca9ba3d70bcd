"""
Pydantic schemas for request/response validation
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

MONEY_TOLERANCE = Decimal("0.01")


class OrderItemCreate(BaseModel):
    """Line item as submitted at checkout"""
    product_id: str = Field(..., min_length=1, description="Product ID")
    product_name: str = Field(..., min_length=1, description="Product name at time of purchase")
    quantity: int = Field(..., gt=0, description="Quantity ordered")
    unit_price: Decimal = Field(..., ge=0, description="Unit price")
    subtotal: Decimal = Field(..., ge=0, description="quantity x unit_price")

    @model_validator(mode="after")
    def check_subtotal(self):
        if abs(self.quantity * self.unit_price - self.subtotal) > MONEY_TOLERANCE:
            raise ValueError(
                f"Item subtotal {self.subtotal} does not match "
                f"{self.quantity} x {self.unit_price}"
            )
        return self


class OrderCreate(BaseModel):
    """Schema for placing a web order"""
    order_number: Optional[str] = Field(None, max_length=50, description="Client-generated order number")
    customer_email: EmailStr
    customer_name: str = Field(..., min_length=1)
    customer_phone: Optional[str] = None
    shipping_method: Literal["delivery", "pickup"]
    shipping_address: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_region: Optional[str] = None
    selected_sede_id: Optional[str] = None
    payment_method: str = Field(..., min_length=1)
    wallet_method: Optional[str] = None
    requires_payment_proof: bool = False
    subtotal: Decimal = Field(..., ge=0)
    shipping_cost: Decimal = Field(Decimal("0"), ge=0)
    total: Decimal = Field(..., ge=0)
    items: List[OrderItemCreate] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_totals(self):
        items_total = sum((item.subtotal for item in self.items), Decimal("0"))
        if abs(items_total - self.subtotal) > MONEY_TOLERANCE:
            raise ValueError(f"Order subtotal {self.subtotal} does not match items total {items_total}")
        if abs(self.subtotal + self.shipping_cost - self.total) > MONEY_TOLERANCE:
            raise ValueError(
                f"Order total {self.total} does not match subtotal {self.subtotal} "
                f"+ shipping {self.shipping_cost}"
            )
        return self


class OrderApprove(BaseModel):
    """Schema for approving a pending order"""
    send_payment_verified_email: bool = False


class OrderReject(BaseModel):
    """Schema for rejecting a pending order"""
    reason: str = Field("", description="Reason shown to the customer")


class OrderStatusUpdate(BaseModel):
    """Schema for the generic status update"""
    status: str = Field(..., description="Target status")
    tracking_url: Optional[str] = None
    estimated_delivery: Optional[datetime] = None


class OrderPickup(BaseModel):
    """Schema for marking a pickup order as collected"""
    rating: int = Field(..., description="Rating from 1 to 5")
    comment: Optional[str] = None
    would_recommend: bool = False


class PaymentProofUpdate(BaseModel):
    """Schema for attaching a payment proof"""
    payment_proof_url: str = Field(..., min_length=1)


class OrderItemResponse(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    """Schema for order response"""
    id: str
    order_number: str
    customer_email: str
    customer_name: str
    customer_phone: Optional[str]
    shipping_method: str
    shipping_address: Optional[str]
    shipping_city: Optional[str]
    shipping_region: Optional[str]
    selected_sede_id: Optional[str]
    payment_method: str
    wallet_method: Optional[str]
    requires_payment_proof: bool
    payment_proof_url: Optional[str]
    status: str
    subtotal: Decimal
    shipping_cost: Decimal
    total: Decimal
    tracking_url: Optional[str]
    estimated_delivery: Optional[datetime]
    rejection_reason: Optional[str]
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemResponse] = []

    model_config = ConfigDict(from_attributes=True)


class OrderListResponse(BaseModel):
    """Schema for list of orders response"""
    orders: List[OrderResponse]
    total: int
