"""
SQLAlchemy Order, OrderItem and OrderFeedback models
"""
import uuid

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from minimarket_orders.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Order(Base):
    """Web order placed by a customer"""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_new_id)
    order_number = Column(String(50), nullable=False, unique=True, index=True)

    customer_email = Column(String(255), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)

    shipping_method = Column(String(20), nullable=False)  # delivery, pickup
    shipping_address = Column(String(500), nullable=True)
    shipping_city = Column(String(100), nullable=True)
    shipping_region = Column(String(100), nullable=True)
    selected_sede_id = Column(String(36), nullable=True)

    payment_method = Column(String(50), nullable=False)
    wallet_method = Column(String(50), nullable=True)
    requires_payment_proof = Column(Boolean, nullable=False, default=False)
    payment_proof_url = Column(String(500), nullable=True)

    status = Column(String(30), nullable=False, default="pending", index=True)
    subtotal = Column(Numeric(12, 2), nullable=False)
    shipping_cost = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)

    tracking_url = Column(String(500), nullable=True)
    estimated_delivery = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )
    feedback = relationship("OrderFeedback", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("subtotal >= 0", name="check_order_subtotal_non_negative"),
        CheckConstraint("shipping_cost >= 0", name="check_order_shipping_non_negative"),
        CheckConstraint("total >= 0", name="check_order_total_non_negative"),
        CheckConstraint("shipping_method IN ('delivery', 'pickup')", name="check_shipping_method_valid"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'preparing', 'shipped', 'ready_for_pickup', "
            "'delivered', 'picked_up', 'cancelled')",
            name="check_order_status_valid",
        ),
    )

    def __repr__(self):
        return f"<Order(id={self.id}, order_number='{self.order_number}', status='{self.status}')>"


class OrderItem(Base):
    """Order line with the product name captured at creation time"""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(String(36), nullable=False)
    product_name = Column(String(255), nullable=False)  # Denormalized for history
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="check_item_price_non_negative"),
    )

    def __repr__(self):
        return f"<OrderItem(order_id={self.order_id}, product='{self.product_name}', quantity={self.quantity})>"


class OrderFeedback(Base):
    """Customer feedback captured when a pickup order is collected"""

    __tablename__ = "order_feedback"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    would_recommend = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="feedback")

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="check_feedback_rating_range"),
    )
