"""
Order Repository - Data Access Layer

Methods flush but never commit; the caller owns the transaction.
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from minimarket_orders.models.order import Order, OrderFeedback


class OrderRepository:
    """Repository for orders, their items and feedback"""

    def __init__(self, db: Session):
        self.db = db

    def get_all(self, skip: int = 0, limit: int = 100, status: Optional[str] = None) -> List[Order]:
        """Get orders with pagination, newest first"""
        query = self.db.query(Order)
        if status:
            query = query.filter(Order.status == status)
        return query.order_by(desc(Order.created_at)).offset(skip).limit(limit).all()

    def get_by_id(self, order_id: str) -> Optional[Order]:
        """Get order by ID"""
        return self.db.query(Order).filter(Order.id == order_id).first()

    def get_by_number(self, order_number: str) -> Optional[Order]:
        """Get order by its human-readable number"""
        return self.db.query(Order).filter(Order.order_number == order_number).first()

    def get_by_customer_email(self, email: str) -> List[Order]:
        """Get orders by customer email"""
        return self.db.query(Order).filter(
            Order.customer_email == email
        ).order_by(desc(Order.created_at)).all()

    def count(self, status: Optional[str] = None) -> int:
        """Get total count of orders"""
        query = self.db.query(Order)
        if status:
            query = query.filter(Order.status == status)
        return query.count()

    def add(self, order: Order) -> Order:
        """Stage a new order (with its items)"""
        self.db.add(order)
        self.db.flush()
        return order

    def transition_status(self, order_id: str, expected_status: str, new_status: str, **fields) -> bool:
        """
        Compare-and-set the order status against the persisted row

        Returns False when the row is no longer in ``expected_status``.
        """
        values = dict(fields)
        values["status"] = new_status
        values["updated_at"] = datetime.now(timezone.utc)
        updated = self.db.query(Order).filter(
            Order.id == order_id,
            Order.status == expected_status,
        ).update(values, synchronize_session="fetch")
        self.db.flush()
        return updated == 1

    def update_fields(self, order: Order, **fields) -> Order:
        """Update non-status attributes"""
        for name, value in fields.items():
            setattr(order, name, value)
        order.updated_at = datetime.now(timezone.utc)
        self.db.flush()
        return order

    def add_feedback(self, feedback: OrderFeedback) -> OrderFeedback:
        """Stage feedback for an order"""
        self.db.add(feedback)
        self.db.flush()
        return feedback

    def get_feedback(self, order_id: str) -> List[OrderFeedback]:
        """Get feedback recorded for an order"""
        return self.db.query(OrderFeedback).filter(OrderFeedback.order_id == order_id).all()
