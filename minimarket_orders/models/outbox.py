"""
SQLAlchemy outbox for notification jobs
"""
import uuid

from sqlalchemy import Column, DateTime, Integer, JSON, String, Text
from sqlalchemy.sql import func

from minimarket_orders.database import Base


class NotificationOutbox(Base):
    """
    Pending side-effect work recorded in the same transaction as the
    order transition that caused it

    Status flow: pending -> processing -> sent | failed
    """

    __tablename__ = "notification_outbox"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    claimed_at = Column(DateTime(timezone=True), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<NotificationOutbox(id={self.id}, event_type='{self.event_type}', status='{self.status}')>"
