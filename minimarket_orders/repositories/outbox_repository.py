"""
Outbox Repository - durable record of pending notification jobs
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from minimarket_orders.models.outbox import NotificationOutbox


class OutboxRepository:
    """Repository for notification outbox rows"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, order_id: str, event_type: str, payload: dict) -> NotificationOutbox:
        """Stage a job in the current transaction"""
        entry = NotificationOutbox(order_id=order_id, event_type=event_type, payload=payload, status="pending")
        self.db.add(entry)
        self.db.flush()
        return entry

    def get_by_id(self, entry_id: str) -> Optional[NotificationOutbox]:
        return self.db.query(NotificationOutbox).filter(NotificationOutbox.id == entry_id).first()

    def get_by_order(self, order_id: str) -> List[NotificationOutbox]:
        return self.db.query(NotificationOutbox).filter(
            NotificationOutbox.order_id == order_id
        ).order_by(NotificationOutbox.created_at).all()

    def get_resumable(self, stale_after: float, limit: int = 100) -> List[NotificationOutbox]:
        """Rows never picked up, or claimed by a worker that did not finish"""
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=stale_after)
        return self.db.query(NotificationOutbox).filter(
            or_(
                NotificationOutbox.status == "pending",
                and_(
                    NotificationOutbox.status == "processing",
                    NotificationOutbox.claimed_at < cutoff,
                ),
            )
        ).order_by(NotificationOutbox.created_at).limit(limit).all()

    def claim(self, entry_id: str, stale_after: float) -> bool:
        """Move a row to processing; False if another worker holds it or it is done"""
        now = datetime.now(timezone.utc)
        cutoff = now - timedelta(seconds=stale_after)
        updated = self.db.query(NotificationOutbox).filter(
            NotificationOutbox.id == entry_id,
            or_(
                NotificationOutbox.status == "pending",
                and_(
                    NotificationOutbox.status == "processing",
                    NotificationOutbox.claimed_at < cutoff,
                ),
            ),
        ).update(
            {
                NotificationOutbox.status: "processing",
                NotificationOutbox.claimed_at: now,
                NotificationOutbox.attempts: NotificationOutbox.attempts + 1,
            },
            synchronize_session=False,
        )
        self.db.commit()
        return updated == 1

    def mark_processed(self, entry_id: str, succeeded: bool, error: Optional[str] = None) -> None:
        """Record the final outcome of a job"""
        self.db.query(NotificationOutbox).filter(NotificationOutbox.id == entry_id).update(
            {
                NotificationOutbox.status: "sent" if succeeded else "failed",
                NotificationOutbox.processed_at: datetime.now(timezone.utc),
                NotificationOutbox.last_error: error,
            },
            synchronize_session=False,
        )
        self.db.commit()
