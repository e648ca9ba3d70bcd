"""
Notification job publisher

Jobs are written to the outbox inside the caller's transaction and handed to
the worker pool only after that transaction has committed.
"""
import logging

from sqlalchemy.orm import Session

from minimarket_orders.models.outbox import NotificationOutbox
from minimarket_orders.repositories.outbox_repository import OutboxRepository
from minimarket_orders.schemas.notification import NotificationJob

logger = logging.getLogger(__name__)


class JobPublisher:
    """Stages outbox rows and submits them to the worker pool"""

    def __init__(self, pool=None):
        self.pool = pool

    def stage(self, db: Session, event_type: str, job: NotificationJob) -> NotificationOutbox:
        """Add the job to the outbox; the caller commits"""
        return OutboxRepository(db).add(
            order_id=job.order.id,
            event_type=event_type,
            payload=job.model_dump(mode="json"),
        )

    def publish(self, entry_id: str) -> bool:
        """
        Submit a committed outbox row for background processing

        Returns False when the row stays in the outbox for a later sweep.
        """
        if self.pool is None:
            logger.warning("No worker pool attached, outbox entry %s left pending", entry_id,
                           extra={"outbox_id": entry_id})
            return False
        return self.pool.submit(entry_id)
