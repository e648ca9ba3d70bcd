"""
Wiring of the notification pipeline for the web app and the standalone consumer
"""
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from minimarket_orders.config import Settings
from minimarket_orders.consumers.notification_consumer import (
    NotificationConsumer,
    NotificationPipeline,
    NotificationWorkerPool,
)
from minimarket_orders.publishers.job_publisher import JobPublisher
from minimarket_orders.services.cleanup import CleanupScheduler
from minimarket_orders.services.document_renderer import DocumentRenderer, ImageResolver
from minimarket_orders.services.file_reader import RetryingFileReader
from minimarket_orders.services.notification_dispatcher import NotificationDispatcher, build_dispatcher

logger = logging.getLogger(__name__)


class NotificationRuntime:
    """Owns the worker pool, renderer and cleanup scheduler for one process"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        settings: Settings,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.settings = settings
        self.cleanup = CleanupScheduler(settings.CLEANUP_DELAY_SECONDS)
        self.renderer = DocumentRenderer(
            session_factory,
            settings,
            image_resolver=ImageResolver(settings.STATIC_ROOT, timeout=settings.IMAGE_DOWNLOAD_TIMEOUT),
            output_dir=settings.DOCUMENT_OUTPUT_DIR,
        )
        self.dispatcher = dispatcher or build_dispatcher(
            settings, RetryingFileReader(settings.file_read_policy())
        )
        self.pipeline = NotificationPipeline(
            self.renderer,
            self.dispatcher,
            self.cleanup,
            branding=settings.branding(),
            job_timeout=settings.NOTIFICATION_JOB_TIMEOUT,
        )
        self.consumer = NotificationConsumer(
            session_factory,
            self.pipeline,
            stale_after=settings.OUTBOX_STALE_AFTER_SECONDS,
        )
        self.pool = NotificationWorkerPool(
            self.consumer.handle,
            workers=settings.NOTIFICATION_WORKERS,
            max_queue=settings.NOTIFICATION_QUEUE_SIZE,
        )
        self.publisher = JobPublisher(self.pool)

    def start(self) -> int:
        """Start workers and re-submit outbox entries left from a previous run"""
        self.pool.start()
        resumed = 0
        for entry_id in self.consumer.resumable_entries(limit=self.settings.NOTIFICATION_QUEUE_SIZE):
            if self.pool.submit(entry_id):
                resumed += 1
        if resumed:
            logger.info("Re-submitted %s pending outbox entries", resumed)
        return resumed

    def drain(self) -> int:
        """
        Run every resumable outbox entry to completion, one queue-sized batch at a time

        Returns the number of entries handled. An entry still resumable after
        its own batch is not submitted again.
        """
        self.pool.start()
        handled = set()
        while True:
            batch = [
                entry_id
                for entry_id in self.consumer.resumable_entries(limit=self.settings.NOTIFICATION_QUEUE_SIZE)
                if entry_id not in handled
            ]
            if not batch:
                return len(handled)
            for entry_id in batch:
                if self.pool.submit(entry_id):
                    handled.add(entry_id)
            self.pool.join()
            logger.info("Drained %s outbox entries so far", len(handled))

    def stop(self) -> None:
        """Stop workers, then delete generated files nothing will read anymore"""
        self.pool.stop(timeout=self.settings.NOTIFICATION_JOB_TIMEOUT)
        self.cleanup.shutdown(delete_now=True)
