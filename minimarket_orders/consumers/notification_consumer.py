"""
Background consumer for notification jobs

A bounded queue of outbox entry ids feeds a fixed number of worker threads.
Each entry is claimed, run through render -> send -> cleanup, and marked
sent or failed. Failures are logged; the order transition that produced the
job is never touched.
"""
import logging
import queue
import threading
import time
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from minimarket_orders.config import BrandingConfig
from minimarket_orders.repositories.outbox_repository import OutboxRepository
from minimarket_orders.schemas.notification import NotificationJob
from minimarket_orders.services.cleanup import CleanupScheduler
from minimarket_orders.services.document_renderer import DocumentRenderer, RenderError
from minimarket_orders.services.email_templates import render_email
from minimarket_orders.services.notification_dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

_STOP = object()


class JobTimeoutError(Exception):
    """A job ran past its overall deadline"""
    pass


class Deadline:
    """Overall time budget for one job"""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    def check(self, stage: str) -> None:
        if self.remaining() <= 0:
            raise JobTimeoutError(f"Job deadline exceeded before {stage}")


class NotificationPipeline:
    """Render the document, send every email of the job, schedule cleanup"""

    def __init__(
        self,
        renderer: DocumentRenderer,
        dispatcher: NotificationDispatcher,
        cleanup: CleanupScheduler,
        branding: BrandingConfig,
        job_timeout: float = 120.0,
        cleanup_delay: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.renderer = renderer
        self.dispatcher = dispatcher
        self.cleanup = cleanup
        self.branding = branding
        self.job_timeout = job_timeout
        self.cleanup_delay = cleanup_delay
        self.clock = clock

    def run(self, job: NotificationJob) -> bool:
        """
        Execute one job

        Returns True only if every email was delivered.

        Raises:
            RenderError: the document could not be produced; no email is sent
            JobTimeoutError: the deadline expired before rendering or between sends
        """
        deadline = Deadline(self.job_timeout, clock=self.clock)
        log_extra = {"order_number": job.order.order_number, "order_id": job.order.id}
        pdf_path = None
        try:
            if job.document_kind is not None:
                deadline.check("render")
                pdf_path = self.renderer.render(job.document_kind, job.order.id, self.branding)
                logger.info("PDF generated for order %s: %s", job.order.order_number, pdf_path, extra=log_extra)

            delivered = True
            for template in job.templates:
                deadline.check(f"sending {template.value}")
                subject, html_body = render_email(template, job, self.branding)
                sent = self.dispatcher.send(
                    job.to,
                    subject,
                    html_body,
                    attachment_path=pdf_path,
                    attachment_name=job.attachment_filename,
                )
                if not sent:
                    logger.error("Notification %s for order %s was not delivered", template.value,
                                 job.order.order_number, extra={**log_extra, "template": template.value})
                delivered = delivered and sent
            return delivered
        finally:
            if pdf_path:
                self.cleanup.schedule_delete(pdf_path, self.cleanup_delay)


class NotificationConsumer:
    """Processes one outbox entry per call, in its own session"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        pipeline: NotificationPipeline,
        stale_after: float = 600.0,
    ):
        self.session_factory = session_factory
        self.pipeline = pipeline
        self.stale_after = stale_after

    def handle(self, entry_id: str) -> None:
        db = self.session_factory()
        try:
            repository = OutboxRepository(db)
            if not repository.claim(entry_id, self.stale_after):
                logger.info("Outbox entry %s already claimed or processed, skipping", entry_id,
                            extra={"outbox_id": entry_id})
                return

            entry = repository.get_by_id(entry_id)
            order_number = (entry.payload.get("order") or {}).get("order_number")
            log_extra = {"outbox_id": entry_id, "order_id": entry.order_id, "order_number": order_number}
            try:
                job = NotificationJob.model_validate(entry.payload)
                delivered = self.pipeline.run(job)
            except RenderError as e:
                logger.warning("Document for order %s not rendered, emails skipped: %s", order_number, e,
                               extra={**log_extra, "error": str(e)})
                repository.mark_processed(entry_id, succeeded=False, error=str(e))
                return
            except Exception as e:
                logger.exception("Notification job %s for order %s failed", entry_id, order_number,
                                 extra=log_extra)
                repository.mark_processed(entry_id, succeeded=False, error=str(e))
                return

            repository.mark_processed(
                entry_id,
                succeeded=delivered,
                error=None if delivered else "One or more emails were not delivered",
            )
            logger.info("Outbox entry %s (%s) processed, delivered=%s", entry_id, entry.event_type, delivered,
                        extra=log_extra)
        finally:
            db.close()

    def resumable_entries(self, limit: int = 100) -> List[str]:
        """Entries left behind by a crash or a full queue"""
        db = self.session_factory()
        try:
            return [entry.id for entry in OutboxRepository(db).get_resumable(self.stale_after, limit=limit)]
        finally:
            db.close()


class NotificationWorkerPool:
    """Fixed number of worker threads reading from a bounded queue"""

    def __init__(self, handler: Callable[[str], None], workers: int = 2, max_queue: int = 100):
        self.handler = handler
        self.workers = workers
        self._queue: "queue.Queue" = queue.Queue(maxsize=max_queue)
        self._threads: List[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def size(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.running:
            return
        self._threads = [
            threading.Thread(target=self._work, name=f"notification-worker-{i}", daemon=True)
            for i in range(self.workers)
        ]
        for thread in self._threads:
            thread.start()
        logger.info("Notification worker pool started (workers=%s)", self.workers)

    def submit(self, entry_id: str) -> bool:
        """Queue an entry; False when the queue is full"""
        try:
            self._queue.put_nowait(entry_id)
        except queue.Full:
            logger.warning("Notification queue full, outbox entry %s stays pending", entry_id,
                           extra={"outbox_id": entry_id})
            return False
        return True

    def join(self) -> None:
        """Block until every queued entry has been handled"""
        self._queue.join()

    def stop(self, timeout: Optional[float] = None) -> None:
        for _ in self._threads:
            self._queue.put(_STOP)
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.info("Notification worker pool stopped")

    def _work(self) -> None:
        while True:
            entry_id = self._queue.get()
            try:
                if entry_id is _STOP:
                    return
                self.handler(entry_id)
            except Exception:
                logger.exception("Unhandled error in notification worker for entry %s", entry_id)
            finally:
                self._queue.task_done()
