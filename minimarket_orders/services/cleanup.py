"""
Delayed deletion of generated temporary files
"""
import logging
import os
import threading
from typing import Optional, Set

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_DELAY = 300.0


class CleanupScheduler:
    """Fire-and-forget file deletion after a delay; failures are only logged"""

    def __init__(self, default_delay: float = DEFAULT_CLEANUP_DELAY):
        self.default_delay = default_delay
        self._timers: Set[threading.Timer] = set()
        self._lock = threading.Lock()

    def schedule_delete(self, path: str, delay: Optional[float] = None) -> None:
        delay = self.default_delay if delay is None else delay
        timer = threading.Timer(delay, self._run, args=(path,))
        timer.daemon = True
        timer.args = (path, timer)
        with self._lock:
            self._timers.add(timer)
        timer.start()
        logger.debug("Scheduled deletion of %s in %.1fs", path, delay)

    def pending(self) -> int:
        with self._lock:
            return len(self._timers)

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until currently scheduled deletions have run"""
        with self._lock:
            timers = list(self._timers)
        for timer in timers:
            timer.join(timeout)

    def shutdown(self, delete_now: bool = False) -> None:
        """Cancel deletions that have not fired yet, optionally running them immediately"""
        with self._lock:
            timers = list(self._timers)
        for timer in timers:
            fired = timer.finished.is_set()
            timer.cancel()
            if delete_now and not fired:
                self._run(*timer.args)
        with self._lock:
            self._timers.clear()

    def _run(self, path: str, timer: threading.Timer) -> None:
        try:
            os.remove(path)
            logger.info("Temporary file deleted: %s", path)
        except FileNotFoundError:
            logger.debug("Temporary file already gone: %s", path)
        except OSError as e:
            logger.warning("Could not delete temporary file %s: %s", path, e)
        finally:
            with self._lock:
                self._timers.discard(timer)
