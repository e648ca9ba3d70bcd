"""
Read freshly rendered documents that another task may still be writing
"""
import errno
import logging
import time
from typing import Callable, Optional

from tenacity import Retrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_exponential

from minimarket_orders.config import FileReadPolicy

logger = logging.getLogger(__name__)

IN_USE_ERRNOS = {errno.EACCES, errno.EAGAIN, errno.EBUSY, errno.ETXTBSY}


class FileInUseError(BlockingIOError):
    """The file exists but its content is not available yet"""
    pass


def is_file_in_use(exc: BaseException) -> bool:
    """True for the errors a concurrent writer can cause"""
    if isinstance(exc, (PermissionError, BlockingIOError)):
        return True
    return isinstance(exc, OSError) and exc.errno in IN_USE_ERRNOS


class RetryingFileReader:
    """
    Reads a whole file, retrying with exponential backoff while it is in use

    Missing files and other I/O errors are not retried. When the retries are
    exhausted the last ``OSError`` is raised unchanged.
    """

    def __init__(
        self,
        policy: Optional[FileReadPolicy] = None,
        opener: Callable = open,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.policy = policy or FileReadPolicy()
        self._opener = opener
        self._sleep = sleep

    def read_all(
        self,
        path: str,
        max_attempts: Optional[int] = None,
        initial_delay: Optional[float] = None,
        backoff_multiplier: Optional[float] = None,
    ) -> bytes:
        retrying = Retrying(
            stop=stop_after_attempt(max_attempts or self.policy.max_attempts),
            wait=wait_exponential(
                multiplier=initial_delay if initial_delay is not None else self.policy.initial_delay,
                exp_base=backoff_multiplier or self.policy.backoff_multiplier,
            ),
            retry=retry_if_exception(is_file_in_use),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(self._read_once, path)

    def _read_once(self, path: str) -> bytes:
        with self._opener(path, "rb") as handle:
            data = handle.read()
        if not data:
            # Writer created the file but has not flushed anything yet
            raise FileInUseError(errno.EAGAIN, "File is empty, writer may still be flushing", path)
        return data
