"""
Tests for reading files that may still be held by a writer
"""
import errno
import io
import time

import pytest

from minimarket_orders.config import FileReadPolicy
from minimarket_orders.services.file_reader import FileInUseError, RetryingFileReader, is_file_in_use


class FlakyOpener:
    """Fails with ``error`` for the first ``failures`` calls, then returns ``content``"""

    def __init__(self, failures, content=b"%PDF-1.4 receipt", error=None):
        self.failures = failures
        self.content = content
        self.error = error or PermissionError(errno.EACCES, "locked by writer")
        self.calls = 0

    def __call__(self, path, mode):
        self.calls += 1
        if self.failures is None or self.calls <= self.failures:
            raise self.error
        return io.BytesIO(self.content)


@pytest.fixture
def sleeps():
    return []


def test_succeeds_after_transient_lock(sleeps):
    opener = FlakyOpener(failures=2)
    reader = RetryingFileReader(opener=opener, sleep=sleeps.append)

    data = reader.read_all("/tmp/receipt.pdf", max_attempts=5, initial_delay=0.1, backoff_multiplier=2.0)

    assert data == b"%PDF-1.4 receipt"
    assert opener.calls == 3
    assert sleeps == pytest.approx([0.1, 0.2])
    assert sum(sleeps) >= 0.1 + 0.2 - 1e-9


def test_gives_up_after_max_attempts(sleeps):
    opener = FlakyOpener(failures=None)
    reader = RetryingFileReader(opener=opener, sleep=sleeps.append)

    with pytest.raises(PermissionError):
        reader.read_all("/tmp/receipt.pdf", max_attempts=5, initial_delay=0.1, backoff_multiplier=2.0)

    assert opener.calls == 5
    assert sleeps == pytest.approx([0.1, 0.2, 0.4, 0.8])


def test_missing_file_is_not_retried(tmp_path, sleeps):
    reader = RetryingFileReader(sleep=sleeps.append)

    with pytest.raises(FileNotFoundError):
        reader.read_all(str(tmp_path / "missing.pdf"))

    assert sleeps == []


def test_busy_errno_is_retried(sleeps):
    opener = FlakyOpener(failures=1, error=OSError(errno.EBUSY, "device busy"))
    reader = RetryingFileReader(opener=opener, sleep=sleeps.append)

    assert reader.read_all("/tmp/receipt.pdf") == b"%PDF-1.4 receipt"
    assert opener.calls == 2


def test_defaults_come_from_policy(sleeps):
    opener = FlakyOpener(failures=None)
    policy = FileReadPolicy(max_attempts=3, initial_delay=0.5, backoff_multiplier=3.0)
    reader = RetryingFileReader(policy, opener=opener, sleep=sleeps.append)

    with pytest.raises(PermissionError):
        reader.read_all("/tmp/receipt.pdf")

    assert opener.calls == 3
    assert sleeps == pytest.approx([0.5, 1.5])


def test_empty_file_waits_for_writer(tmp_path):
    path = tmp_path / "receipt.pdf"
    path.write_bytes(b"")

    def writer_finishes(delay):
        path.write_bytes(b"%PDF-1.4 done")

    reader = RetryingFileReader(sleep=writer_finishes)

    assert reader.read_all(str(path)) == b"%PDF-1.4 done"


def test_real_sleep_waits_at_least_backoff(tmp_path):
    opener = FlakyOpener(failures=2)
    reader = RetryingFileReader(opener=opener)

    started = time.monotonic()
    reader.read_all(str(tmp_path / "x.pdf"), max_attempts=5, initial_delay=0.02, backoff_multiplier=2.0)

    assert time.monotonic() - started >= 0.02 + 0.04


@pytest.mark.parametrize("exc, expected", [
    (PermissionError(errno.EACCES, "denied"), True),
    (FileInUseError(errno.EAGAIN, "empty"), True),
    (OSError(errno.ETXTBSY, "busy"), True),
    (FileNotFoundError(errno.ENOENT, "missing"), False),
    (OSError(errno.EIO, "io"), False),
    (ValueError("nope"), False),
])
def test_is_file_in_use(exc, expected):
    assert is_file_in_use(exc) is expected
