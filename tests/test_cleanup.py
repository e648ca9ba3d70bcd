"""
Tests for delayed deletion of generated files
"""
import logging

from minimarket_orders.services.cleanup import CleanupScheduler


def test_file_deleted_after_delay(tmp_path):
    path = tmp_path / "receipt.pdf"
    path.write_bytes(b"%PDF")
    scheduler = CleanupScheduler()

    scheduler.schedule_delete(str(path), delay=0.01)
    scheduler.wait(timeout=5)

    assert not path.exists()
    assert scheduler.pending() == 0


def test_missing_file_is_ignored(tmp_path, caplog):
    scheduler = CleanupScheduler(default_delay=0.01)

    with caplog.at_level(logging.DEBUG, logger="minimarket_orders.services.cleanup"):
        scheduler.schedule_delete(str(tmp_path / "gone.pdf"))
        scheduler.wait(timeout=5)

    assert scheduler.pending() == 0
    assert "already gone" in caplog.text


def test_shutdown_cancels_pending(tmp_path):
    path = tmp_path / "receipt.pdf"
    path.write_bytes(b"%PDF")
    scheduler = CleanupScheduler(default_delay=60)

    scheduler.schedule_delete(str(path))
    scheduler.shutdown()

    assert path.exists()
    assert scheduler.pending() == 0


def test_shutdown_can_delete_immediately(tmp_path):
    path = tmp_path / "receipt.pdf"
    path.write_bytes(b"%PDF")
    scheduler = CleanupScheduler(default_delay=60)

    scheduler.schedule_delete(str(path))
    scheduler.shutdown(delete_now=True)

    assert not path.exists()
