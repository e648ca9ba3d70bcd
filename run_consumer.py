#!/usr/bin/env python
"""
Script to drain pending notification outbox entries without the web app
"""
import logging
import sys

from minimarket_orders.config import settings
from minimarket_orders.consumers.runtime import NotificationRuntime
from minimarket_orders.database import SessionLocal, init_db
from minimarket_orders.logging_config import configure_logging

logger = logging.getLogger("run_consumer")


def main() -> int:
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    init_db()
    runtime = NotificationRuntime(SessionLocal, settings)
    try:
        handled = runtime.drain()
        logger.info("Processed %s pending outbox entries", handled)
    except KeyboardInterrupt:
        logger.info("Consumer stopped by user")
    finally:
        runtime.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
