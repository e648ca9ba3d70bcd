"""
Consumers package
"""
from minimarket_orders.consumers.notification_consumer import (
    NotificationConsumer,
    NotificationPipeline,
    NotificationWorkerPool,
)
from minimarket_orders.consumers.runtime import NotificationRuntime

__all__ = ["NotificationConsumer", "NotificationPipeline", "NotificationWorkerPool", "NotificationRuntime"]
