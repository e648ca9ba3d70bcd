"""
Services package
"""
from minimarket_orders.services.order_lifecycle import OrderLifecycleManager
from minimarket_orders.services.notification_dispatcher import NotificationDispatcher

__all__ = ["OrderLifecycleManager", "NotificationDispatcher"]
