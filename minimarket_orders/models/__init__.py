"""
Models package
"""
from minimarket_orders.models.order import Order, OrderFeedback, OrderItem
from minimarket_orders.models.outbox import NotificationOutbox
from minimarket_orders.models.setting import SystemSetting

__all__ = ["Order", "OrderItem", "OrderFeedback", "NotificationOutbox", "SystemSetting"]
