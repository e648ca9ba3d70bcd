"""
Repositories package
"""
from minimarket_orders.repositories.order_repository import OrderRepository
from minimarket_orders.repositories.outbox_repository import OutboxRepository
from minimarket_orders.repositories.setting_repository import SystemSettingRepository

__all__ = ["OrderRepository", "OutboxRepository", "SystemSettingRepository"]
