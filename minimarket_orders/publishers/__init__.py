"""
Publishers package
"""
from minimarket_orders.publishers.job_publisher import JobPublisher

__all__ = ["JobPublisher"]
