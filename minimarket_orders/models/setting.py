"""
SQLAlchemy key/value system settings
"""
from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from minimarket_orders.database import Base


class SystemSetting(Base):
    """Runtime configuration toggles editable from the back office"""

    __tablename__ = "system_settings"

    key = Column(String(100), primary_key=True)
    value = Column(String(500), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<SystemSetting(key='{self.key}', value='{self.value}')>"
