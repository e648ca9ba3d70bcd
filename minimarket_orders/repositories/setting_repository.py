"""
System Setting Repository
"""
from typing import Optional

from sqlalchemy.orm import Session

from minimarket_orders.models.setting import SystemSetting


class SystemSettingRepository:
    """Repository for key/value system settings"""

    def __init__(self, db: Session):
        self.db = db

    def get_value(self, key: str) -> Optional[str]:
        setting = self.db.query(SystemSetting).filter(SystemSetting.key == key).first()
        return setting.value if setting else None

    def set_value(self, key: str, value: Optional[str]) -> SystemSetting:
        setting = self.db.query(SystemSetting).filter(SystemSetting.key == key).first()
        if setting is None:
            setting = SystemSetting(key=key, value=value)
            self.db.add(setting)
        else:
            setting.value = value
        self.db.commit()
        return setting
