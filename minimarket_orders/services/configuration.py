"""
Runtime configuration read from system_settings with Settings defaults
"""
import logging

from sqlalchemy.orm import Session

from minimarket_orders.config import BrandingConfig, LeadTimeConfig, Settings
from minimarket_orders.repositories.setting_repository import SystemSettingRepository
from minimarket_orders.schemas.notification import DocumentKind

logger = logging.getLogger(__name__)

DELIVERY_DAYS_KEY = "delivery_days"
PICKUP_DAYS_KEY = "pickup_days"


def template_flag_key(kind: DocumentKind) -> str:
    return f"document_{kind.value}_template_active"


class ConfigurationProvider:
    """Resolves lead times, template flags and branding for one unit of work"""

    def __init__(self, db: Session, settings: Settings):
        self.repository = SystemSettingRepository(db)
        self.settings = settings

    def lead_times(self) -> LeadTimeConfig:
        defaults = self.settings.lead_times()
        return LeadTimeConfig(
            delivery_days=self._int_setting(DELIVERY_DAYS_KEY, defaults.delivery_days),
            pickup_days=self._int_setting(PICKUP_DAYS_KEY, defaults.pickup_days),
        )

    def is_template_active(self, kind: DocumentKind) -> bool:
        """A missing flag means active; only "false" disables a template"""
        if kind == DocumentKind.TEMPLATE_PREVIEW:
            return True
        value = self.repository.get_value(template_flag_key(kind))
        return value is None or value.strip().lower() != "false"

    def branding(self) -> BrandingConfig:
        return self.settings.branding()

    def _int_setting(self, key: str, default: int) -> int:
        raw = self.repository.get_value(key)
        if raw is None:
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning("Ignoring non-numeric system setting %s=%r", key, raw)
            return default
