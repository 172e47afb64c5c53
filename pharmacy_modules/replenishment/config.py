"""
Replenishment Configuration Schema.

Defines the structure and defaults for stock replenishment settings.
Actual values come from ``pharmacy_config.get_active_config()`` at runtime:

    config = ReplenishmentConfig.from_settings(
        get_active_config().replenishment,
    )
"""

from dataclasses import dataclass
from datetime import timezone, tzinfo
from typing import Self
from zoneinfo import ZoneInfo

from pharmacy_config.schema import ReplenishmentSettings
from pharmacy_kernel.logging_config import get_logger

logger = get_logger("modules.replenishment.config")


@dataclass(frozen=True)
class ReplenishmentConfig:
    """
    Configuration schema for the replenishment module.

    ``business_timezone`` decides where the request-number day rolls over:
    "local" is the host's time zone, "UTC" or any IANA zone name otherwise.
    """

    store_timeout_seconds: float = 5.0
    business_timezone: str = "local"
    max_daily_requests: int = 999
    reason_max_length: int = 500
    admin_notes_max_length: int = 1000
    default_page_size: int = 20
    max_page_size: int = 100
    recent_requests_limit: int = 5

    def __post_init__(self):
        logger.debug(
            "replenishment_config_initialized",
            extra={
                "store_timeout_seconds": self.store_timeout_seconds,
                "business_timezone": self.business_timezone,
                "max_daily_requests": self.max_daily_requests,
            },
        )

    @property
    def tz(self) -> tzinfo | None:
        """Business time zone; None means the host's local zone."""
        if self.business_timezone == "local":
            return None
        if self.business_timezone == "UTC":
            return timezone.utc
        return ZoneInfo(self.business_timezone)

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_settings(cls, settings: ReplenishmentSettings) -> Self:
        """Build the module view from loaded ``replenishment`` settings."""
        return cls(
            store_timeout_seconds=settings.store_timeout_seconds,
            business_timezone=settings.business_timezone,
            max_daily_requests=settings.max_daily_requests,
            reason_max_length=settings.reason_max_length,
            admin_notes_max_length=settings.admin_notes_max_length,
            default_page_size=settings.default_page_size,
            max_page_size=settings.max_page_size,
            recent_requests_limit=settings.recent_requests_limit,
        )
