"""
Request numbering -- ``SR-<YYYYMMDD>-<seq3>`` from a per-day counter.

The day is the calendar date of the creation instant in the business time
zone.  Each day has its own counter row (``stock_request:<YYYYMMDD>``) in
``sequence_counters``; the row lock serializes concurrent creators and a
rolled-back creation gives its number back, so committed numbers for a
day run 001, 002, ... without gaps or collisions.
"""

from datetime import datetime

from sqlalchemy.orm import Session

from pharmacy_kernel.exceptions import RequestNumberExhaustedError
from pharmacy_kernel.logging_config import get_logger
from pharmacy_kernel.services.sequence_service import SequenceService
from pharmacy_modules.replenishment.config import ReplenishmentConfig

logger = get_logger("modules.replenishment.numbering")

COUNTER_PREFIX = "stock_request"

# Fixed: audit trails and paper invoices quote numbers in this form.
REQUEST_NUMBER_PREFIX = "SR"


def business_day(now: datetime, config: ReplenishmentConfig) -> str:
    """``YYYYMMDD`` of ``now`` in the business time zone."""
    return now.astimezone(config.tz).strftime("%Y%m%d")


def format_request_number(day: str, sequence: int) -> str:
    return f"{REQUEST_NUMBER_PREFIX}-{day}-{sequence:03d}"


class RequestNumberAllocator:
    """Allocates request numbers inside the caller's transaction."""

    def __init__(self, session: Session, config: ReplenishmentConfig):
        self._sequences = SequenceService(session)
        self._config = config

    def allocate(self, now: datetime) -> str:
        """
        Next request number for the business day containing ``now``.

        Raises:
            RequestNumberExhaustedError: the day's range is used up.  The
                counter increment is rolled back with the caller's
                transaction.
        """
        day = business_day(now, self._config)
        sequence = self._sequences.next_value(f"{COUNTER_PREFIX}:{day}")
        if sequence > self._config.max_daily_requests:
            logger.error(
                "request_number_exhausted",
                extra={"day": day, "limit": self._config.max_daily_requests},
            )
            raise RequestNumberExhaustedError(day, self._config.max_daily_requests)

        number = format_request_number(day, sequence)
        logger.debug(
            "request_number_allocated",
            extra={"request_number": number, "day": day, "sequence": sequence},
        )
        return number
