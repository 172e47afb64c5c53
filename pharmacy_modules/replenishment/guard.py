"""
Duplicate-submission guard -- at most one in-flight request per medicine.

Two layers:

* ``ensure_no_open_request`` -- a read before insert that reports the
  existing request number in the Conflict error.
* the ``active_item_id`` open slot -- ``claim`` sets it to the item id on
  creation and ``release`` clears it on entry to a terminal status.  The
  UNIQUE constraint on the column is the atomic enforcement: when two
  creators pass the read at the same time, the second flush fails with
  IntegrityError and the service turns it into ``DuplicateRequestError``.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmacy_kernel.exceptions import DuplicateRequestError
from pharmacy_kernel.logging_config import get_logger
from pharmacy_modules.replenishment.orm import (
    ACTIVE_ITEM_CONSTRAINT,
    StockRequestModel,
)

logger = get_logger("modules.replenishment.guard")


def is_open_slot_violation(exc: IntegrityError) -> bool:
    """True if ``exc`` was raised by the open-slot unique constraint."""
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return ACTIVE_ITEM_CONSTRAINT in message or "active_item_id" in message


class DuplicateRequestGuard:

    def __init__(self, session: Session):
        self._session = session

    def open_request_number(self, item_id: UUID) -> str | None:
        """Request number holding the item's open slot, if any."""
        return self._session.execute(
            select(StockRequestModel.request_number)
            .where(StockRequestModel.active_item_id == item_id)
        ).scalar_one_or_none()

    def ensure_no_open_request(self, item_id: UUID) -> None:
        """Raise DuplicateRequestError if the item has an in-flight request."""
        existing = self.open_request_number(item_id)
        if existing is not None:
            logger.info(
                "duplicate_request_rejected",
                extra={"item_id": str(item_id), "existing_request_number": existing},
            )
            raise DuplicateRequestError(str(item_id), existing)

    @staticmethod
    def claim(model: StockRequestModel) -> None:
        model.active_item_id = model.item_id

    @staticmethod
    def release(model: StockRequestModel) -> None:
        model.active_item_id = None
