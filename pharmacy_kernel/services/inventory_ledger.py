"""
Inventory Ledger -- stock reads and the atomic stock increment.

Responsibility:
    The narrow interface the replenishment workflow uses against the
    medicine catalog: read on-hand quantity, reorder threshold and unit
    price, and credit stock on receipt.

Architecture position:
    Kernel > Services.  ``InventoryLedger`` is the port; ``SqlInventoryLedger``
    is the adapter over the ``inventory_items`` table.  Another catalog can
    be plugged in by implementing the protocol.

Invariants enforced:
    - increment_stock is a single ``UPDATE ... SET on_hand = on_hand + :n``.
      Stock is never loaded, modified in Python, and stored back, so two
      concurrent increments both land.
    - The increment joins the caller's transaction (flush-only), so a
      rolled-back receipt also rolls back its credit.

Failure modes:
    - InventoryItemNotFoundError for an unknown item id.
    - ValidationError for a non-positive increment.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select, update

from pharmacy_kernel.exceptions import InventoryItemNotFoundError, ValidationError
from pharmacy_kernel.logging_config import get_logger
from pharmacy_kernel.models.inventory_item import InventoryItem
from pharmacy_kernel.services.base import BaseService

logger = get_logger("services.inventory_ledger")


@runtime_checkable
class InventoryLedger(Protocol):
    """Port for the catalog of sellable items."""

    def current_stock(self, item_id: UUID) -> int:
        """On-hand quantity. Raises InventoryItemNotFoundError."""
        ...

    def reorder_threshold(self, item_id: UUID) -> int:
        """Reorder threshold. Raises InventoryItemNotFoundError."""
        ...

    def unit_price(self, item_id: UUID) -> Decimal:
        """Unit price. Raises InventoryItemNotFoundError."""
        ...

    def increment_stock(self, item_id: UUID, amount: int) -> int:
        """Atomically add ``amount`` to on-hand stock; return the new quantity."""
        ...


class SqlInventoryLedger(BaseService[InventoryItem]):
    """InventoryLedger backed by the ``inventory_items`` table."""

    def _column(self, item_id: UUID, column):
        value = self.session.execute(
            select(column).where(InventoryItem.id == item_id)
        ).scalar_one_or_none()
        if value is None:
            raise InventoryItemNotFoundError(str(item_id))
        return value

    def current_stock(self, item_id: UUID) -> int:
        return int(self._column(item_id, InventoryItem.on_hand))

    def reorder_threshold(self, item_id: UUID) -> int:
        return int(self._column(item_id, InventoryItem.reorder_threshold))

    def unit_price(self, item_id: UUID) -> Decimal:
        return Decimal(self._column(item_id, InventoryItem.unit_price))

    def increment_stock(self, item_id: UUID, amount: int) -> int:
        """
        Add ``amount`` to the item's on-hand stock in one statement.

        Preconditions: caller holds an open transaction.
        Postconditions: on_hand increased by exactly ``amount`` within the
            caller's transaction; the new quantity is returned.
        """
        if amount < 1:
            raise ValidationError("amount", "stock increment must be at least 1")

        result = self.session.execute(
            update(InventoryItem)
            .where(InventoryItem.id == item_id)
            .values(on_hand=InventoryItem.on_hand + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InventoryItemNotFoundError(str(item_id))

        new_quantity = int(self._column(item_id, InventoryItem.on_hand))
        logger.info(
            "stock_incremented",
            extra={
                "item_id": str(item_id),
                "amount": amount,
                "new_quantity": new_quantity,
            },
        )
        return new_quantity
