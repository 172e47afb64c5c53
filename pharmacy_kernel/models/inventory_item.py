"""
Module: pharmacy_kernel.models.inventory_item
Responsibility: ORM persistence for sellable medicines and their on-hand
    stock.  This table is the authoritative stock ledger the replenishment
    workflow credits on receipt.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - on_hand is never written with a value computed in Python by the
      replenishment workflow; increments go through the atomic add in
      services/inventory_ledger.py.
    - on_hand and reorder_threshold are non-negative (ck_ constraints).

Failure modes:
    - IntegrityError if a CHECK constraint is violated.
"""

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_kernel.db.base import TrackedBase


class InventoryItem(TrackedBase):
    """
    A medicine in the pharmacy catalog.

    Guarantees:
        - on_hand >= 0 and reorder_threshold >= 0.
        - is_low_stock is True iff on_hand <= reorder_threshold.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        CheckConstraint("on_hand >= 0", name="ck_inventory_item_on_hand"),
        CheckConstraint(
            "reorder_threshold >= 0", name="ck_inventory_item_reorder_threshold"
        ),
        Index("idx_inventory_item_name", "name"),
        Index("idx_inventory_item_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    brand: Mapped[str | None] = mapped_column(String(200), nullable=True)

    company: Mapped[str | None] = mapped_column(String(200), nullable=True)

    strength: Mapped[str | None] = mapped_column(String(50), nullable=True)

    category: Mapped[str | None] = mapped_column(String(50), nullable=True)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Authoritative on-hand quantity
    on_hand: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Minimum stock level; at or below it the item is under-stocked
    reorder_threshold: Mapped[int] = mapped_column(
        Integer, nullable=False, default=10
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def is_low_stock(self) -> bool:
        return self.on_hand <= self.reorder_threshold

    def __repr__(self) -> str:
        return f"<InventoryItem {self.name}: on_hand={self.on_hand}>"
