"""
SQLAlchemy ORM persistence model for stock requests.

Responsibility
--------------
Database-backed persistence for the stock replenishment lifecycle.  Order
details are flattened into ``order_*`` columns on the request row so that
the receipt path updates a single row.

Architecture position
---------------------
**Modules layer** -- ORM model consumed by ``StockReplenishmentService``
and ``StockRequestSelector``.  Inherits from ``TrackedBase`` (kernel db
layer).

Invariants enforced
-------------------
* ``request_number`` is unique (``uq_stock_request_number``).
* ``active_item_id`` equals ``item_id`` while the request is in a
  non-terminal status and is NULL once terminal.  The UNIQUE constraint
  ``uq_stock_request_active_item`` therefore allows at most one in-flight
  request per medicine; NULLs do not collide.
* ``version`` is the SQLAlchemy ``version_id_col``: every UPDATE checks
  the version it read, so a lost update raises ``StaleDataError``.
* All monetary fields use ``Decimal`` -- NEVER float.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_kernel.db.base import TrackedBase
from pharmacy_kernel.db.types import as_utc

ACTIVE_ITEM_CONSTRAINT = "uq_stock_request_active_item"


class StockRequestModel(TrackedBase):
    """
    A request to restock one medicine.

    Maps to the ``StockRequest`` DTO in
    ``pharmacy_modules.replenishment.models``.
    """

    __tablename__ = "stock_requests"

    __table_args__ = (
        UniqueConstraint("request_number", name="uq_stock_request_number"),
        UniqueConstraint("active_item_id", name=ACTIVE_ITEM_CONSTRAINT),
        CheckConstraint(
            "requested_quantity >= 1", name="ck_stock_request_quantity"
        ),
        CheckConstraint(
            "estimated_cost IS NULL OR estimated_cost >= 0",
            name="ck_stock_request_estimated_cost",
        ),
        Index("idx_stock_request_item", "item_id"),
        Index("idx_stock_request_requested_by", "requested_by_id"),
        Index("idx_stock_request_status", "status"),
        Index("idx_stock_request_urgency", "urgency_level"),
        Index("idx_stock_request_created_at", "created_at"),
    )

    request_number: Mapped[str] = mapped_column(String(20), nullable=False)
    item_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_items.id"), nullable=False
    )
    requested_by_id: Mapped[UUID] = mapped_column(nullable=False)
    current_stock_snapshot: Mapped[int] = mapped_column(Integer, nullable=False)
    requested_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    urgency_level: Mapped[str] = mapped_column(
        String(20), nullable=False, default="Medium"
    )
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    preferred_vendor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("vendors.id"), nullable=True
    )
    estimated_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    requested_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending")
    is_urgent: Mapped[bool] = mapped_column(nullable=False, default=False)

    # Owner action
    reviewed_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    admin_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    cancelled_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    # Order details (vendor dispatch and receipt)
    order_vendor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("vendors.id"), nullable=True
    )
    order_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    order_expected_delivery_date: Mapped[date | None] = mapped_column(
        Date, nullable=True
    )
    order_actual_delivery_date: Mapped[date | None] = mapped_column(
        Date, nullable=True
    )
    order_invoice_number: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    order_total_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    order_received_quantity: Mapped[int | None] = mapped_column(
        Integer, nullable=True
    )
    order_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Stamped in the same transaction as the inventory increment
    stock_credited_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Open slot: item_id while non-terminal, NULL once terminal
    active_item_id: Mapped[UUID | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        from pharmacy_modules.replenishment.models import (
            OrderDetails,
            StockRequest,
            StockRequestStatus,
            UrgencyLevel,
        )

        order = None
        if self.order_vendor_id is not None:
            order = OrderDetails(
                vendor_id=self.order_vendor_id,
                order_date=self.order_date,
                expected_delivery_date=self.order_expected_delivery_date,
                total_cost=self.order_total_cost,
                actual_delivery_date=self.order_actual_delivery_date,
                invoice_number=self.order_invoice_number,
                received_quantity=self.order_received_quantity,
                notes=self.order_notes,
            )

        return StockRequest(
            id=self.id,
            request_number=self.request_number,
            item_id=self.item_id,
            requested_by_id=self.requested_by_id,
            current_stock_snapshot=self.current_stock_snapshot,
            requested_quantity=self.requested_quantity,
            urgency_level=UrgencyLevel(self.urgency_level),
            reason=self.reason,
            status=StockRequestStatus(self.status),
            is_urgent=self.is_urgent,
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
            preferred_vendor_id=self.preferred_vendor_id,
            estimated_cost=self.estimated_cost,
            requested_delivery_date=self.requested_delivery_date,
            reviewed_by_id=self.reviewed_by_id,
            reviewed_at=as_utc(self.reviewed_at),
            admin_notes=self.admin_notes,
            cancelled_by_id=self.cancelled_by_id,
            order_details=order,
            stock_credited_at=as_utc(self.stock_credited_at),
        )

    def __repr__(self) -> str:
        return f"<StockRequestModel {self.request_number} [{self.status}]>"
