"""
Replenishment Domain Models.

The nouns of stock replenishment: stock requests, their order details,
and the read-side shapes returned by listings and statistics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class StockRequestStatus(str, Enum):
    """Stock request lifecycle states."""
    PENDING = "Pending"
    UNDER_REVIEW = "UnderReview"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    ORDERED = "Ordered"
    RECEIVED = "Received"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    StockRequestStatus.REJECTED,
    StockRequestStatus.RECEIVED,
    StockRequestStatus.CANCELLED,
})

OPEN_STATUSES = frozenset(StockRequestStatus) - TERMINAL_STATUSES


class UrgencyLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


@dataclass(frozen=True)
class OrderDetails:
    """Vendor order data, filled at dispatch and completed at receipt."""
    vendor_id: UUID
    order_date: date
    expected_delivery_date: date
    total_cost: Decimal
    actual_delivery_date: date | None = None
    invoice_number: str | None = None
    received_quantity: int | None = None
    notes: str | None = None


@dataclass(frozen=True)
class StockRequest:
    """A request to restock one medicine."""
    id: UUID
    request_number: str
    item_id: UUID
    requested_by_id: UUID
    current_stock_snapshot: int
    requested_quantity: int
    urgency_level: UrgencyLevel
    reason: str
    status: StockRequestStatus
    is_urgent: bool
    created_at: datetime
    updated_at: datetime
    preferred_vendor_id: UUID | None = None
    estimated_cost: Decimal | None = None
    requested_delivery_date: date | None = None
    reviewed_by_id: UUID | None = None
    reviewed_at: datetime | None = None
    admin_notes: str | None = None
    cancelled_by_id: UUID | None = None
    order_details: OrderDetails | None = None
    stock_credited_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class StockRequestPage:
    """One page of a listing, with the total count across all pages."""
    items: tuple[StockRequest, ...]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.total_count == 0:
            return 0
        return (self.total_count + self.page_size - 1) // self.page_size


@dataclass(frozen=True)
class StockRequestStats:
    """Dashboard projection over all stock requests."""
    counts_by_status: dict[StockRequestStatus, int]
    counts_by_urgency: dict[UrgencyLevel, int]
    estimated_cost_at_risk: Decimal
    critical_open: int
    total: int
    recent: tuple[StockRequest, ...] = ()


@dataclass(frozen=True)
class BulkEntryFailure:
    """Why one entry of a bulk submission was not created."""
    index: int
    item_id: Any
    error_code: str
    message: str


@dataclass(frozen=True)
class BulkCreateResult:
    created: tuple[StockRequest, ...] = ()
    failed: tuple[BulkEntryFailure, ...] = field(default_factory=tuple)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed
