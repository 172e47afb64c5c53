"""
Replenishment Module (``pharmacy_modules.replenishment``).

Responsibility
--------------
The stock request lifecycle: a worker raises a request for a low-stock
medicine, the owner reviews and approves or rejects it, dispatches it to
a vendor, and records receipt, which credits inventory.  Either party may
cancel before receipt.

Architecture position
---------------------
**Modules layer** -- domain models, ORM, workflow table, config schema and
``StockReplenishmentService``, which owns the transaction boundary and
delegates stock and vendor lookups to ``pharmacy_kernel`` services.

Invariants enforced
-------------------
* At most one non-terminal request per medicine.
* Request numbers ``SR-YYYYMMDD-NNN`` are unique and gap-free per day.
* Receipt credits inventory exactly once, in the same transaction as the
  status change.
"""

from pharmacy_modules.replenishment.config import ReplenishmentConfig
from pharmacy_modules.replenishment.models import (
    BulkCreateResult,
    BulkEntryFailure,
    OrderDetails,
    StockRequest,
    StockRequestPage,
    StockRequestStats,
    StockRequestStatus,
    UrgencyLevel,
)
from pharmacy_modules.replenishment.service import StockReplenishmentService
from pharmacy_modules.replenishment.workflows import STOCK_REQUEST_WORKFLOW

__all__ = [
    "BulkCreateResult",
    "BulkEntryFailure",
    "OrderDetails",
    "ReplenishmentConfig",
    "STOCK_REQUEST_WORKFLOW",
    "StockReplenishmentService",
    "StockRequest",
    "StockRequestPage",
    "StockRequestStats",
    "StockRequestStatus",
    "UrgencyLevel",
]
