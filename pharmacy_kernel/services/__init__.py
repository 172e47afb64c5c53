"""Services for the pharmacy kernel (write side)."""

from pharmacy_kernel.services.inventory_ledger import (
    InventoryLedger,
    SqlInventoryLedger,
)
from pharmacy_kernel.services.sequence_service import SequenceService
from pharmacy_kernel.services.vendor_directory import (
    SqlVendorDirectory,
    VendorDirectory,
    VendorInfo,
)

__all__ = [
    "InventoryLedger",
    "SequenceService",
    "SqlInventoryLedger",
    "SqlVendorDirectory",
    "VendorDirectory",
    "VendorInfo",
]
