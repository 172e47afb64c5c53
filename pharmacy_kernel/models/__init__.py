"""Kernel-owned models: the inventory ledger and the vendor directory."""

from pharmacy_kernel.models.inventory_item import InventoryItem
from pharmacy_kernel.models.vendor import Vendor

__all__ = [
    "InventoryItem",
    "Vendor",
]
