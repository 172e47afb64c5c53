"""
Vendor Directory -- read-only vendor lookups for the replenishment workflow.

``VendorDirectory`` is the port; ``SqlVendorDirectory`` reads the
``vendors`` table.  Vendors are managed elsewhere; nothing here writes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select

from pharmacy_kernel.models.vendor import Vendor
from pharmacy_kernel.services.base import BaseService


@dataclass(frozen=True)
class VendorInfo:
    """Immutable DTO for vendor data."""

    id: UUID
    name: str
    company: str
    categories: tuple[str, ...]
    is_active: bool


@runtime_checkable
class VendorDirectory(Protocol):
    """Port for the vendor directory."""

    def get_vendor(self, vendor_id: UUID) -> VendorInfo | None:
        """Return the vendor, or None if the id is unknown."""
        ...


class SqlVendorDirectory(BaseService[Vendor]):
    """VendorDirectory backed by the ``vendors`` table."""

    def get_vendor(self, vendor_id: UUID) -> VendorInfo | None:
        vendor = self.session.execute(
            select(Vendor).where(Vendor.id == vendor_id)
        ).scalar_one_or_none()
        if vendor is None:
            return None
        return VendorInfo(
            id=vendor.id,
            name=vendor.name,
            company=vendor.company,
            categories=tuple(vendor.categories or ()),
            is_active=vendor.is_active,
        )
