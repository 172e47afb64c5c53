"""
Module: pharmacy_kernel.models.vendor
Responsibility: ORM persistence for the vendor directory.  The replenishment
    workflow only reads it: a preferred vendor must exist, and a dispatch
    vendor must exist and be active.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import JSON, Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_kernel.db.base import TrackedBase


class Vendor(TrackedBase):
    """A supplier the pharmacy can order medicines from."""

    __tablename__ = "vendors"

    __table_args__ = (
        Index("idx_vendor_name", "name"),
        Index("idx_vendor_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    company: Mapped[str] = mapped_column(String(200), nullable=False)

    email: Mapped[str | None] = mapped_column(String(254), nullable=True)

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Medicine categories the vendor supplies, e.g. ["Antibiotic", "Vitamins"]
    categories: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    credit_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Vendor {self.name} ({self.company})>"
