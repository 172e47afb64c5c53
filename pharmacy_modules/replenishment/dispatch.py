"""
Vendor dispatch -- builds the order record for ``Approved -> Ordered``.

Validates the vendor and dates and prices the order.  Writes nothing to
inventory; stock only moves at receipt.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from pharmacy_kernel.db.types import round_money
from pharmacy_kernel.exceptions import ValidationError, VendorNotFoundError
from pharmacy_kernel.logging_config import get_logger
from pharmacy_kernel.services.inventory_ledger import InventoryLedger
from pharmacy_kernel.services.vendor_directory import VendorDirectory

logger = get_logger("modules.replenishment.dispatch")


@dataclass(frozen=True)
class VendorOrder:
    """Order fields written onto the request at dispatch."""
    vendor_id: UUID
    order_date: date
    expected_delivery_date: date
    total_cost: Decimal
    notes: str | None = None


def compute_total_cost(
    estimated_cost: Decimal | None,
    unit_price: Decimal,
    requested_quantity: int,
) -> Decimal:
    """The explicit estimate wins; otherwise unit price times quantity."""
    if estimated_cost is not None:
        return round_money(Decimal(estimated_cost))
    return round_money(Decimal(unit_price) * requested_quantity)


class VendorDispatcher:

    def __init__(self, vendors: VendorDirectory, ledger: InventoryLedger):
        self._vendors = vendors
        self._ledger = ledger

    def build_order(
        self,
        *,
        item_id: UUID,
        requested_quantity: int,
        estimated_cost: Decimal | None,
        vendor_id: UUID | None,
        expected_delivery_date: date | None,
        order_date: date,
        notes: str | None = None,
    ) -> VendorOrder:
        """
        Validate dispatch inputs and price the order.

        Raises:
            ValidationError: vendor or expected date missing, vendor
                inactive, or expected date before the order date.
            VendorNotFoundError: unknown vendor id.
        """
        if vendor_id is None:
            raise ValidationError("vendor_id", "a vendor is required to dispatch")
        if expected_delivery_date is None:
            raise ValidationError(
                "expected_delivery_date",
                "an expected delivery date is required to dispatch",
            )
        if expected_delivery_date < order_date:
            raise ValidationError(
                "expected_delivery_date",
                f"expected delivery {expected_delivery_date.isoformat()} is before "
                f"the order date {order_date.isoformat()}",
            )

        vendor = self._vendors.get_vendor(vendor_id)
        if vendor is None:
            raise VendorNotFoundError(str(vendor_id))
        if not vendor.is_active:
            raise ValidationError("vendor_id", f"vendor {vendor.name} is inactive")

        unit_price = (
            self._ledger.unit_price(item_id) if estimated_cost is None else Decimal("0")
        )
        total_cost = compute_total_cost(estimated_cost, unit_price, requested_quantity)

        logger.info(
            "vendor_order_built",
            extra={
                "vendor_id": str(vendor_id),
                "item_id": str(item_id),
                "total_cost": str(total_cost),
                "cost_source": "estimate" if estimated_cost is not None else "unit_price",
            },
        )
        return VendorOrder(
            vendor_id=vendor_id,
            order_date=order_date,
            expected_delivery_date=expected_delivery_date,
            total_cost=total_cost,
            notes=notes,
        )
