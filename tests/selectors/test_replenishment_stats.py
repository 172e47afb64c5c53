"""
Tests for the replenishment dashboard projection.

Validates:
- Every status and urgency key present, zero when empty
- Estimated cost at risk sums open requests only
- Critical open count and recent requests
"""

from datetime import date
from decimal import Decimal

import pytest

from pharmacy_kernel.exceptions import AccessDeniedError
from pharmacy_modules.replenishment.models import StockRequestStatus, UrgencyLevel
from pharmacy_modules.replenishment.selector import StockRequestSelector


class TestEmptyStats:

    def test_empty_table_has_every_key(self, service, owner):
        stats = service.stats(owner)

        assert set(stats.counts_by_status) == set(StockRequestStatus)
        assert set(stats.counts_by_urgency) == set(UrgencyLevel)
        assert all(v == 0 for v in stats.counts_by_status.values())
        assert all(v == 0 for v in stats.counts_by_urgency.values())
        assert stats.estimated_cost_at_risk == Decimal("0.00")
        assert stats.critical_open == 0
        assert stats.total == 0
        assert stats.recent == ()


class TestPopulatedStats:

    @pytest.fixture
    def populated(self, service, items, vendors, worker, owner, deterministic_clock):
        """
        paracetamol  Critical  est 120.00  -> Pending
        amoxicillin  High      est  80.00  -> Ordered
        vitamin_c    Critical  est  30.50  -> Cancelled
        insulin      Low       no estimate -> Received
        """
        def create(key, urgency, estimate):
            deterministic_clock.advance(60)
            return service.create_request(
                item_id=items[key], actor=worker, requested_quantity=10,
                reason="Restock", urgency_level=urgency, estimated_cost=estimate,
            )

        pending = create("paracetamol", UrgencyLevel.CRITICAL, Decimal("120.00"))

        ordered = create("amoxicillin", UrgencyLevel.HIGH, Decimal("80.00"))
        service.approve(ordered.id, owner)
        service.dispatch_to_vendor(
            ordered.id, owner, vendor_id=vendors["active"],
            expected_delivery_date=date(2024, 3, 25),
        )

        cancelled = create("vitamin_c", UrgencyLevel.CRITICAL, Decimal("30.50"))
        service.cancel(cancelled.id, worker)

        received = create("insulin", UrgencyLevel.LOW, None)
        service.approve(received.id, owner)
        service.dispatch_to_vendor(
            received.id, owner, vendor_id=vendors["active"],
            expected_delivery_date=date(2024, 3, 25),
        )
        service.mark_received(received.id, owner)

        return [pending, ordered, cancelled, received]

    def test_counts(self, service, owner, populated):
        stats = service.stats(owner)

        assert stats.counts_by_status[StockRequestStatus.PENDING] == 1
        assert stats.counts_by_status[StockRequestStatus.ORDERED] == 1
        assert stats.counts_by_status[StockRequestStatus.CANCELLED] == 1
        assert stats.counts_by_status[StockRequestStatus.RECEIVED] == 1
        assert stats.counts_by_status[StockRequestStatus.APPROVED] == 0
        assert stats.counts_by_urgency[UrgencyLevel.CRITICAL] == 2
        assert stats.counts_by_urgency[UrgencyLevel.MEDIUM] == 0
        assert stats.total == 4

    def test_cost_at_risk_covers_open_requests_only(self, service, owner, populated):
        stats = service.stats(owner)
        assert stats.estimated_cost_at_risk == Decimal("200.00")

    def test_critical_open(self, service, owner, populated):
        assert service.stats(owner).critical_open == 1

    def test_recent_newest_first(self, service, owner, populated):
        recent = service.stats(owner).recent
        assert [r.id for r in recent] == [r.id for r in reversed(populated)]

    def test_recent_limit(self, session_factory, populated):
        with session_factory() as s:
            stats = StockRequestSelector(s).stats(recent_limit=2)
        assert len(stats.recent) == 2

        with session_factory() as s:
            assert StockRequestSelector(s).stats(recent_limit=0).recent == ()

    def test_worker_cannot_view(self, service, worker, populated):
        with pytest.raises(AccessDeniedError):
            service.stats(worker)
