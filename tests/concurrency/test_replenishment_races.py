"""
Replenishment race tests.

Every worker thread gets its own session and service; coordination happens
only in the database.  On SQLite every transaction starts with BEGIN
IMMEDIATE, so racing writers queue on the database lock; on PostgreSQL
(DATABASE_URL) they queue on row locks and the open-slot unique index.

Expected Behavior:
- N concurrent creators for one medicine: exactly one success, N-1 conflicts
- Concurrent creators for different medicines: numbers 001..N, no gaps
- approve vs reject on one request: exactly one wins, the loser is told
  the winner's status
- Concurrent receipts: stock credited exactly once
- A lock wait beyond the caller's timeout: StoreTimeoutError, nothing written
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from threading import Barrier
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from pharmacy_kernel.db.engine import is_postgres
from pharmacy_kernel.domain.actor import Actor
from pharmacy_kernel.exceptions import (
    DuplicateRequestError,
    InvalidTransitionError,
    StoreTimeoutError,
)
from pharmacy_kernel.models.inventory_item import InventoryItem
from pharmacy_modules.replenishment.models import StockRequestStatus
from pharmacy_modules.replenishment.orm import StockRequestModel

pytestmark = [pytest.mark.slow_locks]

THREADS = 8
DELIVERY_DATE = date(2024, 3, 20)


def _run_concurrently(calls):
    """Start every call behind one barrier; return (results, errors)."""
    barrier = Barrier(len(calls))

    def _wrapped(call):
        barrier.wait()
        try:
            return call(), None
        except Exception as exc:
            return None, exc

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        outcomes = list(pool.map(_wrapped, calls))

    results = [r for r, e in outcomes if e is None]
    errors = [e for r, e in outcomes if e is not None]
    return results, errors


def _open_count(session_factory, item_id) -> int:
    with session_factory() as s:
        return s.execute(
            select(func.count(StockRequestModel.id)).where(
                StockRequestModel.item_id == item_id,
                StockRequestModel.active_item_id.is_not(None),
            )
        ).scalar_one()


class TestConcurrentCreation:

    def test_one_winner_per_medicine(self, make_service, session_factory, items):
        item_id = items["paracetamol"]
        workers = [Actor.worker(uuid4()) for _ in range(THREADS)]

        def create(worker):
            return lambda: make_service().create_request(
                item_id=item_id, actor=worker, requested_quantity=25,
                reason="Below minimum stock",
            )

        results, errors = _run_concurrently([create(w) for w in workers])

        assert len(results) == 1
        assert len(errors) == THREADS - 1
        assert all(isinstance(e, DuplicateRequestError) for e in errors), errors
        assert _open_count(session_factory, item_id) == 1
        assert results[0].request_number == "SR-20240315-001"

    def test_numbers_are_contiguous_under_concurrency(
        self, make_service, session_factory, counter_value, worker,
    ):
        item_ids = []
        with session_factory() as s:
            for i in range(THREADS):
                item = InventoryItem(
                    name=f"Medicine {i}", unit_price=Decimal("1.00"), on_hand=0,
                    reorder_threshold=5, created_by_id=uuid4(),
                )
                s.add(item)
                s.flush()
                item_ids.append(item.id)
            s.commit()

        def create(item_id):
            return lambda: make_service().create_request(
                item_id=item_id, actor=worker, requested_quantity=10,
                reason="Restock",
            )

        results, errors = _run_concurrently([create(i) for i in item_ids])

        assert errors == []
        numbers = sorted(r.request_number for r in results)
        assert numbers == [f"SR-20240315-{n:03d}" for n in range(1, THREADS + 1)]
        assert counter_value("stock_request:20240315") == THREADS


class TestConcurrentReview:

    def test_approve_and_reject_serialize(
        self, make_service, items, worker, owner,
    ):
        request = make_service().create_request(
            item_id=items["paracetamol"], actor=worker, requested_quantity=25,
            reason="Below minimum stock",
        )

        results, errors = _run_concurrently([
            lambda: make_service().approve(request.id, owner),
            lambda: make_service().reject(request.id, owner, reason="Overstocked"),
        ])

        assert len(results) == 1
        assert len(errors) == 1
        winner = results[0]
        loser = errors[0]
        assert isinstance(loser, InvalidTransitionError)
        assert loser.current_status == winner.status.value
        assert winner.status in (StockRequestStatus.APPROVED, StockRequestStatus.REJECTED)

        final = make_service().get_by_id(request.id, owner)
        assert final.status == winner.status

    def test_double_receipt_credits_once(
        self, make_service, items, vendors, worker, owner, on_hand,
    ):
        service = make_service()
        request = service.create_request(
            item_id=items["amoxicillin"], actor=worker, requested_quantity=50,
            reason="Flu season",
        )
        service.approve(request.id, owner)
        service.dispatch_to_vendor(
            request.id, owner, vendor_id=vendors["active"],
            expected_delivery_date=DELIVERY_DATE,
        )

        results, errors = _run_concurrently([
            lambda: make_service().mark_received(request.id, owner)
            for _ in range(4)
        ])

        assert len(results) == 1
        assert len(errors) == 3
        for error in errors:
            assert isinstance(error, InvalidTransitionError)
            assert error.current_status == "Received"
        assert on_hand(items["amoxicillin"]) == 90


class TestStoreTimeout:

    @pytest.fixture
    def pending_request(self, make_service, items, worker):
        return make_service().create_request(
            item_id=items["paracetamol"], actor=worker, requested_quantity=25,
            reason="Below minimum stock",
        )

    def _lock_request(self, session_factory, request_id):
        blocker = session_factory()
        blocker.execute(
            select(StockRequestModel)
            .where(StockRequestModel.id == request_id)
            .with_for_update()
        ).scalar_one()
        return blocker

    def test_lock_wait_beyond_timeout_changes_nothing(
        self, make_service, session_factory, pending_request, owner,
    ):
        blocker = self._lock_request(session_factory, pending_request.id)
        try:
            with pytest.raises(StoreTimeoutError) as exc_info:
                make_service().approve(pending_request.id, owner, timeout=0.2)
        finally:
            blocker.rollback()
            blocker.close()

        assert exc_info.value.retryable is True
        assert exc_info.value.operation == "approve"
        assert make_service().get_by_id(pending_request.id, owner).status == (
            StockRequestStatus.PENDING
        )

    def test_service_usable_after_timeout(
        self, make_service, session_factory, pending_request, owner,
    ):
        service = make_service()
        blocker = self._lock_request(session_factory, pending_request.id)
        try:
            with pytest.raises(StoreTimeoutError):
                service.approve(pending_request.id, owner, timeout=0.2)
        finally:
            blocker.rollback()
            blocker.close()

        approved = service.approve(pending_request.id, owner)
        assert approved.status == StockRequestStatus.APPROVED

    def test_creation_timeout_writes_nothing(
        self, make_service, session_factory, counter_value, items, worker, owner,
    ):
        if is_postgres():
            pytest.skip("row locks do not block unrelated inserts")
        blocker = session_factory()
        blocker.connection()
        try:
            with pytest.raises(StoreTimeoutError):
                make_service().create_request(
                    item_id=items["paracetamol"], actor=worker,
                    requested_quantity=25, reason="Below minimum stock",
                    timeout=0.2,
                )
        finally:
            blocker.rollback()
            blocker.close()

        assert make_service().list_requests(owner).total_count == 0
        assert counter_value("stock_request:20240315") is None
