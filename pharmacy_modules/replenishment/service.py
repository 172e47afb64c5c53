"""
Stock Replenishment Service (``pharmacy_modules.replenishment.service``).

Responsibility
--------------
The public entry point for the stock request lifecycle: creation by a
worker, owner review, vendor dispatch, receipt (which credits inventory)
and cancellation, plus the read operations over requests.

Architecture position
---------------------
**Modules layer** -- composes the kernel ports (``InventoryLedger``,
``VendorDirectory``, ``SequenceService``) with the module's guard,
numbering, dispatcher, selector and ``STOCK_REQUEST_WORKFLOW`` table.

Invariants enforced
-------------------
* Each public method owns the transaction boundary (``commit`` on success,
  ``rollback`` on any exception).  Nothing is retried.
* Every state change goes through ``STOCK_REQUEST_WORKFLOW.resolve`` on a
  row loaded ``FOR UPDATE``; concurrent transitions serialize and the
  loser sees the winner's status in ``InvalidTransitionError``.
* At most one non-terminal request per medicine (open-slot column with a
  UNIQUE constraint, see ``guard.py``).
* Receipt writes the request (status, order fields, ``stock_credited_at``,
  released slot) and the atomic ledger add in ONE transaction.  A request
  can enter Received only once, so stock is credited at most once.
* Every call carries a store timeout (``timeout`` or the configured
  default).  Running out of time raises ``StoreTimeoutError`` after a
  rollback; no partial state is written.

Failure modes
-------------
* ``ValidationError`` -- bad input; raised before any write.
* ``DuplicateRequestError`` -- the medicine already has an open request.
* ``InvalidTransitionError`` -- action not legal from the current status.
* ``StockRequestNotFoundError`` / ``InventoryItemNotFoundError`` /
  ``VendorNotFoundError`` -- unknown identifiers.
* ``AccessDeniedError`` -- role or ownership check failed.
* ``RequestNumberExhaustedError`` -- daily numbering range used up.
* ``StoreTimeoutError`` -- lock wait or store unavailable; retryable.

Audit relevance
---------------
Every transition emits a ``workflow_transition`` record (logged, and
passed to the optional ``outcome_sink`` after commit) carrying the
request, actor, from/to states and duration.

Usage::

    service = StockReplenishmentService(session, clock=clock)
    request = service.create_request(
        item_id=item_id, actor=Actor.worker(worker_id),
        requested_quantity=50, reason="Below minimum stock",
    )
    service.approve(request.id, Actor.owner(owner_id))
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from pharmacy_kernel.db.engine import bind_store_timeout, is_store_timeout
from pharmacy_kernel.db.types import as_utc, round_money
from pharmacy_kernel.domain.actor import Actor, Role
from pharmacy_kernel.domain.clock import Clock, SystemClock
from pharmacy_kernel.domain.workflow import Transition
from pharmacy_kernel.exceptions import (
    AccessDeniedError,
    DuplicateRequestError,
    InvalidTransitionError,
    PharmacyKernelError,
    StockRequestNotFoundError,
    StoreTimeoutError,
    ValidationError,
)
from pharmacy_kernel.logging_config import LogContext, get_logger
from pharmacy_kernel.services.inventory_ledger import (
    InventoryLedger,
    SqlInventoryLedger,
)
from pharmacy_kernel.services.vendor_directory import (
    SqlVendorDirectory,
    VendorDirectory,
)
from pharmacy_modules.replenishment.config import ReplenishmentConfig
from pharmacy_modules.replenishment.dispatch import VendorDispatcher
from pharmacy_modules.replenishment.guard import (
    DuplicateRequestGuard,
    is_open_slot_violation,
)
from pharmacy_modules.replenishment.models import (
    BulkCreateResult,
    BulkEntryFailure,
    StockRequest,
    StockRequestPage,
    StockRequestStats,
    StockRequestStatus,
    UrgencyLevel,
)
from pharmacy_modules.replenishment.numbering import RequestNumberAllocator
from pharmacy_modules.replenishment.orm import StockRequestModel
from pharmacy_modules.replenishment.selector import StockRequestSelector
from pharmacy_modules.replenishment.workflows import (
    APPROVE,
    BEGIN_REVIEW,
    CANCEL,
    DISPATCH,
    RECEIVE,
    REJECT,
    STOCK_REQUEST_WORKFLOW,
    replenishment_guard_executor,
)

logger = get_logger("modules.replenishment.service")

T = TypeVar("T")

TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"

_BULK_FIELDS = frozenset({
    "item_id",
    "requested_quantity",
    "reason",
    "urgency_level",
    "preferred_vendor_id",
    "estimated_cost",
    "requested_delivery_date",
})

_INVOICE_NUMBER_MAX_LENGTH = 100
_SEARCH_MAX_LENGTH = 50


# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------


def _as_uuid(value: Any, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        try:
            return UUID(value)
        except ValueError:
            pass
    raise ValidationError(field, f"not a valid identifier: {value!r}")


def _optional_uuid(value: Any, field: str) -> UUID | None:
    return None if value is None else _as_uuid(value, field)


def _positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, "must be a whole number")
    if value < 1:
        raise ValidationError(field, "must be at least 1")
    return value


def _non_negative_money(value: Any, field: str) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(field, "must be a number")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(field, f"must be a number, got {value!r}") from None
    if not amount.is_finite():
        raise ValidationError(field, "must be a finite number")
    if amount < 0:
        raise ValidationError(field, "must not be negative")
    return round_money(amount)


def _optional_date(value: Any, field: str) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    raise ValidationError(field, f"not a valid date: {value!r}")


def _bounded_text(value: Any, field: str, max_length: int, *, required: bool) -> str | None:
    if value is None:
        if required:
            raise ValidationError(field, "is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(field, "must be text")
    text = value.strip()
    if not text:
        if required:
            raise ValidationError(field, "must not be empty")
        return None
    if len(text) > max_length:
        raise ValidationError(field, f"must be at most {max_length} characters")
    return text


def _window_bound(value: Any, field: str) -> datetime | None:
    """Listing window bound in UTC; naive values are taken as UTC."""
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise ValidationError(field, "must be a datetime")
    return as_utc(value)


def _urgency(value: Any) -> UrgencyLevel:
    try:
        return UrgencyLevel(value)
    except ValueError:
        allowed = ", ".join(u.value for u in UrgencyLevel)
        raise ValidationError(
            "urgency_level", f"must be one of {allowed}, got {value!r}"
        ) from None


def _require_actor(actor: Any, operation: str) -> Actor:
    if not isinstance(actor, Actor):
        raise AccessDeniedError("", "anonymous", operation)
    return actor


class StockReplenishmentService:
    """
    Orchestrates the stock request lifecycle.

    Contract
    --------
    * Every method returns DTOs from ``models.py``, never ORM rows.
    * One service instance per session; the session is not shared
      between threads.

    Guarantees
    ----------
    * Session is committed only when the whole operation succeeded;
      otherwise rolled back and the typed exception re-raised.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT retry anything, including timeouts.
    * Does NOT authenticate; the caller passes a verified ``Actor``.
    """

    def __init__(
        self,
        session: Session,
        ledger: InventoryLedger | None = None,
        vendors: VendorDirectory | None = None,
        config: ReplenishmentConfig | None = None,
        clock: Clock | None = None,
        outcome_sink: Callable[[dict], None] | None = None,
    ):
        self._session = session
        self._ledger = ledger or SqlInventoryLedger(session)
        self._vendors = vendors or SqlVendorDirectory(session)
        self._config = config or ReplenishmentConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._outcome_sink = outcome_sink

        self._workflow = STOCK_REQUEST_WORKFLOW
        self._guards = replenishment_guard_executor()
        self._duplicates = DuplicateRequestGuard(session)
        self._numbers = RequestNumberAllocator(session, self._config)
        self._dispatcher = VendorDispatcher(self._vendors, self._ledger)
        self._selector = StockRequestSelector(session)

    # =========================================================================
    # Transaction boundary
    # =========================================================================

    def _effective_timeout(self, timeout: float | None) -> float:
        if timeout is None:
            return self._config.store_timeout_seconds
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            raise ValidationError("timeout", "must be a number of seconds")
        if timeout <= 0:
            raise ValidationError("timeout", "must be positive")
        return float(timeout)

    def _execute(self, operation: str, timeout: float | None, work: Callable[[], T]) -> T:
        """Run ``work`` in one transaction bounded by the store timeout."""
        effective = self._effective_timeout(timeout)
        try:
            bind_store_timeout(self._session, effective)
            result = work()
            self._session.commit()
            return result
        except Exception as exc:
            self._session.rollback()
            if is_store_timeout(exc):
                logger.warning(
                    "transaction_rolled_back",
                    extra={
                        "operation": operation,
                        "reason": "store_timeout",
                        "timeout": effective,
                    },
                )
                raise StoreTimeoutError(operation, effective) from exc
            logger.info(
                "transaction_rolled_back",
                extra={
                    "operation": operation,
                    "error_type": type(exc).__name__,
                    "error_code": getattr(exc, "code", None),
                },
            )
            raise

    # =========================================================================
    # Creation
    # =========================================================================

    def create_request(
        self,
        item_id: UUID,
        actor: Actor,
        requested_quantity: int,
        reason: str,
        urgency_level: UrgencyLevel | str = UrgencyLevel.MEDIUM,
        preferred_vendor_id: UUID | None = None,
        estimated_cost: Decimal | None = None,
        requested_delivery_date: date | None = None,
        timeout: float | None = None,
    ) -> StockRequest:
        """
        Create a Pending request for a medicine.

        The duplicate check, the number allocation and the insert share one
        transaction; a caller never sees a half-created request.
        """
        actor = _require_actor(actor, "create stock request")
        if actor.role != Role.WORKER:
            raise AccessDeniedError(str(actor.actor_id), actor.role.value, "create stock request")

        item_id = _as_uuid(item_id, "item_id")
        requested_quantity = _positive_int(requested_quantity, "requested_quantity")
        reason = _bounded_text(
            reason, "reason", self._config.reason_max_length, required=True
        )
        urgency = _urgency(urgency_level)
        preferred_vendor_id = _optional_uuid(preferred_vendor_id, "preferred_vendor_id")
        estimated_cost = _non_negative_money(estimated_cost, "estimated_cost")
        requested_delivery_date = _optional_date(
            requested_delivery_date, "requested_delivery_date"
        )

        def work() -> StockRequest:
            current_stock = self._ledger.current_stock(item_id)
            threshold = self._ledger.reorder_threshold(item_id)

            if preferred_vendor_id is not None:
                if self._vendors.get_vendor(preferred_vendor_id) is None:
                    raise ValidationError(
                        "preferred_vendor_id",
                        f"unknown vendor {preferred_vendor_id}",
                    )

            self._duplicates.ensure_no_open_request(item_id)

            now = self._clock.now_utc()
            request_number = self._numbers.allocate(now)

            model = StockRequestModel(
                request_number=request_number,
                item_id=item_id,
                requested_by_id=actor.actor_id,
                current_stock_snapshot=current_stock,
                requested_quantity=requested_quantity,
                urgency_level=urgency.value,
                reason=reason,
                preferred_vendor_id=preferred_vendor_id,
                estimated_cost=estimated_cost,
                requested_delivery_date=requested_delivery_date,
                status=self._workflow.initial_state,
                is_urgent=(
                    urgency == UrgencyLevel.CRITICAL or current_stock <= threshold
                ),
                created_at=now,
                updated_at=now,
                created_by_id=actor.actor_id,
            )
            self._duplicates.claim(model)
            self._session.add(model)
            try:
                self._session.flush()
            except IntegrityError as exc:
                if is_open_slot_violation(exc):
                    logger.info(
                        "duplicate_request_rejected",
                        extra={"item_id": str(item_id), "detected_by": "constraint"},
                    )
                    raise DuplicateRequestError(str(item_id)) from exc
                raise

            dto = model.to_dto()
            logger.info(
                "stock_request_created",
                extra={
                    "request_id": str(dto.id),
                    "request_number": dto.request_number,
                    "item_id": str(item_id),
                    "requested_quantity": requested_quantity,
                    "urgency_level": urgency.value,
                    "is_urgent": dto.is_urgent,
                    "current_stock_snapshot": current_stock,
                    "reorder_threshold": threshold,
                },
            )
            return dto

        with LogContext.bind(actor_id=str(actor.actor_id)):
            return self._execute("create_request", timeout, work)

    def create_bulk(
        self,
        requests: Sequence[Mapping[str, Any]],
        actor: Actor,
        timeout: float | None = None,
    ) -> BulkCreateResult:
        """
        Create several requests, each in its own transaction.

        One entry failing (duplicate, unknown medicine, bad input) does not
        stop the others; failures are reported per entry.
        """
        actor = _require_actor(actor, "create stock request")
        if actor.role != Role.WORKER:
            raise AccessDeniedError(str(actor.actor_id), actor.role.value, "create stock request")
        if not requests:
            raise ValidationError("requests", "at least one request is required")

        created: list[StockRequest] = []
        failed: list[BulkEntryFailure] = []
        for index, entry in enumerate(requests):
            item_ref = entry.get("item_id") if isinstance(entry, Mapping) else None
            try:
                if not isinstance(entry, Mapping):
                    raise ValidationError("requests", f"entry {index} must be a mapping")
                unknown = sorted(set(entry) - _BULK_FIELDS)
                if unknown:
                    raise ValidationError(
                        "requests", f"entry {index} has unknown fields: {', '.join(unknown)}"
                    )
                if "requested_quantity" not in entry or "item_id" not in entry:
                    raise ValidationError(
                        "requests", f"entry {index} needs item_id and requested_quantity"
                    )
                created.append(
                    self.create_request(
                        actor=actor,
                        timeout=timeout,
                        item_id=entry["item_id"],
                        requested_quantity=entry["requested_quantity"],
                        reason=entry.get("reason"),
                        urgency_level=entry.get("urgency_level", UrgencyLevel.MEDIUM),
                        preferred_vendor_id=entry.get("preferred_vendor_id"),
                        estimated_cost=entry.get("estimated_cost"),
                        requested_delivery_date=entry.get("requested_delivery_date"),
                    )
                )
            except PharmacyKernelError as exc:
                failed.append(
                    BulkEntryFailure(
                        index=index,
                        item_id=item_ref,
                        error_code=exc.code,
                        message=str(exc),
                    )
                )

        logger.info(
            "stock_request_bulk_created",
            extra={
                "submitted": len(requests),
                "created_count": len(created),
                "failed_count": len(failed),
            },
        )
        return BulkCreateResult(created=tuple(created), failed=tuple(failed))

    # =========================================================================
    # Transitions
    # =========================================================================

    def _load_for_update(self, request_id: UUID) -> StockRequestModel:
        model = self._session.execute(
            select(StockRequestModel)
            .where(StockRequestModel.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise StockRequestNotFoundError(str(request_id))
        return model

    def _current_status(self, request_id: UUID) -> str:
        def work() -> str:
            status = self._session.execute(
                select(StockRequestModel.status)
                .where(StockRequestModel.id == request_id)
            ).scalar_one_or_none()
            if status is None:
                raise StockRequestNotFoundError(str(request_id))
            return status

        return self._execute("read_status", None, work)

    def _transition(
        self,
        action: str,
        request_id: Any,
        actor: Actor,
        timeout: float | None,
        apply: Callable[[StockRequestModel, Transition, datetime], dict[str, Any]] | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> StockRequest:
        """
        Load the request FOR UPDATE, resolve the action through the
        workflow table, apply it and commit.
        """
        actor = _require_actor(actor, action)
        self._workflow.authorize(action, actor.role, actor.actor_id)
        request_id = _as_uuid(request_id, "request_id")
        started = time.monotonic()

        def work() -> tuple[StockRequest, dict[str, Any]]:
            model = self._load_for_update(request_id)
            from_state = model.status
            transition = self._workflow.resolve(
                from_state,
                action,
                actor.role,
                entity_id=request_id,
                actor_id=actor.actor_id,
            )
            if (
                actor.role.value in transition.own_records_only
                and model.requested_by_id != actor.actor_id
            ):
                raise AccessDeniedError(
                    str(actor.actor_id), actor.role.value, f"{action} another worker's request"
                )
            self._guards.check(transition, context)

            now = self._clock.now_utc()
            details = apply(model, transition, now) if apply is not None else {}

            model.status = transition.to_state
            if self._workflow.is_terminal(transition.to_state):
                self._duplicates.release(model)
            model.updated_at = now
            model.updated_by_id = actor.actor_id
            self._session.flush()

            dto = model.to_dto()
            record = self._emit_workflow_trace(
                action=action,
                request=dto,
                from_state=from_state,
                transition=transition,
                actor=actor,
                duration_ms=(time.monotonic() - started) * 1000,
                details=details,
            )
            return dto, record

        with LogContext.bind(actor_id=str(actor.actor_id), request_id=str(request_id)):
            try:
                dto, record = self._execute(action, timeout, work)
            except StaleDataError as exc:
                current = self._current_status(request_id)
                raise InvalidTransitionError(str(request_id), current, action) from exc

        self._notify(record)
        return dto

    def _emit_workflow_trace(
        self,
        *,
        action: str,
        request: StockRequest,
        from_state: str,
        transition: Transition,
        actor: Actor,
        duration_ms: float,
        details: dict[str, Any],
    ) -> dict[str, Any]:
        """Log the structured transition record and return it for the sink."""
        record: dict[str, Any] = {
            "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
            "occurred_at": self._clock.now_utc().isoformat(),
            "workflow": self._workflow.name,
            "action": action,
            "entity_type": "stock_request",
            "entity_id": str(request.id),
            "request_number": request.request_number,
            "from_state": from_state,
            "to_state": transition.to_state,
            "actor_id": str(actor.actor_id),
            "role": actor.role.value,
            "credits_stock": transition.credits_stock,
            "duration_ms": round(duration_ms, 3),
        }
        record.update(details)
        logger.info("workflow_transition", extra=record)
        record["message"] = "workflow_transition"
        return record

    def _notify(self, record: dict[str, Any]) -> None:
        """Hand the committed transition to the outcome sink, if any.

        Notifications are fire-and-forget: the transition is already
        committed, so a failing sink is logged and does not fail the call.
        """
        if self._outcome_sink is None:
            return
        try:
            self._outcome_sink(record)
        except Exception:
            logger.exception(
                "outcome_sink_failed",
                extra={"entity_id": record.get("entity_id"), "action": record.get("action")},
            )

    # -------------------------------------------------------------------------
    # Owner review
    # -------------------------------------------------------------------------

    def begin_review(
        self, request_id: UUID, actor: Actor, timeout: float | None = None
    ) -> StockRequest:
        """Pending -> UnderReview."""

        def apply(model: StockRequestModel, transition: Transition, now: datetime):
            model.reviewed_by_id = actor.actor_id
            model.reviewed_at = now
            return {}

        return self._transition(BEGIN_REVIEW, request_id, actor, timeout, apply)

    def approve(
        self,
        request_id: UUID,
        actor: Actor,
        admin_notes: str | None = None,
        timeout: float | None = None,
    ) -> StockRequest:
        """Pending / UnderReview -> Approved.  No vendor is taken here."""
        notes = _bounded_text(
            admin_notes, "admin_notes", self._config.admin_notes_max_length, required=False
        )

        def apply(model: StockRequestModel, transition: Transition, now: datetime):
            model.reviewed_by_id = actor.actor_id
            model.reviewed_at = now
            if notes is not None:
                model.admin_notes = notes
            return {}

        return self._transition(APPROVE, request_id, actor, timeout, apply)

    def reject(
        self,
        request_id: UUID,
        actor: Actor,
        reason: str,
        timeout: float | None = None,
    ) -> StockRequest:
        """Pending / UnderReview -> Rejected.  The reason becomes the admin notes."""
        if isinstance(reason, str) and len(reason.strip()) > self._config.admin_notes_max_length:
            raise ValidationError(
                "reason",
                f"must be at most {self._config.admin_notes_max_length} characters",
            )

        def apply(model: StockRequestModel, transition: Transition, now: datetime):
            model.reviewed_by_id = actor.actor_id
            model.reviewed_at = now
            model.admin_notes = reason.strip()
            return {"reason": model.admin_notes}

        return self._transition(
            REJECT, request_id, actor, timeout, apply, context={"reason": reason}
        )

    # -------------------------------------------------------------------------
    # Vendor dispatch
    # -------------------------------------------------------------------------

    def dispatch_to_vendor(
        self,
        request_id: UUID,
        actor: Actor,
        vendor_id: UUID | None,
        expected_delivery_date: date | None,
        order_date: date | None = None,
        notes: str | None = None,
        timeout: float | None = None,
    ) -> StockRequest:
        """Approved -> Ordered.  Writes the order details; stock is untouched."""
        vendor_id = _optional_uuid(vendor_id, "vendor_id")
        expected_delivery_date = _optional_date(
            expected_delivery_date, "expected_delivery_date"
        )
        order_date = _optional_date(order_date, "order_date")
        notes = _bounded_text(
            notes, "notes", self._config.admin_notes_max_length, required=False
        )

        def apply(model: StockRequestModel, transition: Transition, now: datetime):
            order = self._dispatcher.build_order(
                item_id=model.item_id,
                requested_quantity=model.requested_quantity,
                estimated_cost=model.estimated_cost,
                vendor_id=vendor_id,
                expected_delivery_date=expected_delivery_date,
                order_date=order_date or self._clock.today(self._config.tz),
                notes=notes,
            )
            model.order_vendor_id = order.vendor_id
            model.order_date = order.order_date
            model.order_expected_delivery_date = order.expected_delivery_date
            model.order_total_cost = order.total_cost
            model.order_notes = order.notes
            return {
                "vendor_id": str(order.vendor_id),
                "total_cost": str(order.total_cost),
            }

        return self._transition(
            DISPATCH,
            request_id,
            actor,
            timeout,
            apply,
            context={
                "vendor_id": vendor_id,
                "expected_delivery_date": expected_delivery_date,
            },
        )

    # -------------------------------------------------------------------------
    # Receipt
    # -------------------------------------------------------------------------

    def mark_received(
        self,
        request_id: UUID,
        actor: Actor,
        received_quantity: int | None = None,
        invoice_number: str | None = None,
        actual_delivery_date: date | None = None,
        actual_cost: Decimal | None = None,
        timeout: float | None = None,
    ) -> StockRequest:
        """
        Ordered -> Received, crediting inventory exactly once.

        The status change, the order fields, ``stock_credited_at`` and the
        ledger's atomic add commit together or not at all.
        """
        if received_quantity is not None:
            received_quantity = _positive_int(received_quantity, "received_quantity")
        invoice_number = _bounded_text(
            invoice_number, "invoice_number", _INVOICE_NUMBER_MAX_LENGTH, required=False
        )
        actual_delivery_date = _optional_date(actual_delivery_date, "actual_delivery_date")
        actual_cost = _non_negative_money(actual_cost, "actual_cost")

        def apply(model: StockRequestModel, transition: Transition, now: datetime):
            quantity = (
                received_quantity
                if received_quantity is not None
                else model.requested_quantity
            )
            model.order_actual_delivery_date = (
                actual_delivery_date or self._clock.today(self._config.tz)
            )
            model.order_received_quantity = quantity
            model.order_invoice_number = invoice_number
            if actual_cost is not None:
                model.order_total_cost = actual_cost
            model.stock_credited_at = now

            new_quantity = self._ledger.increment_stock(model.item_id, quantity)
            logger.info(
                "stock_credited",
                extra={
                    "request_id": str(model.id),
                    "request_number": model.request_number,
                    "item_id": str(model.item_id),
                    "received_quantity": quantity,
                    "new_quantity": new_quantity,
                },
            )
            return {"received_quantity": quantity, "new_quantity": new_quantity}

        return self._transition(RECEIVE, request_id, actor, timeout, apply)

    # -------------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------------

    def cancel(
        self, request_id: UUID, actor: Actor, timeout: float | None = None
    ) -> StockRequest:
        """Any non-terminal status -> Cancelled.  Workers may cancel only their own."""

        def apply(model: StockRequestModel, transition: Transition, now: datetime):
            model.cancelled_by_id = actor.actor_id
            return {}

        return self._transition(CANCEL, request_id, actor, timeout, apply)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_by_id(
        self, request_id: UUID, actor: Actor, timeout: float | None = None
    ) -> StockRequest:
        """Owners read any request; workers only their own."""
        actor = _require_actor(actor, "read stock request")
        request_id = _as_uuid(request_id, "request_id")

        def work() -> StockRequest:
            dto = self._selector.get(request_id)
            if dto is None:
                raise StockRequestNotFoundError(str(request_id))
            if actor.role == Role.WORKER and dto.requested_by_id != actor.actor_id:
                raise AccessDeniedError(
                    str(actor.actor_id), actor.role.value, "read another worker's request"
                )
            return dto

        return self._execute("get_by_id", timeout, work)

    def _page_args(self, page: int, page_size: int | None) -> tuple[int, int]:
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise ValidationError("page", "must be a whole number of at least 1")
        if page_size is None:
            page_size = self._config.default_page_size
        if (
            isinstance(page_size, bool)
            or not isinstance(page_size, int)
            or not 1 <= page_size <= self._config.max_page_size
        ):
            raise ValidationError(
                "page_size", f"must be between 1 and {self._config.max_page_size}"
            )
        return page, page_size

    def list_requests(
        self,
        actor: Actor,
        status: StockRequestStatus | str | None = None,
        urgency_level: UrgencyLevel | str | None = None,
        search: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        page: int = 1,
        page_size: int | None = None,
        timeout: float | None = None,
    ) -> StockRequestPage:
        """
        Filtered, paginated listing, newest first.

        Owners see every request; workers see only their own.
        """
        actor = _require_actor(actor, "list stock requests")
        page, page_size = self._page_args(page, page_size)
        if status is not None:
            try:
                status = StockRequestStatus(status)
            except ValueError:
                raise ValidationError("status", f"unknown status {status!r}") from None
        if urgency_level is not None:
            urgency_level = _urgency(urgency_level)
        search = _bounded_text(search, "search", _SEARCH_MAX_LENGTH, required=False)
        start = _window_bound(start, "start")
        end = _window_bound(end, "end")
        if start is not None and end is not None and end <= start:
            raise ValidationError("end", "must be after start")

        requested_by_id = actor.actor_id if actor.role == Role.WORKER else None

        def work() -> StockRequestPage:
            return self._selector.list(
                status=status,
                urgency_level=urgency_level,
                requested_by_id=requested_by_id,
                search=search,
                start=start,
                end=end,
                page=page,
                page_size=page_size,
            )

        return self._execute("list_requests", timeout, work)

    def list_my_requests(
        self,
        actor: Actor,
        status: StockRequestStatus | str | None = None,
        page: int = 1,
        page_size: int | None = None,
        timeout: float | None = None,
    ) -> StockRequestPage:
        """The worker's own requests."""
        actor = _require_actor(actor, "list own stock requests")
        if actor.role != Role.WORKER:
            raise AccessDeniedError(
                str(actor.actor_id), actor.role.value, "list own stock requests"
            )
        return self.list_requests(
            actor, status=status, page=page, page_size=page_size, timeout=timeout
        )

    def stats(self, actor: Actor, timeout: float | None = None) -> StockRequestStats:
        """Dashboard counts and capital at risk.  Owner only."""
        actor = _require_actor(actor, "view stock request stats")
        if actor.role != Role.OWNER:
            raise AccessDeniedError(
                str(actor.actor_id), actor.role.value, "view stock request stats"
            )
        return self._execute(
            "stats",
            timeout,
            lambda: self._selector.stats(self._config.recent_requests_limit),
        )
