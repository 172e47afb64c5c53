"""
Replenishment Workflows.

The stock request state machine, declared once.  Every state change in
``StockReplenishmentService`` goes through ``STOCK_REQUEST_WORKFLOW.resolve``;
there are no status comparisons anywhere else.
"""

from typing import Any

from pharmacy_kernel.domain.actor import Role
from pharmacy_kernel.domain.workflow import Guard, GuardExecutor, Transition, Workflow
from pharmacy_kernel.logging_config import get_logger
from pharmacy_modules.replenishment.models import StockRequestStatus

logger = get_logger("modules.replenishment.workflows")

PENDING = StockRequestStatus.PENDING.value
UNDER_REVIEW = StockRequestStatus.UNDER_REVIEW.value
APPROVED = StockRequestStatus.APPROVED.value
REJECTED = StockRequestStatus.REJECTED.value
ORDERED = StockRequestStatus.ORDERED.value
RECEIVED = StockRequestStatus.RECEIVED.value
CANCELLED = StockRequestStatus.CANCELLED.value

OWNER = Role.OWNER.value
WORKER = Role.WORKER.value

# Actions
BEGIN_REVIEW = "begin_review"
APPROVE = "approve"
REJECT = "reject"
DISPATCH = "dispatch"
RECEIVE = "receive"
CANCEL = "cancel"

# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

REJECTION_REASON_SUPPLIED = Guard(
    name="rejection_reason_supplied",
    description="a non-empty rejection reason is required",
    field="reason",
)

VENDOR_SUPPLIED = Guard(
    name="vendor_and_delivery_date_supplied",
    description="vendor and expected delivery date are required to dispatch",
    field="vendor_id",
)


def _get(context: Any, key: str) -> Any:
    if context is None:
        return None
    if isinstance(context, dict):
        return context.get(key)
    return getattr(context, key, None)


def _rejection_reason_supplied(context: Any) -> bool:
    reason = _get(context, "reason")
    return isinstance(reason, str) and bool(reason.strip())


def _vendor_and_date_supplied(context: Any) -> bool:
    return (
        _get(context, "vendor_id") is not None
        and _get(context, "expected_delivery_date") is not None
    )


def replenishment_guard_executor() -> GuardExecutor:
    """GuardExecutor with the replenishment guards registered."""
    executor = GuardExecutor()
    executor.register(REJECTION_REASON_SUPPLIED.name, _rejection_reason_supplied)
    executor.register(VENDOR_SUPPLIED.name, _vendor_and_date_supplied)
    return executor


# -----------------------------------------------------------------------------
# Stock Request Workflow
# -----------------------------------------------------------------------------

_CANCEL_ROLES = (OWNER, WORKER)

STOCK_REQUEST_WORKFLOW = Workflow(
    name="stock_request",
    description="Stock replenishment request lifecycle",
    initial_state=PENDING,
    states=(
        PENDING,
        UNDER_REVIEW,
        APPROVED,
        REJECTED,
        ORDERED,
        RECEIVED,
        CANCELLED,
    ),
    transitions=(
        Transition(PENDING, UNDER_REVIEW, action=BEGIN_REVIEW, roles=(OWNER,)),
        Transition(PENDING, APPROVED, action=APPROVE, roles=(OWNER,)),
        Transition(UNDER_REVIEW, APPROVED, action=APPROVE, roles=(OWNER,)),
        Transition(
            PENDING, REJECTED, action=REJECT,
            guard=REJECTION_REASON_SUPPLIED, roles=(OWNER,),
        ),
        Transition(
            UNDER_REVIEW, REJECTED, action=REJECT,
            guard=REJECTION_REASON_SUPPLIED, roles=(OWNER,),
        ),
        Transition(
            APPROVED, ORDERED, action=DISPATCH,
            guard=VENDOR_SUPPLIED, roles=(OWNER,),
        ),
        Transition(
            ORDERED, RECEIVED, action=RECEIVE,
            roles=(OWNER,), credits_stock=True,
        ),
        Transition(
            PENDING, CANCELLED, action=CANCEL,
            roles=_CANCEL_ROLES, own_records_only=(WORKER,),
        ),
        Transition(
            UNDER_REVIEW, CANCELLED, action=CANCEL,
            roles=_CANCEL_ROLES, own_records_only=(WORKER,),
        ),
        Transition(
            APPROVED, CANCELLED, action=CANCEL,
            roles=_CANCEL_ROLES, own_records_only=(WORKER,),
        ),
        Transition(
            ORDERED, CANCELLED, action=CANCEL,
            roles=_CANCEL_ROLES, own_records_only=(WORKER,),
        ),
    ),
    terminal_states=(REJECTED, RECEIVED, CANCELLED),
)

logger.info(
    "replenishment_stock_request_workflow_registered",
    extra={
        "workflow_name": STOCK_REQUEST_WORKFLOW.name,
        "state_count": len(STOCK_REQUEST_WORKFLOW.states),
        "transition_count": len(STOCK_REQUEST_WORKFLOW.transitions),
        "initial_state": STOCK_REQUEST_WORKFLOW.initial_state,
    },
)
