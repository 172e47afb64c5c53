"""
Typed Exception Hierarchy for the Pharmacy Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The replenishment workflow reports failures that callers must react to in
different ways: a worker fixes a missing reason, an owner explains that a
request is "already approved", a client retries a timed-out call.  Parsing
message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        service.approve(request_id, owner)
    except Exception as e:
        if "already" in str(e):  # FRAGILE - message might change
            ...

Example - RIGHT way (what this module enables):
    try:
        service.approve(request_id, owner)
    except InvalidTransitionError as e:
        api_response(code=e.code, status=e.current_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PharmacyKernelError (base)
    |
    +-- ValidationError
    |
    +-- NotFoundError
    |   +-- StockRequestNotFoundError
    |   +-- InventoryItemNotFoundError
    |   +-- VendorNotFoundError
    |
    +-- ConflictError
    |   +-- DuplicateRequestError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |
    +-- AccessDeniedError
    |
    +-- SequenceError
    |   +-- RequestNumberExhaustedError
    |
    +-- StoreError
        +-- StoreTimeoutError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                         | When Raised
-------------|------------------------------|-------------------------------------------
Validation   | VALIDATION_ERROR             | Missing/invalid field (caller-fixable)
-------------|------------------------------|-------------------------------------------
Not found    | STOCK_REQUEST_NOT_FOUND      | Unknown stock request id
             | INVENTORY_ITEM_NOT_FOUND     | Unknown medicine id
             | VENDOR_NOT_FOUND             | Unknown vendor id
-------------|------------------------------|-------------------------------------------
Conflict     | DUPLICATE_IN_FLIGHT_REQUEST  | Item already has a non-terminal request
-------------|------------------------------|-------------------------------------------
Workflow     | INVALID_TRANSITION           | Action not legal from the current status
-------------|------------------------------|-------------------------------------------
Access       | ACCESS_DENIED                | Actor role may not perform the action
-------------|------------------------------|-------------------------------------------
Sequence     | REQUEST_NUMBER_EXHAUSTED     | Daily request number range used up
-------------|------------------------------|-------------------------------------------
Store        | STORE_TIMEOUT                | Lock wait / store unavailable (retryable)

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Only ``StoreError`` subclasses set ``retryable = True``.  The kernel never
   retries writes itself; a caller may retry with backoff.

2. ``InvalidTransitionError.current_status`` is the status observed inside
   the failed transaction, so "Request is already {status}" is accurate even
   when the caller lost a race.

3. ``DuplicateRequestError`` is never auto-resolved; the caller must cancel
   or finish the in-flight request first.
"""


class PharmacyKernelError(Exception):
    """
    Base exception for all pharmacy kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PHARMACY_KERNEL_ERROR"
    retryable: bool = False


# Validation


class ValidationError(PharmacyKernelError):
    """A field is missing or invalid. Always caller-fixable."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Not found


class NotFoundError(PharmacyKernelError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class StockRequestNotFoundError(NotFoundError):
    """Stock request with given ID was not found."""

    code: str = "STOCK_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Stock request not found: {request_id}")


class InventoryItemNotFoundError(NotFoundError):
    """Medicine with given ID is not in the inventory catalog."""

    code: str = "INVENTORY_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Medicine not found: {item_id}")


class VendorNotFoundError(NotFoundError):
    """Vendor with given ID is not in the vendor directory."""

    code: str = "VENDOR_NOT_FOUND"

    def __init__(self, vendor_id: str):
        self.vendor_id = vendor_id
        super().__init__(f"Vendor not found: {vendor_id}")


# Conflict


class ConflictError(PharmacyKernelError):
    """Base exception for uniqueness conflicts."""

    code: str = "CONFLICT"


class DuplicateRequestError(ConflictError):
    """
    The item already has a stock request in a non-terminal status.

    At most one Pending / UnderReview / Approved / Ordered request may exist
    per item.  Raised both by the pre-check and when the unique open-slot
    constraint rejects a concurrent insert.
    """

    code: str = "DUPLICATE_IN_FLIGHT_REQUEST"

    def __init__(self, item_id: str, existing_request_number: str | None = None):
        self.item_id = item_id
        self.existing_request_number = existing_request_number
        detail = f" ({existing_request_number})" if existing_request_number else ""
        super().__init__(
            f"A stock request for medicine {item_id} is already in progress{detail}"
        )


# Workflow


class WorkflowError(PharmacyKernelError):
    """Base exception for state machine errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """The requested action is not legal from the request's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, request_id: str, current_status: str, action: str):
        self.request_id = request_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} stock request {request_id}: "
            f"Request is already {current_status}"
        )


# Access


class AccessDeniedError(PharmacyKernelError):
    """The authenticated actor may not perform the action."""

    code: str = "ACCESS_DENIED"

    def __init__(self, actor_id: str, role: str, action: str):
        self.actor_id = actor_id
        self.role = role
        self.action = action
        super().__init__(f"Access denied: {role} {actor_id} may not {action}")


# Sequence


class SequenceError(PharmacyKernelError):
    """Base exception for sequence allocation errors."""

    code: str = "SEQUENCE_ERROR"


class RequestNumberExhaustedError(SequenceError):
    """
    The daily request number range is used up.

    Raised instead of wrapping or widening the counter so that request
    numbers never collide.  The transaction is rolled back, so the counter
    is not consumed.
    """

    code: str = "REQUEST_NUMBER_EXHAUSTED"

    def __init__(self, day: str, limit: int):
        self.day = day
        self.limit = limit
        super().__init__(
            f"Request numbers for {day} exhausted: limit is {limit} per day"
        )


# Store


class StoreError(PharmacyKernelError):
    """Base exception for store availability errors."""

    code: str = "STORE_ERROR"
    retryable: bool = True


class StoreTimeoutError(StoreError):
    """
    A store call did not complete within the caller-supplied timeout.

    The enclosing transaction has been rolled back; no partial state change
    was recorded.
    """

    code: str = "STORE_TIMEOUT"

    def __init__(self, operation: str, timeout: float | None):
        self.operation = operation
        self.timeout = timeout
        super().__init__(
            f"Store timeout during {operation} (timeout={timeout}s)"
        )
