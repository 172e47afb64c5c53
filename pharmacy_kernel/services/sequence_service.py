"""
SequenceService -- gap-free counters via locked counter rows.

Responsibility:
    Provides strictly increasing, contiguous counter values per name.
    Uses a dedicated counter table with row-level locking
    (``SELECT ... FOR UPDATE``) so that concurrent allocations for the same
    name serialize instead of colliding.  Replenishment uses one counter
    per business day (``stock_request:20240101``).

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by RequestNumberAllocator.

Invariants enforced:
    - Never aggregate-max-plus-one: the locked counter row is the sole
      source of truth for the next value.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the value, so committed
      values stay contiguous.

Failure modes:
    - IntegrityError: Concurrent counter creation race (handled via
      savepoint rollback and retry).
    - OperationalError: lock wait exceeded the store timeout.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from pharmacy_kernel.db.base import Base
from pharmacy_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    Row-level locking serializes allocations for the same name.
    """

    __tablename__ = "sequence_counters"

    # Sequence name (e.g., "stock_request:20240101")
    name: Mapped[str] = mapped_column(
        String(80),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next value.  The increment
        is transactional -- it is only committed when the caller's
        transaction commits.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        seq = SequenceService(session).next_value("stock_request:20240101")
        # If the transaction rolls back, seq is not consumed
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        1. Locks the sequence row (or creates it if not exists)
        2. Increments the counter
        3. Returns the new value

        Preconditions:
            - ``sequence_name`` is a non-empty string.
            - The caller is within an active database transaction.

        Postconditions:
            - Returns an integer > 0, one greater than the last committed
              value for this name.
            - The counter row is locked until the transaction completes.
        """
        if not sequence_name:
            raise ValueError("sequence_name must be non-empty")

        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use of this name. Another transaction may create it at
            # the same time; the savepoint keeps the caller's work intact.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value
