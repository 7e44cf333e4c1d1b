"""
SequenceService -- per-business sequence allocation via locked counter rows.

Responsibility:
    Provides strictly monotonically increasing numbers behind every
    human-readable code: farmer and buyer codes, lot numbers and serials,
    transaction and cash-flow codes.  Uses a dedicated counter table with
    row-level locking (``SELECT ... FOR UPDATE``) to guarantee uniqueness
    and ordering under concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by PartyService, LotService, TransactionService and CashService.

Invariants enforced:
    - Sequence monotonicity per (business_id, key).  The count-or-max-plus-
      one pattern is FORBIDDEN -- the locked counter row is the sole source
      of truth for the next value.
    - Transactional: the increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).

Audit relevance:
    Allocation is logged at DEBUG level with the sequence key and value.
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mandi_kernel.logging_config import get_logger
from mandi_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional per-business sequence numbers.

    Guarantees:
        - Strictly monotonic values via a locked counter row.
        - Gap-free under normal operation.  On rollback, the value is
          returned to the sequence.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        with session_scope() as session:
            n = SequenceService(session).next_value(business_id, "farmer")
    """

    # Well-known keys
    FARMER = "farmer"
    BUYER = "buyer"

    def __init__(self, session: Session):
        self._session = session

    @staticmethod
    def lot_key(lot_date: date) -> str:
        return f"lot:{lot_date.isoformat()}"

    @staticmethod
    def lot_serial_key(crop: str, lot_date: date) -> str:
        return f"lot_serial:{crop}:{lot_date.isoformat()}"

    @staticmethod
    def transaction_key(transaction_date: date) -> str:
        return f"transaction:{transaction_date.isoformat()}"

    @staticmethod
    def cash_flow_key(entry_date: date) -> str:
        return f"cash_flow:{entry_date.isoformat()}"

    def _locked_counter(self, business_id: str, key: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(
                SequenceCounter.business_id == business_id,
                SequenceCounter.name == key,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, business_id: str, key: str) -> int:
        """
        Get the next value for a per-business sequence.

        1. Locks the counter row (or creates it if it does not exist)
        2. Increments the counter
        3. Returns the new value

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously returned for (business_id, key).
            - The counter row is locked until the transaction completes.
        """
        counter = self._locked_counter(business_id, key)

        if counter is None:
            # First use.  Another request may be creating the same row, so
            # insert inside a savepoint and fall back to the locked read.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(
                    business_id=business_id, name=key, current_value=1
                )
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"business_id": business_id, "sequence_key": key, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"business_id": business_id, "sequence_key": key},
                )
                savepoint.rollback()
                counter = self._locked_counter(business_id, key)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={
                "business_id": business_id,
                "sequence_key": key,
                "value": counter.current_value,
            },
        )
        return counter.current_value

    def current_value(self, business_id: str, key: str) -> int | None:
        """Current value without incrementing, or None if never used."""
        counter = self._session.execute(
            select(SequenceCounter).where(
                SequenceCounter.business_id == business_id,
                SequenceCounter.name == key,
            )
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def reset(self, business_id: str, key: str, value: int = 0) -> None:
        """
        Reset a sequence to a specific value.

        WARNING: Only for tests and data migration.  Resetting in
        production re-issues codes that already exist.
        """
        counter = self._locked_counter(business_id, key)
        if counter is None:
            counter = SequenceCounter(
                business_id=business_id, name=key, current_value=value
            )
            self._session.add(counter)
        else:
            counter.current_value = value
        self._session.flush()
