"""
Typed Exception Hierarchy for the Mandi Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rejection the kernel produces is a business-rule rejection: a weight
that is not positive, a lot that is already returned, a bid that is already
settled.  Callers (the HTTP layer, the UI) must be able to tell them apart
without parsing messages, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        bid_service.create_bid(business_id, lot_id, buyer_id, price, bags)
    except InsufficientStockError as e:
        api_response(code=e.code, requested=e.requested, available=e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    MandiKernelError (base)
    |
    +-- ValidationError
    +-- NotFoundError
    +-- InvalidStateError
    |   +-- AlreadyReversedError
    |   +-- LotAlreadyReturnedError
    +-- DuplicateSettlementError
    +-- InsufficientStockError
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                        | When Raised
----------------------------|--------------------------------------------------
VALIDATION_ERROR            | Missing/malformed numeric or reference field,
                            | unknown charge-config key
NOT_FOUND                   | Entity absent or outside the caller's tenant
INVALID_STATE               | Operation illegal for the entity's current state
ALREADY_REVERSED            | Transaction or cash entry already reversed
LOT_ALREADY_RETURNED        | Lot already returned to its farmer
DUPLICATE_SETTLEMENT        | Bid already has an active transaction
INSUFFICIENT_STOCK          | Bag allocation would drive remaining_bags < 0
                            | (or above the lot's ceiling)
OPTIMISTIC_LOCK_CONFLICT    | Lot modified by a concurrent unit of work

===============================================================================
PROPAGATION
===============================================================================

All of these abort the current unit of work.  session_scope() rolls the
session back, so no partial bag mutation survives.  None is retried
automatically; ConcurrencyError is the only category a caller may choose to
retry.

Cross-tenant references raise NotFoundError, never a distinct "forbidden"
error, so the existence of another tenant's rows is not leaked.
"""


class MandiKernelError(Exception):
    """
    Base exception for all mandi kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "MANDI_KERNEL_ERROR"


class ValidationError(MandiKernelError):
    """A required field is missing, malformed, or out of range."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class NotFoundError(MandiKernelError):
    """Entity does not exist within the caller's business."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} not found: {entity_id}")


class InvalidStateError(MandiKernelError):
    """Operation is not legal for the entity's current state."""

    code: str = "INVALID_STATE"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(f"{entity_type} {entity_id}: {reason}")


class AlreadyReversedError(InvalidStateError):
    """Transaction or cash entry has already been reversed."""

    code: str = "ALREADY_REVERSED"

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(entity_type, entity_id, "already reversed")


class LotAlreadyReturnedError(InvalidStateError):
    """Lot has already been returned to its farmer."""

    code: str = "LOT_ALREADY_RETURNED"

    def __init__(self, lot_id: str):
        super().__init__("Lot", lot_id, "already returned to farmer")


class DuplicateSettlementError(MandiKernelError):
    """Bid already has a non-reversed transaction."""

    code: str = "DUPLICATE_SETTLEMENT"

    def __init__(self, bid_id: str, transaction_id: str):
        self.bid_id = str(bid_id)
        self.transaction_id = str(transaction_id)
        super().__init__(
            f"Bid {bid_id} already settled as transaction {transaction_id}"
        )


class InsufficientStockError(MandiKernelError):
    """Bag allocation would move remaining_bags outside [0, ceiling]."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, lot_id: str, requested: int, available: int):
        self.lot_id = str(lot_id)
        self.requested = requested
        self.available = available
        super().__init__(
            f"Lot {lot_id}: requested {requested} bags, only {available} available"
        )


# Concurrency-related exceptions


class ConcurrencyError(MandiKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
