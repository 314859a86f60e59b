"""
Typed Exception Hierarchy for the Fulfillment Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the kernel (an HTTP layer, a worker, a CLI) must react to failures
precisely: a full bin is not the same thing as an unparsable SKU, and neither
is the same thing as a lost compare-and-set race.  Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA (the SKU, the bin, the from/to states)

Example:
    try:
        ledger.assign(item_id, bin_id)
    except BinFullError as e:
        api_response(code=e.code, bin_id=e.bin_id, capacity=e.capacity)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FulfillmentKernelError (base)
    |
    +-- SkuError
    |   +-- InvalidFormatError
    |   +-- InvalidSkuError
    |   +-- IneligibleProductionSkuError
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |
    +-- TransitionError
    |   +-- InvalidTransitionError
    |   +-- MissingOrderError
    |
    +-- CapacityError
    |   +-- BinFullError
    |   +-- NoBinsExistError
    |   +-- BinsAtCapacityError
    |   +-- NotInBinError
    |   +-- ItemAlreadyInBinError
    |   +-- DuplicateBinIdError
    |
    +-- IdentifierError
    |   +-- ExhaustedKeyspaceError
    |
    +-- NotFoundError
    |   +-- ItemNotFoundError
    |   +-- BinNotFoundError
    |   +-- RequestNotFoundError
    |   +-- BatchNotFoundError
    |   +-- WaitlistEntryNotFoundError
    |   +-- PendingProductionNotFoundError
    |
    +-- ProductionError
    |   +-- BatchAlreadyIssuedError
    |   +-- PendingProductionClosedError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError
        +-- TransientRepositoryError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
SKU             | INVALID_FORMAT              | Token is not STYLE-WAIST-SHAPE-LENGTH-FINISH
                | INVALID_SKU                 | Demand SKU rejected by the matcher
                | INELIGIBLE_PRODUCTION_SKU   | Finish is not a production finish
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_QUANTITY            | Quantity <= 0
----------------|-----------------------------|-----------------------------------------
Transition      | INVALID_TRANSITION          | Edge not in the state machine
                | MISSING_ORDER               | ASSIGNED without an order id
----------------|-----------------------------|-----------------------------------------
Capacity        | BIN_FULL                    | current_items == capacity
                | NO_BINS_EXIST               | No bins defined
                | BINS_AT_CAPACITY            | Every bin is full
                | NOT_IN_BIN                  | Release of an item the bin lacks
                | ITEM_ALREADY_IN_BIN         | Item is already a member of a bin
                | DUPLICATE_BIN_ID            | Bin id draws kept colliding
----------------|-----------------------------|-----------------------------------------
Identifier      | EXHAUSTED_KEYSPACE          | Id retry budget spent
----------------|-----------------------------|-----------------------------------------
Not found       | ITEM_NOT_FOUND, BIN_NOT_FOUND, REQUEST_NOT_FOUND, BATCH_NOT_FOUND,
                | WAITLIST_ENTRY_NOT_FOUND, PENDING_PRODUCTION_NOT_FOUND
----------------|-----------------------------|-----------------------------------------
Production      | BATCH_ALREADY_ISSUED        | generate_items called twice
                | PENDING_PRODUCTION_CLOSED   | Accepting a non-PENDING request
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Compare-and-set affected no rows
                | TRANSIENT_REPOSITORY_ERROR  | Retry budget spent on transient faults

Only ConcurrencyError subclasses are retryable.  Everything else is an
invariant or input violation and is surfaced unchanged.
"""

from __future__ import annotations


class FulfillmentKernelError(Exception):
    """Base exception for all fulfillment kernel errors."""

    code: str = "FULFILLMENT_KERNEL_ERROR"


# =============================================================================
# SKU errors
# =============================================================================


class SkuError(FulfillmentKernelError):
    """Base for SKU codec errors."""

    code: str = "SKU_ERROR"


class InvalidFormatError(SkuError):
    """The token cannot be parsed into the five SKU fields."""

    code: str = "INVALID_FORMAT"

    def __init__(self, token: str, reason: str):
        self.token = token
        self.reason = reason
        super().__init__(f"Invalid SKU format {token!r}: {reason}")


class InvalidSkuError(SkuError):
    """A demanded SKU was rejected before any inventory search."""

    code: str = "INVALID_SKU"

    def __init__(self, sku: str, reason: str):
        self.sku = sku
        self.reason = reason
        super().__init__(f"Invalid SKU {sku!r}: {reason}")


class IneligibleProductionSkuError(SkuError):
    """Production batches may only be issued in a production finish."""

    code: str = "INELIGIBLE_PRODUCTION_SKU"

    def __init__(self, sku: str, finish: str):
        self.sku = sku
        self.finish = finish
        super().__init__(
            f"SKU {sku} has finish {finish} which is not production-eligible"
        )


# =============================================================================
# Validation errors
# =============================================================================


class ValidationError(FulfillmentKernelError):
    """Base for input validation errors."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Quantity must be a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: int):
        self.quantity = quantity
        super().__init__(f"Quantity must be positive, got {quantity}")


# =============================================================================
# Transition errors
# =============================================================================


class TransitionError(FulfillmentKernelError):
    """Base for state machine errors."""

    code: str = "TRANSITION_ERROR"


class InvalidTransitionError(TransitionError):
    """The requested edge does not exist in the entity's state machine."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, from_state: str, to_state: str):
        self.entity_type = entity_type
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid {entity_type} transition: {from_state} -> {to_state}"
        )


class MissingOrderError(TransitionError):
    """An item cannot become ASSIGNED without an order id."""

    code: str = "MISSING_ORDER"

    def __init__(self, item_id: str, to_state: str):
        self.item_id = item_id
        self.to_state = to_state
        super().__init__(f"Item {item_id} cannot enter {to_state} without an order id")


# =============================================================================
# Capacity errors
# =============================================================================


class CapacityError(FulfillmentKernelError):
    """Base for bin capacity ledger errors."""

    code: str = "CAPACITY_ERROR"


class BinFullError(CapacityError):
    """The bin already holds as many items as its capacity allows."""

    code: str = "BIN_FULL"

    def __init__(self, bin_id: str, capacity: int):
        self.bin_id = bin_id
        self.capacity = capacity
        super().__init__(f"Bin {bin_id} is full ({capacity}/{capacity})")


class NoBinsExistError(CapacityError):
    """No storage bins are defined."""

    code: str = "NO_BINS_EXIST"

    def __init__(self) -> None:
        super().__init__("No bins exist")


class BinsAtCapacityError(CapacityError):
    """Every defined bin is full."""

    code: str = "BINS_AT_CAPACITY"

    def __init__(self, bin_count: int):
        self.bin_count = bin_count
        super().__init__(f"All {bin_count} bins are at capacity")


class NotInBinError(CapacityError):
    """Release requested for an item the bin does not contain."""

    code: str = "NOT_IN_BIN"

    def __init__(self, item_id: str, bin_id: str):
        self.item_id = item_id
        self.bin_id = bin_id
        super().__init__(f"Item {item_id} is not in bin {bin_id}")


class ItemAlreadyInBinError(CapacityError):
    """An item may be a member of at most one bin."""

    code: str = "ITEM_ALREADY_IN_BIN"

    def __init__(self, item_id: str, bin_id: str):
        self.item_id = item_id
        self.bin_id = bin_id
        super().__init__(f"Item {item_id} is already in bin {bin_id}")


class DuplicateBinIdError(CapacityError):
    """Every drawn bin id collided with an existing bin."""

    code: str = "DUPLICATE_BIN_ID"

    def __init__(self, bin_id: str, attempts: int):
        self.bin_id = bin_id
        self.attempts = attempts
        super().__init__(
            f"Could not draw a unique bin id after {attempts} attempts "
            f"(last candidate {bin_id})"
        )


# =============================================================================
# Identifier errors
# =============================================================================


class IdentifierError(FulfillmentKernelError):
    """Base for identifier issuance errors."""

    code: str = "IDENTIFIER_ERROR"


class ExhaustedKeyspaceError(IdentifierError):
    """The identifier retry budget was spent without finding a free id."""

    code: str = "EXHAUSTED_KEYSPACE"

    def __init__(self, attempts: int, occupied: int, keyspace: int):
        self.attempts = attempts
        self.occupied = occupied
        self.keyspace = keyspace
        super().__init__(
            f"No free identifier after {attempts} attempts "
            f"({occupied} of {keyspace} ids in use)"
        )


# =============================================================================
# Not-found errors
# =============================================================================


class NotFoundError(FulfillmentKernelError):
    """Base for lookups of entities that do not exist."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type} {entity_id} not found")


class ItemNotFoundError(NotFoundError):
    code: str = "ITEM_NOT_FOUND"
    entity_type: str = "Inventory item"


class BinNotFoundError(NotFoundError):
    code: str = "BIN_NOT_FOUND"
    entity_type: str = "Bin"


class RequestNotFoundError(NotFoundError):
    code: str = "REQUEST_NOT_FOUND"
    entity_type: str = "Request"


class BatchNotFoundError(NotFoundError):
    code: str = "BATCH_NOT_FOUND"
    entity_type: str = "Production batch"


class WaitlistEntryNotFoundError(NotFoundError):
    code: str = "WAITLIST_ENTRY_NOT_FOUND"
    entity_type: str = "Waitlist entry"


class PendingProductionNotFoundError(NotFoundError):
    code: str = "PENDING_PRODUCTION_NOT_FOUND"
    entity_type: str = "Pending production request"


# =============================================================================
# Production errors
# =============================================================================


class ProductionError(FulfillmentKernelError):
    """Base for production batch errors."""

    code: str = "PRODUCTION_ERROR"


class BatchAlreadyIssuedError(ProductionError):
    """A batch's item set is generated exactly once."""

    code: str = "BATCH_ALREADY_ISSUED"

    def __init__(self, batch_id: str, item_count: int):
        self.batch_id = batch_id
        self.item_count = item_count
        super().__init__(f"Batch {batch_id} already issued {item_count} items")


class DuplicateBatchIdError(ProductionError):
    """Every drawn batch id collided with an existing batch."""

    code: str = "DUPLICATE_BATCH_ID"

    def __init__(self, batch_id: str, attempts: int):
        self.batch_id = batch_id
        self.attempts = attempts
        super().__init__(
            f"Could not draw a unique batch id after {attempts} attempts "
            f"(last candidate {batch_id})"
        )


class PendingProductionClosedError(ProductionError):
    """Only PENDING production requests can be accepted."""

    code: str = "PENDING_PRODUCTION_CLOSED"

    def __init__(self, request_id: str, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Pending production request {request_id} is {status}, not PENDING"
        )


# =============================================================================
# Concurrency errors
# =============================================================================


class ConcurrencyError(FulfillmentKernelError):
    """Base for concurrency errors.  These are the only retryable errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """A compare-and-set update found the row no longer in the observed state."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "record was modified by another transaction"
        )


class TransientRepositoryError(ConcurrencyError):
    """Transient repository failures persisted beyond the retry budget."""

    code: str = "TRANSIENT_REPOSITORY_ERROR"

    def __init__(self, attempts: int, last_error: str):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Repository operation failed after {attempts} attempts: {last_error}"
        )
