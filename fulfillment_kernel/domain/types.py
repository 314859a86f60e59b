"""
fulfillment_kernel.domain.types -- Pure frozen dataclasses and status enums.

ZERO I/O.  Services return these snapshots rather than ORM instances so that
callers never hold a live session object.

Invariants enforced:
    - All DTOs are frozen dataclasses with tuples for collections.
    - Enum values are the persisted column values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union
from uuid import UUID

# Request/event metadata is a flat map of primitives.
MetadataValue = Union[str, int, float, bool, None]
Metadata = dict[str, MetadataValue]


# =============================================================================
# Status enums
# =============================================================================


class ItemOrigin(str, Enum):
    """Where a physical item came from (``status1``, immutable)."""

    STOCK = "STOCK"
    PRODUCTION = "PRODUCTION"


class ItemAvailability(str, Enum):
    """Commitment state of a physical item (``status2``)."""

    UNCOMMITTED = "UNCOMMITTED"  # Free for any order
    COMMITTED = "COMMITTED"  # Reserved for an order
    ASSIGNED = "ASSIGNED"  # Bound to an order, order_id required


class RequestType(str, Enum):
    """Kinds of work requests raised against an item."""

    WASHING = "WASHING"
    STOCK_PULL = "STOCK_PULL"
    PRODUCTION = "PRODUCTION"
    PATTERN_REQUEST = "PATTERN_REQUEST"
    MOVE_REQUEST = "MOVE_REQUEST"
    QC = "QC"
    FINISHING = "FINISHING"


class RequestStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class BatchStatus(str, Enum):
    """Production batch lifecycle."""

    CREATED = "CREATED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class PendingProductionStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    CANCELLED = "CANCELLED"


class MatchType(str, Enum):
    """How a demand SKU was satisfied."""

    EXACT = "EXACT"  # All five fields equal
    UNIVERSAL = "UNIVERSAL"  # Substitutable item altered to fit
    NONE = "NONE"  # Waitlisted and sent to production


class CapacitySeverity(str, Enum):
    """Bin usage classification."""

    EMPTY = "EMPTY"
    NORMAL = "NORMAL"
    NEAR_CAPACITY = "NEAR_CAPACITY"
    CRITICAL = "CRITICAL"


# =============================================================================
# Entity snapshots
# =============================================================================


@dataclass(frozen=True)
class InventoryItemSnapshot:
    """Immutable view of a physical garment."""

    id: str
    sku: str
    status1: ItemOrigin
    status2: ItemAvailability
    bin_id: str | None = None
    order_id: str | None = None
    batch_id: str | None = None
    qr_payload: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class BinSnapshot:
    """Immutable view of a storage bin.

    ``skus`` lists the SKUs of the member items; it is filled in by the
    selector and used for placement decisions only.
    """

    id: str
    zone: str
    rack: str
    shelf: str
    capacity: int
    current_items: int
    items: tuple[str, ...] = ()
    skus: frozenset[str] = field(default_factory=frozenset)

    @property
    def available_space(self) -> int:
        return self.capacity - self.current_items

    @property
    def is_full(self) -> bool:
        return self.current_items >= self.capacity


@dataclass(frozen=True)
class BinUsage:
    """Usage ratio and severity of one bin."""

    bin_id: str
    current_items: int
    capacity: int
    ratio: float
    severity: CapacitySeverity


@dataclass(frozen=True)
class RequestSnapshot:
    id: UUID
    item_id: str
    request_type: RequestType
    status: RequestStatus
    priority: Priority
    metadata: Metadata = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ProductionBatchSnapshot:
    id: str
    sku: str
    quantity: int
    status: BatchStatus
    item_ids: tuple[str, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class PendingProductionSnapshot:
    id: UUID
    sku: str
    universal_sku: str
    quantity: int
    priority: Priority
    status: PendingProductionStatus
    order_id: str | None = None
    batch_id: str | None = None
    notes: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class WaitlistEntrySnapshot:
    id: UUID
    sku: str
    order_id: str
    quantity: int
    position: int
    created_at: datetime | None = None


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of an item availability transition plus the requests it raised."""

    item: InventoryItemSnapshot
    requests: tuple[RequestSnapshot, ...] = ()


@dataclass(frozen=True)
class FulfillmentResult:
    """Outcome of one ``fulfill`` call.

    Exactly one of the two shapes is populated:
    matched -- ``item_id``, ``match_type`` in {EXACT, UNIVERSAL}, and the
    wash request raised by assignment (STOCK items);
    not matched -- ``match_type`` NONE with the waitlist entry and the
    pending production request created instead.
    """

    matched: bool
    match_type: MatchType
    demand_sku: str
    order_id: str
    quantity: int
    item_id: str | None = None
    original_sku: str | None = None
    wash_request_id: UUID | None = None
    waitlist_entry_id: UUID | None = None
    waitlist_position: int | None = None
    production_request_id: UUID | None = None


@dataclass(frozen=True)
class WaitlistAllocation:
    """A newly available item committed to a waiting order."""

    item_id: str
    entry_id: UUID
    order_id: str
    sku: str
    remaining_quantity: int
