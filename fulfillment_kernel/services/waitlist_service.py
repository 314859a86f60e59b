"""
WaitlistService -- SKU-level FIFO backorder queue.

Responsibility:
    Records orders waiting on a SKU nothing in stock can satisfy, lists them
    in arrival order, removes them once satisfied, and hands newly
    available items to the oldest compatible waiting order.

Architecture position:
    Kernel > Services.  Called by FulfillmentService (enqueue) and by
    whoever receives production output (allocate).

Invariants enforced:
    - Positions per SKU are strictly increasing in insertion order and are
      never renumbered; removal leaves a gap.  A unique (sku, position)
      constraint backs this under concurrency.

Failure modes:
    - InvalidQuantityError for quantity <= 0.
    - InvalidFormatError for an unparsable SKU.
    - WaitlistEntryNotFoundError when dequeuing an unknown entry.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fulfillment_kernel.domain.clock import Clock
from fulfillment_kernel.domain.sku import DEFAULT_SKU_RULES, SkuRules, parse
from fulfillment_kernel.domain.types import (
    InventoryItemSnapshot,
    ItemAvailability,
    WaitlistAllocation,
    WaitlistEntrySnapshot,
)
from fulfillment_kernel.exceptions import (
    InvalidQuantityError,
    OptimisticLockError,
    WaitlistEntryNotFoundError,
)
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.waitlist import WaitlistEntry
from fulfillment_kernel.services.base import BaseService
from fulfillment_kernel.services.event_sink import EventSink, LoggingEventSink
from fulfillment_kernel.services.item_lifecycle import InventoryItemService

logger = get_logger("services.waitlist")

_POSITION_ATTEMPTS = 3


class WaitlistService(BaseService):
    """
    Contract:
        Accepts a Session, Clock, EventSink and the item service used to
        commit allocated items.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        event_sink: EventSink | None = None,
        items: InventoryItemService | None = None,
        rules: SkuRules = DEFAULT_SKU_RULES,
    ):
        super().__init__(session, clock)
        self._events = event_sink or LoggingEventSink()
        self._items = items or InventoryItemService(session, self._clock, self._events)
        self._rules = rules

    def enqueue(self, sku: str, order_id: str, quantity: int) -> WaitlistEntrySnapshot:
        """Append an order to the back of the SKU's queue."""
        if quantity <= 0:
            raise InvalidQuantityError(quantity)
        canonical = str(parse(sku))

        # Two writers can read the same tail; the unique constraint rejects
        # the loser, which re-reads and takes the next position.
        for attempt in range(1, _POSITION_ATTEMPTS + 1):
            position = self._next_position(canonical)
            now = self._clock.now()
            try:
                with self._repo.savepoint():
                    entry = self._repo.save(
                        WaitlistEntry(
                            sku=canonical,
                            order_id=order_id,
                            quantity=quantity,
                            position=position,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                break
            except IntegrityError:
                logger.info(
                    "waitlist_position_conflict",
                    extra={"sku": canonical, "position": position, "attempt": attempt},
                )
        else:
            raise OptimisticLockError("waitlist", canonical)

        logger.info(
            "waitlist_enqueued",
            extra={
                "entry_id": str(entry.id),
                "sku": canonical,
                "order_id": order_id,
                "quantity": quantity,
                "position": position,
            },
        )
        self._events.record(
            "WAITLIST_ADDED", str(entry.id), "waitlist_entry",
            f"Order {order_id} waiting on {canonical} at position {position}",
            {"sku": canonical, "order_id": order_id, "quantity": quantity, "position": position},
        )
        return entry.to_dto()

    def list_for(self, sku: str) -> list[WaitlistEntrySnapshot]:
        """Live entries for ``sku`` in FIFO order."""
        canonical = str(parse(sku))
        rows = self._repo.find(
            WaitlistEntry,
            WaitlistEntry.sku == canonical,
            order_by=(WaitlistEntry.position,),
        )
        return [r.to_dto() for r in rows]

    def get(self, entry_id: UUID) -> WaitlistEntrySnapshot:
        return self._load(entry_id).to_dto()

    def dequeue(self, entry_id: UUID) -> WaitlistEntrySnapshot:
        """Remove an entry.  Other entries keep their positions."""
        entry = self._load(entry_id)
        snapshot = entry.to_dto()
        self._repo.delete(entry)
        logger.info(
            "waitlist_dequeued",
            extra={"entry_id": str(entry_id), "sku": snapshot.sku, "position": snapshot.position},
        )
        self._events.record(
            "WAITLIST_REMOVED", str(entry_id), "waitlist_entry",
            f"Order {snapshot.order_id} removed from {snapshot.sku} waitlist",
            {"sku": snapshot.sku, "order_id": snapshot.order_id},
        )
        return snapshot

    def allocate(self, items: Sequence[InventoryItemSnapshot]) -> list[WaitlistAllocation]:
        """
        Commit newly available items to the oldest compatible waiting orders.

        An item is compatible with an entry when it can be altered into the
        entry's SKU.  Each allocation commits the item to the entry's order
        and consumes one unit of the entry; exhausted entries are dequeued.
        Items that are not UNCOMMITTED, or that no entry wants, are skipped.
        """
        allocations: list[WaitlistAllocation] = []
        entries = self._repo.find(
            WaitlistEntry,
            order_by=(WaitlistEntry.created_at, WaitlistEntry.position),
        )
        for item in items:
            if item.status2 is not ItemAvailability.UNCOMMITTED:
                continue
            candidate_sku = parse(item.sku)
            entry = next(
                (
                    e for e in entries
                    if e.quantity > 0
                    and self._rules.can_alter_to(candidate_sku, parse(e.sku))
                ),
                None,
            )
            if entry is None:
                continue

            try:
                self._items.commit(item.id, entry.order_id, expected=item.status2)
            except OptimisticLockError:
                logger.info("waitlist_allocation_conflict", extra={"item_id": item.id})
                continue

            remaining = entry.quantity - 1
            allocations.append(
                WaitlistAllocation(
                    item_id=item.id,
                    entry_id=entry.id,
                    order_id=entry.order_id,
                    sku=entry.sku,
                    remaining_quantity=remaining,
                )
            )
            if remaining == 0:
                entries.remove(entry)
                self.dequeue(entry.id)
            else:
                entry.quantity = remaining
                entry.updated_at = self._clock.now()
                self.session.flush()

        logger.info(
            "waitlist_allocation_completed",
            extra={"offered": len(items), "allocated": len(allocations)},
        )
        return allocations

    def _next_position(self, sku: str) -> int:
        current = self.session.scalar(
            select(func.max(WaitlistEntry.position)).where(WaitlistEntry.sku == sku)
        )
        return (current or 0) + 1

    def _load(self, entry_id: UUID) -> WaitlistEntry:
        entry = self._repo.get(WaitlistEntry, entry_id)
        if entry is None:
            raise WaitlistEntryNotFoundError(str(entry_id))
        return entry
