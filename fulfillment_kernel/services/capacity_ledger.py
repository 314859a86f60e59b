"""
CapacityLedger -- bin definitions and item membership.

Responsibility:
    Defines storage bins, places items into and out of them, reports usage
    and picks the optimal bin for a new item.

Architecture position:
    Kernel > Services.  Pure rules live in ``domain/capacity.py``; this
    class applies them to persisted bins.

Invariants enforced:
    - 0 <= current_items <= capacity and current_items == len(items).  Both
      columns are written by one compare-and-set UPDATE guarded on the
      observed ``current_items``, so concurrent placements cannot overfill.
    - An item is a member of at most one bin, and ``item.bin_id`` always
      mirrors that membership.

Failure modes:
    - BinFullError, NotInBinError, ItemAlreadyInBinError: state unchanged.
    - NoBinsExistError, BinsAtCapacityError from availability checks.
    - OptimisticLockError when another writer moved the bin counter first.
    - DuplicateBinIdError when every bin id draw collided.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from fulfillment_kernel.domain import capacity
from fulfillment_kernel.domain.capacity import CapacityThresholds, DEFAULT_THRESHOLDS
from fulfillment_kernel.domain.clock import Clock
from fulfillment_kernel.domain.identifiers import IdentifierIssuer
from fulfillment_kernel.domain.types import BinSnapshot, BinUsage, CapacitySeverity
from fulfillment_kernel.exceptions import (
    BinFullError,
    BinNotFoundError,
    DuplicateBinIdError,
    ItemAlreadyInBinError,
    ItemNotFoundError,
    NotInBinError,
    OptimisticLockError,
)
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.inventory import Bin, InventoryItem
from fulfillment_kernel.selectors.inventory_selector import InventorySelector
from fulfillment_kernel.services.base import BaseService
from fulfillment_kernel.services.event_sink import EventSink, LoggingEventSink

logger = get_logger("services.capacity")


class CapacityLedger(BaseService):
    """
    Contract:
        Accepts a Session, Clock, EventSink, IdentifierIssuer and thresholds.

    Guarantees:
        - ``assign``/``release``/``move`` are atomic: bin counter, bin item
          list and ``item.bin_id`` change together or not at all.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        event_sink: EventSink | None = None,
        issuer: IdentifierIssuer | None = None,
        thresholds: CapacityThresholds = DEFAULT_THRESHOLDS,
        bin_id_attempts: int = 5,
    ):
        super().__init__(session, clock)
        self._events = event_sink or LoggingEventSink()
        self._issuer = issuer or IdentifierIssuer()
        self._thresholds = thresholds
        self._bin_id_attempts = bin_id_attempts
        self._selector = InventorySelector(session)

    # =========================================================================
    # Bin definitions
    # =========================================================================

    def create_bin(self, zone: str, rack: str, shelf: str, capacity: int) -> BinSnapshot:
        """Define a bin, drawing an id that no existing bin uses."""
        if capacity <= 0:
            raise ValueError(f"Bin capacity must be positive, got {capacity}")
        if capacity > 999:
            raise ValueError(f"Bin capacity must fit three digits, got {capacity}")

        existing = self._selector.bin_ids()
        bin_id = ""
        for _ in range(self._bin_id_attempts):
            bin_id = self._issuer.new_bin_id(capacity, zone, shelf, rack)
            if bin_id not in existing:
                break
            logger.debug("bin_id_collision", extra={"bin_id": bin_id})
        else:
            raise DuplicateBinIdError(bin_id, self._bin_id_attempts)

        now = self._clock.now()
        row = self._repo.save(
            Bin(
                id=bin_id,
                zone=zone,
                rack=rack,
                shelf=shelf,
                capacity=capacity,
                current_items=0,
                items=[],
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("bin_created", extra={"bin_id": bin_id, "capacity": capacity})
        self._events.record(
            "BIN_CREATED", bin_id, "bin", f"Bin {bin_id} created",
            {"zone": zone, "rack": rack, "shelf": shelf, "capacity": capacity},
        )
        return row.to_dto()

    def get(self, bin_id: str) -> BinSnapshot:
        return self._load_bin(bin_id).to_dto()

    def list_bins(self) -> list[BinSnapshot]:
        return self._selector.bins()

    # =========================================================================
    # Availability and usage
    # =========================================================================

    def validate_availability(self) -> None:
        """Raise NoBinsExistError / BinsAtCapacityError when nothing can be placed."""
        capacity.validate_availability(self._selector.bins())

    def usage(self, bin_id: str) -> BinUsage:
        return capacity.bin_usage(self._load_bin(bin_id).to_dto(), self._thresholds)

    def usage_ratio(self, bin_id: str) -> float:
        return self.usage(bin_id).ratio

    def usage_report(self) -> list[BinUsage]:
        """Usage for every bin; flagged bins are logged at WARNING."""
        report = [capacity.bin_usage(b, self._thresholds) for b in self._selector.bins()]
        for entry in report:
            if entry.severity in (CapacitySeverity.NEAR_CAPACITY, CapacitySeverity.CRITICAL):
                logger.warning(
                    "bin_capacity_flagged",
                    extra={
                        "bin_id": entry.bin_id,
                        "ratio": entry.ratio,
                        "severity": entry.severity.value,
                    },
                )
        return report

    def choose_bin(self, sku: str) -> BinSnapshot:
        return capacity.choose_bin(self._selector.bins(), sku)

    # =========================================================================
    # Membership
    # =========================================================================

    def assign(self, item_id: str, bin_id: str) -> BinSnapshot:
        """
        Place an item into a bin.

        Raises:
            BinFullError: the bin is full; nothing changes.
            ItemAlreadyInBinError: the item already sits in a bin.
        """
        with self._repo.savepoint():
            row = self._assign(self._load_item(item_id), self._load_bin(bin_id))
        self._events.record(
            "BIN_ASSIGNED", item_id, "inventory_item",
            f"Item {item_id} placed in bin {bin_id}", {"bin_id": bin_id},
        )
        return row.to_dto()

    def place_item(self, item_id: str) -> BinSnapshot:
        """Place an item into the optimal bin for its SKU."""
        item = self._load_item(item_id)
        target = self.choose_bin(item.sku)
        return self.assign(item_id, target.id)

    def release(self, item_id: str, bin_id: str) -> BinSnapshot:
        """
        Remove an item from a bin.

        Raises:
            NotInBinError: the bin does not list the item; nothing changes.
        """
        with self._repo.savepoint():
            row = self._release(self._load_item(item_id), self._load_bin(bin_id))
        self._events.record(
            "BIN_RELEASED", item_id, "inventory_item",
            f"Item {item_id} removed from bin {bin_id}", {"bin_id": bin_id},
        )
        return row.to_dto()

    def move(self, item_id: str, to_bin_id: str) -> BinSnapshot:
        """Release from the current bin and assign to ``to_bin_id`` atomically."""
        item = self._load_item(item_id)
        from_bin_id = item.bin_id
        if from_bin_id is None:
            return self.assign(item_id, to_bin_id)
        if from_bin_id == to_bin_id:
            return self._load_bin(to_bin_id).to_dto()

        with self._repo.savepoint():
            self._release(item, self._load_bin(from_bin_id))
            row = self._assign(item, self._load_bin(to_bin_id))
        logger.info(
            "item_moved",
            extra={"item_id": item_id, "from_bin_id": from_bin_id, "to_bin_id": to_bin_id},
        )
        self._events.record(
            "BIN_MOVED", item_id, "inventory_item",
            f"Item {item_id} moved from {from_bin_id} to {to_bin_id}",
            {"from_bin_id": from_bin_id, "to_bin_id": to_bin_id},
        )
        return row.to_dto()

    # =========================================================================
    # Internal
    # =========================================================================

    def _assign(self, item: InventoryItem, row: Bin) -> Bin:
        if item.bin_id is not None:
            raise ItemAlreadyInBinError(item.id, item.bin_id)
        members = list(row.items or ())
        if item.id in members:
            raise ItemAlreadyInBinError(item.id, row.id)
        observed = row.current_items
        if observed >= row.capacity:
            logger.info("bin_full", extra={"bin_id": row.id, "capacity": row.capacity})
            raise BinFullError(row.id, row.capacity)

        now = self._clock.now()
        self._swap_counter(row, observed, observed + 1, members + [item.id], now)
        item.bin_id = row.id
        item.updated_at = now
        self.session.flush()
        logger.info(
            "bin_item_assigned",
            extra={"bin_id": row.id, "item_id": item.id, "current_items": row.current_items},
        )
        return row

    def _release(self, item: InventoryItem, row: Bin) -> Bin:
        members = list(row.items or ())
        if item.id not in members:
            raise NotInBinError(item.id, row.id)

        now = self._clock.now()
        observed = row.current_items
        remaining = [m for m in members if m != item.id]
        self._swap_counter(row, observed, observed - 1, remaining, now)
        item.bin_id = None
        item.updated_at = now
        self.session.flush()
        logger.info(
            "bin_item_released",
            extra={"bin_id": row.id, "item_id": item.id, "current_items": row.current_items},
        )
        return row

    def _swap_counter(self, row: Bin, observed: int, new_count: int, members: list[str], now) -> None:
        swapped = self._repo.compare_and_set(
            row,
            expected={"current_items": observed},
            values={"current_items": new_count, "items": members, "updated_at": now},
        )
        if not swapped:
            raise OptimisticLockError("bin", row.id)

    def _load_bin(self, bin_id: str) -> Bin:
        row = self._repo.get(Bin, bin_id, for_update=True)
        if row is None:
            raise BinNotFoundError(bin_id)
        return row

    def _load_item(self, item_id: str) -> InventoryItem:
        item = self._repo.get(InventoryItem, item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item
