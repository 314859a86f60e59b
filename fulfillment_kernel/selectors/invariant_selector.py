"""
InvariantSelector -- audits persisted state against KernelInvariant.

Used by operators after incidents and by the test suite after every
scenario.  Returns violations; never raises for a violation.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass

from sqlalchemy import select

from fulfillment_kernel.domain.types import ItemAvailability, ItemOrigin, RequestType
from fulfillment_kernel.invariants import KernelInvariant
from fulfillment_kernel.models.inventory import Bin, InventoryItem
from fulfillment_kernel.models.production import ProductionBatch
from fulfillment_kernel.models.request import Request
from fulfillment_kernel.models.waitlist import WaitlistEntry
from fulfillment_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class InvariantViolation:
    invariant: KernelInvariant
    entity_id: str
    detail: str


class InvariantSelector(BaseSelector):
    """Checks every KernelInvariant against the current session state."""

    def find_violations(self) -> list[InvariantViolation]:
        violations: list[InvariantViolation] = []
        violations.extend(self._check_bins())
        violations.extend(self._check_items())
        violations.extend(self._check_batches())
        violations.extend(self._check_waitlist())
        return violations

    def _check_bins(self) -> list[InvariantViolation]:
        found: list[InvariantViolation] = []
        membership: dict[str, list[str]] = defaultdict(list)
        bins = list(self.session.scalars(select(Bin)))
        bin_of = dict(self.session.execute(select(InventoryItem.id, InventoryItem.bin_id)).all())

        for b in bins:
            items = list(b.items or ())
            if not 0 <= b.current_items <= b.capacity:
                found.append(InvariantViolation(
                    KernelInvariant.BIN_CAPACITY, b.id,
                    f"current_items {b.current_items} outside [0, {b.capacity}]",
                ))
            if b.current_items != len(set(items)) or len(items) != len(set(items)):
                found.append(InvariantViolation(
                    KernelInvariant.BIN_LEDGER_CONSISTENCY, b.id,
                    f"current_items {b.current_items} vs {len(items)} listed ids",
                ))
            for item_id in items:
                membership[item_id].append(b.id)
                if bin_of.get(item_id) != b.id:
                    found.append(InvariantViolation(
                        KernelInvariant.BIN_LEDGER_CONSISTENCY, item_id,
                        f"listed in bin {b.id} but points at {bin_of.get(item_id)}",
                    ))

        for item_id, bin_ids in membership.items():
            if len(bin_ids) > 1:
                found.append(InvariantViolation(
                    KernelInvariant.EXCLUSIVE_MEMBERSHIP, item_id,
                    f"member of bins {sorted(bin_ids)}",
                ))
        for item_id, bin_id in bin_of.items():
            if bin_id is not None and item_id not in membership:
                found.append(InvariantViolation(
                    KernelInvariant.BIN_LEDGER_CONSISTENCY, item_id,
                    f"points at bin {bin_id} which does not list it",
                ))
        return found

    def _check_items(self) -> list[InvariantViolation]:
        found: list[InvariantViolation] = []
        washed = set(self.session.scalars(
            select(Request.item_id).where(Request.request_type == RequestType.WASHING.value)
        ))
        assigned = self.session.scalars(
            select(InventoryItem).where(
                InventoryItem.status2 == ItemAvailability.ASSIGNED.value
            )
        )
        for item in assigned:
            if item.order_id is None:
                found.append(InvariantViolation(
                    KernelInvariant.ASSIGNED_HAS_ORDER, item.id, "ASSIGNED without order_id",
                ))
            if item.status1 == ItemOrigin.STOCK.value and item.id not in washed:
                found.append(InvariantViolation(
                    KernelInvariant.STOCK_ASSIGNMENT_WASHED, item.id,
                    "STOCK item ASSIGNED without a WASHING request",
                ))
        return found

    def _check_batches(self) -> list[InvariantViolation]:
        found: list[InvariantViolation] = []
        for batch in self.session.scalars(select(ProductionBatch)):
            count = len(batch.items)
            if count not in (0, batch.quantity):
                found.append(InvariantViolation(
                    KernelInvariant.BATCH_COMPLETENESS, batch.id,
                    f"{count} items for quantity {batch.quantity}",
                ))
        return found

    def _check_waitlist(self) -> list[InvariantViolation]:
        positions = Counter(
            self.session.execute(select(WaitlistEntry.sku, WaitlistEntry.position)).all()
        )
        return [
            InvariantViolation(
                KernelInvariant.WAITLIST_POSITION_UNIQUE, sku,
                f"position {position} used {n} times",
            )
            for (sku, position), n in positions.items()
            if n > 1
        ]
