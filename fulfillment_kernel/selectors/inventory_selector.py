"""
InventorySelector -- read-only inventory queries.

Candidate searches for the matcher, bin snapshots for placement, and the id
sets the identifier issuer checks against.
"""

from __future__ import annotations

from collections import defaultdict

from sqlalchemy import select

from fulfillment_kernel.domain.sku import SEPARATOR, SKU
from fulfillment_kernel.domain.types import (
    BinSnapshot,
    InventoryItemSnapshot,
    ItemAvailability,
    ItemOrigin,
)
from fulfillment_kernel.models.inventory import Bin, InventoryItem
from fulfillment_kernel.selectors.base import BaseSelector


class InventorySelector(BaseSelector):
    """Queries over inventory items and bins."""

    def uncommitted_stock_for(self, demand: SKU) -> list[InventoryItemSnapshot]:
        """STOCK / UNCOMMITTED items sharing style, waist and shape with ``demand``.

        Ordered oldest first, then by id, which is the tie-break order for
        every matching tier.

        On PostgreSQL the rows are read FOR UPDATE SKIP LOCKED, so a candidate
        another fulfill is already taking is left out rather than waited on.
        """
        prefix = SEPARATOR.join(demand.base) + SEPARATOR
        stmt = (
            select(InventoryItem)
            .where(
                InventoryItem.status1 == ItemOrigin.STOCK.value,
                InventoryItem.status2 == ItemAvailability.UNCOMMITTED.value,
                InventoryItem.sku.startswith(prefix, autoescape=True),
            )
            .order_by(InventoryItem.created_at, InventoryItem.id)
        )
        return [item.to_dto() for item in self.session.scalars(self._skip_locked(stmt))]

    def all_item_ids(self) -> set[str]:
        return set(self.session.scalars(select(InventoryItem.id)))

    def bin_ids(self) -> set[str]:
        return set(self.session.scalars(select(Bin.id)))

    def bins(self) -> list[BinSnapshot]:
        """Every bin, with the SKUs of its member items filled in."""
        skus_by_bin: dict[str, set[str]] = defaultdict(set)
        rows = self.session.execute(
            select(InventoryItem.bin_id, InventoryItem.sku).where(
                InventoryItem.bin_id.is_not(None)
            )
        )
        for bin_id, sku in rows:
            skus_by_bin[bin_id].add(sku)
        return [
            b.to_dto(frozenset(skus_by_bin.get(b.id, ())))
            for b in self.session.scalars(select(Bin).order_by(Bin.id))
        ]
