"""
ORM models for physical inventory: items and the bins they sit in.

Contract:
    InventoryItem and Bin persist the item lifecycle and the capacity
    ledger.  Each has a ``to_dto()`` returning a frozen snapshot.

Architecture: fulfillment_kernel/models.  Imports from db/base and domain/types.

Invariants enforced:
    - ``status1`` is written once at INSERT.
    - Bin ``current_items`` stays within [0, capacity] (CHECK constraint).
    - Bin membership is mirrored on both sides: ``Bin.items`` lists the ids
      and ``InventoryItem.bin_id`` points back; the capacity ledger keeps
      the two in step inside one savepoint.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fulfillment_kernel.db.base import TrackedBase
from fulfillment_kernel.domain.types import (
    BinSnapshot,
    InventoryItemSnapshot,
    ItemAvailability,
    ItemOrigin,
)

if TYPE_CHECKING:
    from fulfillment_kernel.models.production import ProductionBatch
    from fulfillment_kernel.models.request import Request


class Bin(TrackedBase):
    """Storage bin with a fixed capacity."""

    __tablename__ = "bins"

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_bins_capacity_positive"),
        CheckConstraint(
            "current_items >= 0 AND current_items <= capacity",
            name="ck_bins_current_items_bounds",
        ),
        Index("ix_bins_zone", "zone"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    zone: Mapped[str] = mapped_column(String(32), nullable=False)
    rack: Mapped[str] = mapped_column(String(16), nullable=False)
    shelf: Mapped[str] = mapped_column(String(16), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    current_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    def to_dto(self, skus: frozenset[str] = frozenset()) -> BinSnapshot:
        return BinSnapshot(
            id=self.id,
            zone=self.zone,
            rack=self.rack,
            shelf=self.shelf,
            capacity=self.capacity,
            current_items=self.current_items,
            items=tuple(self.items or ()),
            skus=skus,
        )


class InventoryItem(TrackedBase):
    """A single physical garment."""

    __tablename__ = "inventory_items"

    __table_args__ = (
        Index("ix_inventory_items_availability", "status1", "status2", "sku"),
        Index("ix_inventory_items_order_id", "order_id"),
        Index("ix_inventory_items_bin_id", "bin_id"),
        CheckConstraint(
            "status2 <> 'ASSIGNED' OR order_id IS NOT NULL",
            name="ck_inventory_items_assigned_has_order",
        ),
    )

    id: Mapped[str] = mapped_column(String(16), primary_key=True)
    sku: Mapped[str] = mapped_column(String(32), nullable=False)
    status1: Mapped[str] = mapped_column(String(16), nullable=False)
    status2: Mapped[str] = mapped_column(String(16), nullable=False)
    bin_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("bins.id"), nullable=True,
    )
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    batch_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("production_batches.id"), nullable=True,
    )
    qr_payload: Mapped[str | None] = mapped_column(Text, nullable=True)

    batch: Mapped[ProductionBatch | None] = relationship(back_populates="items")
    requests: Mapped[list[Request]] = relationship(
        back_populates="item", order_by="Request.created_at",
    )

    def to_dto(self) -> InventoryItemSnapshot:
        return InventoryItemSnapshot(
            id=self.id,
            sku=self.sku,
            status1=ItemOrigin(self.status1),
            status2=ItemAvailability(self.status2),
            bin_id=self.bin_id,
            order_id=self.order_id,
            batch_id=self.batch_id,
            qr_payload=self.qr_payload,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
