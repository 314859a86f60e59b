"""
ORM models for production: issued batches and pending production requests.

Contract:
    ProductionBatch owns the initial existence of its items; the item set is
    written once, inside the savepoint that issues it.
    PendingProductionRequest records demand nothing in stock could satisfy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fulfillment_kernel.db.base import TrackedBase, UUIDString
from fulfillment_kernel.domain.types import (
    BatchStatus,
    PendingProductionSnapshot,
    PendingProductionStatus,
    Priority,
    ProductionBatchSnapshot,
)

if TYPE_CHECKING:
    from fulfillment_kernel.models.inventory import InventoryItem


class ProductionBatch(TrackedBase):
    """A run of identical garments in a production finish."""

    __tablename__ = "production_batches"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_production_batches_quantity_positive"),
        Index("ix_production_batches_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    sku: Mapped[str] = mapped_column(String(32), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)

    items: Mapped[list["InventoryItem"]] = relationship(
        back_populates="batch", order_by="InventoryItem.id",
    )

    def to_dto(self) -> ProductionBatchSnapshot:
        return ProductionBatchSnapshot(
            id=self.id,
            sku=self.sku,
            quantity=self.quantity,
            status=BatchStatus(self.status),
            item_ids=tuple(item.id for item in self.items),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class PendingProductionRequest(TrackedBase):
    """Demand waiting for a production batch."""

    __tablename__ = "pending_production_requests"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_pending_production_quantity_positive"),
        Index("ix_pending_production_universal", "universal_sku", "order_id", "status"),
    )

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)
    sku: Mapped[str] = mapped_column(String(32), nullable=False)
    universal_sku: Mapped[str] = mapped_column(String(32), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    priority: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    batch_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("production_batches.id"), nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> PendingProductionSnapshot:
        return PendingProductionSnapshot(
            id=self.id,
            sku=self.sku,
            universal_sku=self.universal_sku,
            quantity=self.quantity,
            priority=Priority(self.priority),
            status=PendingProductionStatus(self.status),
            order_id=self.order_id,
            batch_id=self.batch_id,
            notes=self.notes,
            created_at=self.created_at,
        )
