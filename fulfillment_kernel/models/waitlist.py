"""ORM model for the SKU-level backorder waitlist."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment_kernel.db.base import TrackedBase, UUIDString
from fulfillment_kernel.domain.types import WaitlistEntrySnapshot


class WaitlistEntry(TrackedBase):
    """One order waiting on one SKU.  ``position`` is unique per SKU."""

    __tablename__ = "waitlist_entries"

    __table_args__ = (
        UniqueConstraint("sku", "position", name="uq_waitlist_sku_position"),
        CheckConstraint("quantity > 0", name="ck_waitlist_quantity_positive"),
        Index("ix_waitlist_order_id", "order_id"),
    )

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)
    sku: Mapped[str] = mapped_column(String(32), nullable=False)
    order_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    def to_dto(self) -> WaitlistEntrySnapshot:
        return WaitlistEntrySnapshot(
            id=self.id,
            sku=self.sku,
            order_id=self.order_id,
            quantity=self.quantity,
            position=self.position,
            created_at=self.created_at,
        )
