"""
ORM model for work requests raised against an item (wash, pull, QC, ...).

The ``metadata`` column is exposed as ``details`` because ``metadata`` is
reserved on declarative classes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fulfillment_kernel.db.base import TrackedBase, UUIDString
from fulfillment_kernel.domain.types import (
    Priority,
    RequestSnapshot,
    RequestStatus,
    RequestType,
)

if TYPE_CHECKING:
    from fulfillment_kernel.models.inventory import InventoryItem


class Request(TrackedBase):
    """Work request against a single inventory item."""

    __tablename__ = "requests"

    __table_args__ = (
        Index("ix_requests_item_id", "item_id"),
        Index("ix_requests_type_status", "request_type", "status"),
    )

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)
    item_id: Mapped[str] = mapped_column(
        String(16), ForeignKey("inventory_items.id"), nullable=False,
    )
    request_type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    priority: Mapped[str] = mapped_column(String(16), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict,
    )

    item: Mapped[InventoryItem] = relationship(back_populates="requests")

    def to_dto(self) -> RequestSnapshot:
        return RequestSnapshot(
            id=self.id,
            item_id=self.item_id,
            request_type=RequestType(self.request_type),
            status=RequestStatus(self.status),
            priority=Priority(self.priority),
            metadata=dict(self.details or {}),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
