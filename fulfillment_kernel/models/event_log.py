"""
ORM model for the append-only activity log written by DatabaseEventSink.

Rows are never updated; a failed write is dropped rather than retried.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment_kernel.db.base import Base, UUIDString


class EventLog(Base):
    """One recorded business event (SKU_SEARCH, SKU_MATCH, ...)."""

    __tablename__ = "event_log"

    __table_args__ = (
        Index("ix_event_log_entity", "entity_type", "entity_id"),
        Index("ix_event_log_event_type", "event_type"),
    )

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict,
    )
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
