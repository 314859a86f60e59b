"""
Module: fulfillment_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID column type, the type annotation map for consistent column types,
    and the TrackedBase mixin for timestamps.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, or outer layers.

Invariants enforced:
    - Timestamps are timezone-aware and written from the injected Clock by the
      services (no server defaults), so FIFO ordering is reproducible in tests.

Failure modes:
    - IntegrityError if a model INSERTs a duplicate primary key.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID as PyUUID

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Contract:
        Every ORM model inherits from Base (or TrackedBase) and declares its
        own primary key: item, bin and batch ids are short human-readable
        strings, everything else is a uuid4.

    Guarantees:
        - datetime maps to DateTime(timezone=True).
        - UUID maps to UUIDString.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: Integer,
    }


class TrackedBase(Base):
    """
    Abstract base with created/updated timestamps.

    Contract:
        Services set both columns from their Clock; ``updated_at`` is
        rewritten on every state change.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
