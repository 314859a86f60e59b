"""
Module: fulfillment_kernel.db.repository
Responsibility: Thin persistence port over a caller-owned Session.  Services
    talk to the database only through ``Repository`` so that lookups,
    writes, compare-and-set updates and savepoints read the same everywhere.
Architecture position: Kernel > DB.  Imports db/base.py only.

Invariants enforced:
    - Repository never commits; it flushes.  The caller owns the transaction.
    - compare_and_set touches the row only if every expected column still
      holds the observed value, and reports whether it did.

Failure modes:
    - IntegrityError from save() on primary-key or constraint violations.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Sequence, TypeVar

from sqlalchemy import select, update
from sqlalchemy.orm import Session, SessionTransaction

from fulfillment_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class Repository:
    """
    Generic data access for ORM models.

    Contract:
        Accepts a Session from the caller.  Every write is followed by a
        flush so constraint violations surface at the call site.

    Non-goals:
        Query composition beyond simple criteria lives in selectors/.
    """

    def __init__(self, session: Session):
        self.session = session

    def _locking(self, stmt, for_update: bool, skip_locked: bool = False):
        """Row locks on PostgreSQL only; SQLite serialises writers itself.

        Plain FOR UPDATE waits for the holder, so a row that exists is always
        returned.  SKIP LOCKED is for candidate scans, where another
        writer's row is simply not a candidate.
        """
        if not for_update:
            return stmt
        if self.session.get_bind().dialect.name == "postgresql":
            return stmt.with_for_update(skip_locked=skip_locked)
        return stmt

    def get(self, model: type[ModelType], entity_id: Any, for_update: bool = False) -> ModelType | None:
        if for_update:
            stmt = self._locking(
                select(model).where(model.id == entity_id), for_update
            ).execution_options(populate_existing=True)
            return self.session.scalars(stmt).first()
        return self.session.get(model, entity_id)

    def find(
        self,
        model: type[ModelType],
        *criteria: Any,
        order_by: Sequence[Any] = (),
        limit: int | None = None,
        for_update: bool = False,
        skip_locked: bool = False,
    ) -> list[ModelType]:
        stmt = select(model).where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        stmt = self._locking(stmt, for_update, skip_locked)
        return list(self.session.scalars(stmt))

    def ids(self, column: Any) -> set[Any]:
        """All values of one column, e.g. every persisted item id."""
        return set(self.session.scalars(select(column)))

    def save(self, entity: ModelType) -> ModelType:
        self.session.add(entity)
        self.session.flush()
        return entity

    def save_all(self, entities: Sequence[ModelType]) -> None:
        self.session.add_all(entities)
        self.session.flush()

    def delete(self, entity: ModelType) -> None:
        self.session.delete(entity)
        self.session.flush()

    def compare_and_set(
        self,
        entity: ModelType,
        expected: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> bool:
        """
        ``UPDATE ... SET values WHERE id = :id AND <expected>``.

        On success the instance is refreshed from the row; on failure it is
        expired so the next read sees the competing writer's state.

        Returns:
            True if exactly one row was updated.
        """
        model = type(entity)
        self.session.flush()
        stmt = (
            update(model)
            .where(model.id == entity.id)
            .where(*(getattr(model, col) == val for col, val in expected.items()))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            self.session.expire(entity)
            return False
        self.session.refresh(entity)
        return True

    @contextmanager
    def savepoint(self) -> Iterator[SessionTransaction]:
        """
        Nested transaction; use as a context manager.

        When the block raises, the savepoint is rolled back and every
        instance is expired: compare_and_set writes bypass the unit of work,
        so the identity map cannot tell which rows the rollback restored.
        """
        try:
            with self.session.begin_nested() as nested:
                yield nested
        except Exception:
            self.session.expire_all()
            raise
