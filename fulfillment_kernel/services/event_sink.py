"""
EventSink -- best-effort activity log.

Responsibility:
    Records business events (SKU_SEARCH, SKU_MATCH, PRODUCTION_REQUEST,
    WAITLIST_ADDED, ...) for operators.  The log is informational: a failed
    write is reported through the logger and dropped.

Architecture position:
    Kernel > Services.  Called by every mutating service.

Invariants enforced:
    - A sink failure never propagates to, or rolls back, the caller's
      operation.  ``DatabaseEventSink`` writes inside its own savepoint so a
      failed INSERT only discards the log row.

Failure modes:
    - Write failures are logged at WARNING as ``event_sink_write_failed``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from sqlalchemy.orm import Session

from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.types import Metadata
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.event_log import EventLog

logger = get_logger("services.event_sink")


class EventSink(ABC):
    """
    Contract:
        ``record`` never raises.  Subclasses implement ``_write``; any
        exception it raises is logged and swallowed here, once.
    """

    def record(
        self,
        event_type: str,
        entity_id: str,
        entity_type: str,
        message: str,
        metadata: Metadata | None = None,
    ) -> None:
        try:
            self._write(event_type, str(entity_id), entity_type, message, dict(metadata or {}))
        except Exception:
            logger.warning(
                "event_sink_write_failed",
                extra={
                    "event_type": event_type,
                    "entity_id": str(entity_id),
                    "entity_type": entity_type,
                },
                exc_info=True,
            )

    @abstractmethod
    def _write(
        self,
        event_type: str,
        entity_id: str,
        entity_type: str,
        message: str,
        metadata: Metadata,
    ) -> None:
        ...


class DatabaseEventSink(EventSink):
    """Persists events as ``EventLog`` rows in the caller's transaction."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def _write(self, event_type, entity_id, entity_type, message, metadata) -> None:
        with self._session.begin_nested():
            self._session.add(
                EventLog(
                    event_type=event_type,
                    entity_id=entity_id,
                    entity_type=entity_type,
                    message=message,
                    details=metadata,
                    occurred_at=self._clock.now(),
                )
            )
            self._session.flush()


class LoggingEventSink(EventSink):
    """Emits events to the structured log only; no persistence."""

    def _write(self, event_type, entity_id, entity_type, message, metadata) -> None:
        logger.info(
            "business_event",
            extra={
                "event_type": event_type,
                "entity_id": entity_id,
                "entity_type": entity_type,
                "event_message": message,
                "event_metadata": metadata,
            },
        )
