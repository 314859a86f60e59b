"""
RequestService -- work request lifecycle.

Responsibility:
    Creates work requests against inventory items and moves them through
    PENDING -> IN_PROGRESS -> COMPLETED, with FAILED and retry back to
    PENDING.

Architecture position:
    Kernel > Services.  Called by InventoryItemService (wash policy) and by
    operators working the floor.

Invariants enforced:
    - Only edges of REQUEST_WORKFLOW are taken; COMPLETED is terminal.
    - A rejected transition leaves the request untouched.

Failure modes:
    - InvalidTransitionError for any edge outside the workflow.
    - RequestNotFoundError / ItemNotFoundError for unknown ids.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from fulfillment_kernel.domain.clock import Clock
from fulfillment_kernel.domain.lifecycles import REQUEST_WORKFLOW
from fulfillment_kernel.domain.types import (
    Metadata,
    Priority,
    RequestSnapshot,
    RequestStatus,
    RequestType,
)
from fulfillment_kernel.domain.workflow import require_transition
from fulfillment_kernel.exceptions import ItemNotFoundError, RequestNotFoundError
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.inventory import InventoryItem
from fulfillment_kernel.models.request import Request
from fulfillment_kernel.services.base import BaseService
from fulfillment_kernel.services.event_sink import EventSink, LoggingEventSink

logger = get_logger("services.requests")


class RequestService(BaseService):
    """
    Contract:
        Every write flushes; nothing commits.

    Guarantees:
        - ``updated_at`` is set from the injected clock on every transition.
        - ``fail`` records the reason in the request metadata.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        event_sink: EventSink | None = None,
    ):
        super().__init__(session, clock)
        self._events = event_sink or LoggingEventSink()

    def create_request(
        self,
        item_id: str,
        request_type: RequestType,
        priority: Priority = Priority.MEDIUM,
        metadata: Metadata | None = None,
    ) -> RequestSnapshot:
        if self._repo.get(InventoryItem, item_id) is None:
            raise ItemNotFoundError(item_id)
        now = self._clock.now()
        request = self._repo.save(
            Request(
                item_id=item_id,
                request_type=request_type.value,
                status=RequestStatus.PENDING.value,
                priority=priority.value,
                details=dict(metadata or {}),
                created_at=now,
                updated_at=now,
            )
        )
        logger.info(
            "request_created",
            extra={
                "request_id": str(request.id),
                "item_id": item_id,
                "request_type": request_type.value,
                "priority": priority.value,
            },
        )
        self._events.record(
            "REQUEST_CREATED",
            str(request.id),
            "request",
            f"{request_type.value} request created for item {item_id}",
            {"item_id": item_id, "request_type": request_type.value, "priority": priority.value},
        )
        return request.to_dto()

    def get(self, request_id: UUID) -> RequestSnapshot:
        return self._load(request_id).to_dto()

    def list_for_item(self, item_id: str) -> list[RequestSnapshot]:
        rows = self._repo.find(
            Request,
            Request.item_id == item_id,
            order_by=(Request.created_at, Request.id),
        )
        return [r.to_dto() for r in rows]

    def transition(
        self,
        request_id: UUID,
        target: RequestStatus,
        metadata: Metadata | None = None,
    ) -> RequestSnapshot:
        request = self._load(request_id)
        transition = require_transition(
            REQUEST_WORKFLOW, "request", request.status, target
        )
        previous = request.status
        request.status = target.value
        request.updated_at = self._clock.now()
        if metadata:
            request.details = {**(request.details or {}), **metadata}
        self.session.flush()

        logger.info(
            "request_transitioned",
            extra={
                "request_id": str(request.id),
                "action": transition.action,
                "from_status": previous,
                "to_status": target.value,
            },
        )
        return request.to_dto()

    def start(self, request_id: UUID) -> RequestSnapshot:
        return self.transition(request_id, RequestStatus.IN_PROGRESS)

    def complete(self, request_id: UUID) -> RequestSnapshot:
        return self.transition(request_id, RequestStatus.COMPLETED)

    def fail(self, request_id: UUID, reason: str | None = None) -> RequestSnapshot:
        return self.transition(
            request_id,
            RequestStatus.FAILED,
            {"failure_reason": reason} if reason else None,
        )

    def retry(self, request_id: UUID) -> RequestSnapshot:
        return self.transition(request_id, RequestStatus.PENDING)

    def _load(self, request_id: UUID) -> Request:
        request = self._repo.get(Request, request_id)
        if request is None:
            raise RequestNotFoundError(str(request_id))
        return request
