"""
ProductionService -- production batches, their items and pending demand.

Responsibility:
    Records demand that must be produced (merging repeats for the same
    order), turns accepted demand into production batches, issues each
    batch's items with unique ids and QR payloads, tracks batch progress and
    renders the batch's label sheet.

Architecture position:
    Kernel > Services.  Uses the IdentifierIssuer for ids and a
    ``fulfillment_labels.LabelSheetRenderer`` for label output.

Invariants enforced:
    - Batches are only created for production-eligible SKUs and positive
      quantities.
    - A batch's items are issued once, all together, inside one savepoint:
      either ``quantity`` items exist afterwards or none do.
    - Issued ids are distinct from every persisted item id and from each
      other.

Failure modes:
    - InvalidQuantityError, IneligibleProductionSkuError, InvalidFormatError.
    - ExhaustedKeyspaceError: nothing is written.
    - BatchAlreadyIssuedError on a second generate_items for one batch.
    - InvalidTransitionError on an illegal batch status change.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy.orm import Session

from fulfillment_kernel.domain.clock import Clock
from fulfillment_kernel.domain.identifiers import IdentifierIssuer
from fulfillment_kernel.domain.lifecycles import BATCH_WORKFLOW
from fulfillment_kernel.domain.policies import production_priority
from fulfillment_kernel.domain.sku import DEFAULT_SKU_RULES, SkuRules, parse
from fulfillment_kernel.domain.types import (
    BatchStatus,
    InventoryItemSnapshot,
    ItemAvailability,
    ItemOrigin,
    PendingProductionSnapshot,
    PendingProductionStatus,
    Priority,
    ProductionBatchSnapshot,
)
from fulfillment_kernel.domain.workflow import require_transition
from fulfillment_kernel.exceptions import (
    BatchAlreadyIssuedError,
    BatchNotFoundError,
    DuplicateBatchIdError,
    IneligibleProductionSkuError,
    InvalidQuantityError,
    PendingProductionClosedError,
    PendingProductionNotFoundError,
)
from fulfillment_kernel.logging_config import LogContext, get_logger
from fulfillment_kernel.models.inventory import InventoryItem
from fulfillment_kernel.models.production import PendingProductionRequest, ProductionBatch
from fulfillment_kernel.selectors.inventory_selector import InventorySelector
from fulfillment_kernel.services.base import BaseService
from fulfillment_kernel.services.event_sink import EventSink, LoggingEventSink

if TYPE_CHECKING:
    from fulfillment_labels.renderer import LabelSheet, LabelSheetRenderer

logger = get_logger("services.production")

IssuedBatch = tuple[ProductionBatchSnapshot, tuple[InventoryItemSnapshot, ...]]


def qr_payload(item_id: str, sku: str, batch_id: str) -> str:
    """JSON encoded into each item's QR code."""
    return json.dumps({"id": item_id, "sku": sku, "batch_id": batch_id})


class ProductionService(BaseService):
    """
    Contract:
        Accepts a Session, Clock, EventSink, IdentifierIssuer, SKU rules and
        an optional label renderer.

    Guarantees:
        - generate_items returns an eager tuple; nothing is streamed.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        event_sink: EventSink | None = None,
        issuer: IdentifierIssuer | None = None,
        rules: SkuRules = DEFAULT_SKU_RULES,
        label_renderer: LabelSheetRenderer | None = None,
        batch_id_attempts: int = 5,
    ):
        super().__init__(session, clock)
        self._events = event_sink or LoggingEventSink()
        self._issuer = issuer or IdentifierIssuer()
        self._rules = rules
        self._label_renderer = label_renderer
        self._batch_id_attempts = batch_id_attempts
        self._selector = InventorySelector(session)

    # =========================================================================
    # Batches
    # =========================================================================

    def create_batch(self, sku: str, quantity: int) -> ProductionBatchSnapshot:
        """Open a batch of ``quantity`` units of ``sku`` in status CREATED."""
        if quantity <= 0:
            raise InvalidQuantityError(quantity)
        parsed = parse(sku)
        if not self._rules.is_production_eligible(parsed):
            raise IneligibleProductionSkuError(str(parsed), parsed.finish)

        existing = self._repo.ids(ProductionBatch.id)
        batch_id = ""
        for _ in range(self._batch_id_attempts):
            batch_id = self._issuer.new_batch_id()
            if batch_id not in existing:
                break
            logger.debug("batch_id_collision", extra={"batch_id": batch_id})
        else:
            raise DuplicateBatchIdError(batch_id, self._batch_id_attempts)

        now = self._clock.now()
        batch = self._repo.save(
            ProductionBatch(
                id=batch_id,
                sku=str(parsed),
                quantity=quantity,
                status=BatchStatus.CREATED.value,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info(
            "production_batch_created",
            extra={"batch_id": batch_id, "sku": str(parsed), "quantity": quantity},
        )
        self._events.record(
            "BATCH_CREATED", batch_id, "production_batch",
            f"Batch {batch_id} created for {quantity} x {parsed}",
            {"sku": str(parsed), "quantity": quantity},
        )
        return batch.to_dto()

    def generate_items(self, batch_id: str) -> tuple[InventoryItemSnapshot, ...]:
        """
        Issue the batch's items: ``quantity`` PRODUCTION / UNCOMMITTED items.

        All-or-nothing: ids are drawn first, then every row is written in a
        single savepoint.
        """
        batch = self._load_batch(batch_id)
        if batch.items:
            raise BatchAlreadyIssuedError(batch_id, len(batch.items))

        with LogContext.bind(batch_id=batch_id):
            item_ids = self._issuer.new_item_ids(
                batch.quantity, self._selector.all_item_ids()
            )
            now = self._clock.now()
            rows = [
                InventoryItem(
                    id=item_id,
                    sku=batch.sku,
                    status1=ItemOrigin.PRODUCTION.value,
                    status2=ItemAvailability.UNCOMMITTED.value,
                    batch_id=batch.id,
                    qr_payload=qr_payload(item_id, batch.sku, batch.id),
                    created_at=now,
                    updated_at=now,
                )
                for item_id in item_ids
            ]
            with self._repo.savepoint():
                self._repo.save_all(rows)
            self.session.refresh(batch)

            logger.info(
                "production_items_generated",
                extra={"sku": batch.sku, "item_count": len(rows)},
            )
        self._events.record(
            "BATCH_ITEMS_GENERATED", batch_id, "production_batch",
            f"Batch {batch_id} issued {len(rows)} items",
            {"item_count": len(rows), "sku": batch.sku},
        )
        return tuple(row.to_dto() for row in rows)

    def issue_batch(self, sku: str, quantity: int) -> IssuedBatch:
        """Create a batch and issue its items in one savepoint."""
        with self._repo.savepoint():
            batch = self.create_batch(sku, quantity)
            items = self.generate_items(batch.id)
        return self.get_batch(batch.id), items

    def get_batch(self, batch_id: str) -> ProductionBatchSnapshot:
        return self._load_batch(batch_id).to_dto()

    def update_batch_status(self, batch_id: str, status: BatchStatus) -> ProductionBatchSnapshot:
        batch = self._load_batch(batch_id)
        transition = require_transition(
            BATCH_WORKFLOW, "production_batch", batch.status, status
        )
        previous = batch.status
        batch.status = status.value
        batch.updated_at = self._clock.now()
        self.session.flush()
        logger.info(
            "production_batch_transitioned",
            extra={
                "batch_id": batch_id,
                "action": transition.action,
                "from_status": previous,
                "to_status": status.value,
            },
        )
        return batch.to_dto()

    def render_label_sheet(self, items: Sequence[InventoryItemSnapshot]) -> LabelSheet:
        """Printable QR label sheet for ``items`` in the given order."""
        if self._label_renderer is None:
            from fulfillment_labels.renderer import LabelSheetRenderer

            self._label_renderer = LabelSheetRenderer()
        return self._label_renderer.render(items)

    # =========================================================================
    # Pending production
    # =========================================================================

    def create_pending_request(
        self,
        sku: str,
        quantity: int,
        order_id: str | None = None,
        priority: Priority | None = None,
        notes: str | None = None,
    ) -> PendingProductionSnapshot:
        """
        Record demand for production of ``sku``.

        Demand is keyed by the universal SKU: a PENDING request for the same
        universal SKU and order absorbs the new quantity instead of a second
        request being opened.
        """
        if quantity <= 0:
            raise InvalidQuantityError(quantity)
        demand = parse(sku)
        universal = str(self._rules.universal_sku(demand))
        now = self._clock.now()

        order_filter = (
            PendingProductionRequest.order_id == order_id
            if order_id is not None
            else PendingProductionRequest.order_id.is_(None)
        )
        existing = self._repo.find(
            PendingProductionRequest,
            PendingProductionRequest.universal_sku == universal,
            PendingProductionRequest.status == PendingProductionStatus.PENDING.value,
            order_filter,
            order_by=(PendingProductionRequest.created_at,),
            limit=1,
            for_update=True,
        )
        if existing:
            request = existing[0]
            request.quantity += quantity
            request.updated_at = now
            self.session.flush()
            logger.info(
                "pending_production_merged",
                extra={
                    "request_id": str(request.id),
                    "universal_sku": universal,
                    "quantity": request.quantity,
                },
            )
            return request.to_dto()

        resolved_priority = production_priority(priority, has_order=order_id is not None)
        request = self._repo.save(
            PendingProductionRequest(
                sku=str(demand),
                universal_sku=universal,
                quantity=quantity,
                priority=resolved_priority.value,
                status=PendingProductionStatus.PENDING.value,
                order_id=order_id,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info(
            "pending_production_created",
            extra={
                "request_id": str(request.id),
                "sku": str(demand),
                "universal_sku": universal,
                "quantity": quantity,
                "priority": resolved_priority.value,
            },
        )
        self._events.record(
            "PRODUCTION_REQUEST", str(request.id), "pending_production",
            f"Production of {quantity} x {universal} requested for {demand}",
            {
                "sku": str(demand),
                "universal_sku": universal,
                "quantity": quantity,
                "order_id": order_id,
                "priority": resolved_priority.value,
            },
        )
        return request.to_dto()

    def list_pending(self) -> list[PendingProductionSnapshot]:
        rows = self._repo.find(
            PendingProductionRequest,
            PendingProductionRequest.status == PendingProductionStatus.PENDING.value,
            order_by=(PendingProductionRequest.created_at, PendingProductionRequest.id),
        )
        return [r.to_dto() for r in rows]

    def accept_pending_request(self, request_id: UUID) -> IssuedBatch:
        """Issue a batch of the universal SKU for a pending request."""
        request = self._load_pending(request_id)
        if request.status != PendingProductionStatus.PENDING.value:
            raise PendingProductionClosedError(str(request_id), request.status)

        with self._repo.savepoint():
            batch, items = self.issue_batch(request.universal_sku, request.quantity)
            request.status = PendingProductionStatus.ACCEPTED.value
            request.batch_id = batch.id
            request.updated_at = self._clock.now()
            self.session.flush()

        logger.info(
            "pending_production_accepted",
            extra={"request_id": str(request_id), "batch_id": batch.id},
        )
        return batch, items

    def cancel_pending_request(self, request_id: UUID) -> PendingProductionSnapshot:
        request = self._load_pending(request_id)
        if request.status != PendingProductionStatus.PENDING.value:
            raise PendingProductionClosedError(str(request_id), request.status)
        request.status = PendingProductionStatus.CANCELLED.value
        request.updated_at = self._clock.now()
        self.session.flush()
        logger.info("pending_production_cancelled", extra={"request_id": str(request_id)})
        return request.to_dto()

    # =========================================================================
    # Internal
    # =========================================================================

    def _load_batch(self, batch_id: str) -> ProductionBatch:
        batch = self._repo.get(ProductionBatch, batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch

    def _load_pending(self, request_id: UUID) -> PendingProductionRequest:
        request = self._repo.get(PendingProductionRequest, request_id)
        if request is None:
            raise PendingProductionNotFoundError(str(request_id))
        return request
