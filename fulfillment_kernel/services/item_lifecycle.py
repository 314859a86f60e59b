"""
InventoryItemService -- item creation and availability lifecycle.

Responsibility:
    Creates physical items, moves ``status2`` along
    UNCOMMITTED -> COMMITTED -> ASSIGNED (and ASSIGNED -> UNCOMMITTED), and
    applies the wash-on-assignment policy.  Also performs the SKU
    alteration the matcher uses for universal matches.

Architecture position:
    Kernel > Services.  Uses RequestService for the wash side effect.

Invariants enforced:
    - ``status1`` is set at creation and never written again.
    - ASSIGNED (and COMMITTED) require an order id; unassign clears it.
    - ``status2`` changes are compare-and-set on the observed state, so two
      writers can never both move the same item out of UNCOMMITTED.
    - The transition and its wash request commit or roll back together.

Failure modes:
    - InvalidTransitionError, MissingOrderError: rejected, state unchanged.
    - OptimisticLockError: another writer changed the item first.
    - ItemNotFoundError for unknown ids.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from fulfillment_kernel.domain.clock import Clock
from fulfillment_kernel.domain.identifiers import IdentifierIssuer
from fulfillment_kernel.domain.lifecycles import ITEM_AVAILABILITY_WORKFLOW
from fulfillment_kernel.domain.policies import requires_wash_on_assignment, wash_priority
from fulfillment_kernel.domain.sku import is_substitutable, parse
from fulfillment_kernel.domain.types import (
    InventoryItemSnapshot,
    ItemAvailability,
    ItemOrigin,
    Metadata,
    Priority,
    RequestSnapshot,
    RequestType,
    TransitionOutcome,
)
from fulfillment_kernel.domain.workflow import require_transition
from fulfillment_kernel.exceptions import (
    InvalidSkuError,
    ItemNotFoundError,
    MissingOrderError,
    OptimisticLockError,
)
from fulfillment_kernel.logging_config import LogContext, get_logger
from fulfillment_kernel.models.inventory import InventoryItem
from fulfillment_kernel.selectors.inventory_selector import InventorySelector
from fulfillment_kernel.services.base import BaseService
from fulfillment_kernel.services.event_sink import EventSink, LoggingEventSink
from fulfillment_kernel.services.request_lifecycle import RequestService

logger = get_logger("services.items")

_ORDER_BOUND_STATES = frozenset({ItemAvailability.COMMITTED, ItemAvailability.ASSIGNED})


class InventoryItemService(BaseService):
    """
    Contract:
        Accepts a Session, Clock, EventSink and IdentifierIssuer.  Returns
        snapshots, never ORM instances.

    Guarantees:
        - Every transition sets ``updated_at`` from the clock.
        - A STOCK item entering ASSIGNED gets exactly one new WASHING
          request per assignment; unassigning never cancels it.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        event_sink: EventSink | None = None,
        issuer: IdentifierIssuer | None = None,
        requests: RequestService | None = None,
    ):
        super().__init__(session, clock)
        self._events = event_sink or LoggingEventSink()
        self._issuer = issuer or IdentifierIssuer()
        self._requests = requests or RequestService(session, self._clock, self._events)
        self._selector = InventorySelector(session)

    # =========================================================================
    # Creation and lookup
    # =========================================================================

    def create_item(
        self,
        sku: str,
        origin: ItemOrigin = ItemOrigin.STOCK,
        *,
        item_id: str | None = None,
        batch_id: str | None = None,
        qr_payload: str | None = None,
    ) -> InventoryItemSnapshot:
        """Register a physical item as UNCOMMITTED.

        Raises:
            InvalidFormatError: ``sku`` does not parse.
        """
        canonical = str(parse(sku))
        if item_id is None:
            item_id = self._issuer.new_item_id(self._selector.all_item_ids())
        now = self._clock.now()
        item = self._repo.save(
            InventoryItem(
                id=item_id,
                sku=canonical,
                status1=origin.value,
                status2=ItemAvailability.UNCOMMITTED.value,
                batch_id=batch_id,
                qr_payload=qr_payload,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info(
            "item_created",
            extra={"item_id": item.id, "sku": canonical, "origin": origin.value},
        )
        return item.to_dto()

    def get(self, item_id: str) -> InventoryItemSnapshot:
        return self._load(item_id).to_dto()

    # =========================================================================
    # Availability transitions
    # =========================================================================

    def commit(
        self,
        item_id: str,
        order_id: str,
        *,
        expected: ItemAvailability | None = None,
    ) -> TransitionOutcome:
        return self.transition(
            item_id, ItemAvailability.COMMITTED, order_id=order_id, expected=expected
        )

    def assign(
        self,
        item_id: str,
        order_id: str | None = None,
        *,
        expected: ItemAvailability | None = None,
        priority: Priority | None = None,
        metadata: Metadata | None = None,
    ) -> TransitionOutcome:
        return self.transition(
            item_id,
            ItemAvailability.ASSIGNED,
            order_id=order_id,
            expected=expected,
            priority=priority,
            metadata=metadata,
        )

    def unassign(self, item_id: str) -> TransitionOutcome:
        return self.transition(item_id, ItemAvailability.UNCOMMITTED)

    def transition(
        self,
        item_id: str,
        target: ItemAvailability,
        *,
        order_id: str | None = None,
        expected: ItemAvailability | None = None,
        priority: Priority | None = None,
        metadata: Metadata | None = None,
    ) -> TransitionOutcome:
        """
        Move an item to ``target`` and apply the wash policy.

        Preconditions: the edge exists in ITEM_AVAILABILITY_WORKFLOW; an
            order id is supplied (or already reserved) for COMMITTED/ASSIGNED.
        Postconditions: status2, order_id and updated_at are written with a
            compare-and-set on the observed status2; a WASHING request exists
            when the policy requires one.

        ``expected`` is the status2 the caller observed.  When the row has
        already moved away from it the caller lost a race, which raises
        OptimisticLockError rather than InvalidTransitionError.
        """
        item = self._load(item_id)
        current = ItemAvailability(item.status2)
        if expected is not None and current is not expected:
            logger.info(
                "item_transition_conflict",
                extra={
                    "expected_status": expected.value,
                    "from_status": current.value,
                    "to_status": target.value,
                },
            )
            raise OptimisticLockError("inventory_item", item_id)
        transition = require_transition(
            ITEM_AVAILABILITY_WORKFLOW, "inventory_item", current, target
        )

        if target in _ORDER_BOUND_STATES:
            new_order_id = order_id or item.order_id
            if not new_order_id:
                raise MissingOrderError(item_id, target.value)
        else:
            new_order_id = None

        origin = ItemOrigin(item.status1)
        created: list[RequestSnapshot] = []
        with LogContext.bind(item_id=item_id, order_id=new_order_id), self._repo.savepoint():
            swapped = self._repo.compare_and_set(
                item,
                expected={"status2": current.value},
                values={
                    "status2": target.value,
                    "order_id": new_order_id,
                    "updated_at": self._clock.now(),
                },
            )
            if not swapped:
                logger.info(
                    "item_transition_conflict",
                    extra={"from_status": current.value, "to_status": target.value},
                )
                raise OptimisticLockError("inventory_item", item_id)

            if requires_wash_on_assignment(origin, current, target):
                created.append(
                    self._requests.create_request(
                        item_id,
                        RequestType.WASHING,
                        wash_priority(priority),
                        {
                            "order_id": new_order_id,
                            "source": "auto_assignment",
                            **(metadata or {}),
                        },
                    )
                )

            logger.info(
                "item_transitioned",
                extra={
                    "action": transition.action,
                    "from_status": current.value,
                    "to_status": target.value,
                    "wash_requested": bool(created),
                },
            )

        self._events.record(
            "ITEM_STATUS_CHANGED",
            item_id,
            "inventory_item",
            f"Item {item_id} {current.value} -> {target.value}",
            {"from_status": current.value, "to_status": target.value, "order_id": new_order_id},
        )
        return TransitionOutcome(item=item.to_dto(), requests=tuple(created))

    # =========================================================================
    # Alteration
    # =========================================================================

    def alter_sku(self, item_id: str, new_sku: str) -> InventoryItemSnapshot:
        """Rewrite an item's SKU after hemming/washing.

        Style, waist and shape are physical and cannot change.
        """
        item = self._load(item_id)
        current = parse(item.sku)
        target = parse(new_sku)
        if not is_substitutable(current, target):
            raise InvalidSkuError(
                new_sku, f"alteration of {item.sku} must keep style, waist and shape"
            )
        if target.length_value > current.length_value:
            raise InvalidSkuError(new_sku, f"cannot lengthen {item.sku}")

        item.sku = str(target)
        item.updated_at = self._clock.now()
        self.session.flush()
        logger.info(
            "item_sku_altered",
            extra={"item_id": item_id, "from_sku": str(current), "to_sku": str(target)},
        )
        return item.to_dto()

    def _load(self, item_id: str) -> InventoryItem:
        item = self._repo.get(InventoryItem, item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item
