"""
FulfillmentService -- matches demanded SKUs to physical inventory.

Responsibility:
    For one demanded SKU and order, finds an existing STOCK item that
    satisfies it exactly, or one that can be altered into it, and assigns
    that item to the order.  When nothing matches, the demand is sent to
    production and the order joins the SKU's waitlist.

Architecture position:
    Kernel > Services -- orchestrator.  Drives InventoryItemService,
    ProductionService and WaitlistService; reads candidates through
    InventorySelector.

Invariants enforced:
    - Either exactly one item is transitioned (with its wash request and
      log entries) or none is and a waitlist/production record is created
      instead.  All of it runs in one savepoint.
    - Within a tier, candidates are tried oldest ``created_at`` first, then
      by id.  A candidate another writer already took is skipped.
    - A universal match keeps style, waist and shape; only the length is
      altered to the demanded length.

Failure modes:
    - InvalidQuantityError for quantity <= 0.
    - InvalidSkuError when the demanded SKU does not parse; no search is
      performed.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from fulfillment_kernel.domain.clock import Clock
from fulfillment_kernel.domain.sku import DEFAULT_SKU_RULES, SKU, SkuRules, parse, with_length
from fulfillment_kernel.domain.types import (
    FulfillmentResult,
    InventoryItemSnapshot,
    MatchType,
    Priority,
)
from fulfillment_kernel.exceptions import (
    InvalidFormatError,
    InvalidQuantityError,
    InvalidSkuError,
    OptimisticLockError,
)
from fulfillment_kernel.logging_config import LogContext, get_logger
from fulfillment_kernel.selectors.inventory_selector import InventorySelector
from fulfillment_kernel.services.base import BaseService
from fulfillment_kernel.services.event_sink import EventSink, LoggingEventSink
from fulfillment_kernel.services.item_lifecycle import InventoryItemService
from fulfillment_kernel.services.production_service import ProductionService
from fulfillment_kernel.services.waitlist_service import WaitlistService

logger = get_logger("services.fulfillment")


class FulfillmentService(BaseService):
    """
    Contract:
        ``fulfill`` is invoked once per distinct SKU line of an order.  It
        returns a FulfillmentResult; it never commits.

    Guarantees:
        - EXACT beats UNIVERSAL; UNIVERSAL beats production.
        - Every call records a SKU_SEARCH event, plus SKU_MATCH or
          PRODUCTION_REQUEST.  Event sink failures never undo the match.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        event_sink: EventSink | None = None,
        items: InventoryItemService | None = None,
        production: ProductionService | None = None,
        waitlist: WaitlistService | None = None,
        rules: SkuRules = DEFAULT_SKU_RULES,
    ):
        super().__init__(session, clock)
        self._events = event_sink or LoggingEventSink()
        self._rules = rules
        self._items = items or InventoryItemService(session, self._clock, self._events)
        self._production = production or ProductionService(
            session, self._clock, self._events, rules=rules
        )
        self._waitlist = waitlist or WaitlistService(
            session, self._clock, self._events, items=self._items, rules=rules
        )
        self._selector = InventorySelector(session)

    def fulfill(
        self,
        demand_sku: str,
        order_id: str,
        quantity: int = 1,
        priority: Priority | None = None,
    ) -> FulfillmentResult:
        """
        Satisfy one unit of ``demand_sku`` for ``order_id``.

        ``quantity`` is the line's demanded quantity; it sizes the waitlist
        entry and production request when nothing matches.

        Raises:
            InvalidQuantityError: quantity <= 0.
            InvalidSkuError: demand_sku is not a valid SKU.
        """
        if quantity <= 0:
            raise InvalidQuantityError(quantity)
        try:
            demand = parse(demand_sku)
        except InvalidFormatError as exc:
            raise InvalidSkuError(demand_sku, exc.reason) from exc

        with LogContext.bind(order_id=order_id):
            logger.info(
                "fulfillment_started",
                extra={"demand_sku": str(demand), "quantity": quantity},
            )
            self._events.record(
                "SKU_SEARCH", order_id, "order",
                f"Searching inventory for {demand}",
                {"demand_sku": str(demand), "quantity": quantity},
            )

            with self._repo.savepoint():
                result = self._match(demand, order_id, quantity, priority)
                if result is None:
                    result = self._backorder(demand, order_id, quantity, priority)

            logger.info(
                "fulfillment_completed",
                extra={
                    "demand_sku": str(demand),
                    "matched": result.matched,
                    "match_type": result.match_type.value,
                    "item_id": result.item_id,
                },
            )
        return result

    def fulfill_line(
        self,
        demand_sku: str,
        order_id: str,
        quantity: int,
        priority: Priority | None = None,
    ) -> list[FulfillmentResult]:
        """
        Satisfy every unit of an order line.

        Units are matched one at a time until a unit finds nothing; the
        remaining quantity is then backordered as a single waitlist entry
        and production request.
        """
        if quantity <= 0:
            raise InvalidQuantityError(quantity)
        results: list[FulfillmentResult] = []
        remaining = quantity
        while remaining > 0:
            result = self.fulfill(demand_sku, order_id, remaining, priority)
            results.append(result)
            if not result.matched:
                break
            remaining -= 1
        return results

    # =========================================================================
    # Internal
    # =========================================================================

    def _match(
        self,
        demand: SKU,
        order_id: str,
        quantity: int,
        priority: Priority | None,
    ) -> FulfillmentResult | None:
        candidates = self._selector.uncommitted_stock_for(demand)
        exact = [c for c in candidates if parse(c.sku) == demand]
        universal = [
            c for c in candidates
            if parse(c.sku) != demand and self._rules.can_alter_to(parse(c.sku), demand)
        ]

        tiers: tuple[tuple[MatchType, list[InventoryItemSnapshot]], ...] = (
            (MatchType.EXACT, exact),
            (MatchType.UNIVERSAL, universal),
        )
        for match_type, tier in tiers:
            for candidate in tier:
                result = self._try_assign(
                    candidate, demand, order_id, quantity, priority, match_type
                )
                if result is not None:
                    return result
        return None

    def _try_assign(
        self,
        candidate: InventoryItemSnapshot,
        demand: SKU,
        order_id: str,
        quantity: int,
        priority: Priority | None,
        match_type: MatchType,
    ) -> FulfillmentResult | None:
        original_sku = candidate.sku
        try:
            with self._repo.savepoint():
                if match_type is MatchType.UNIVERSAL:
                    altered = with_length(parse(original_sku), demand.length_value)
                    self._items.alter_sku(candidate.id, str(altered))
                outcome = self._items.assign(
                    candidate.id,
                    order_id,
                    expected=candidate.status2,
                    priority=priority,
                    metadata={
                        "match_type": match_type.value,
                        "demand_sku": str(demand),
                        "original_sku": original_sku,
                        "target_finish": demand.finish,
                    },
                )
        except OptimisticLockError:
            logger.info(
                "fulfillment_candidate_lost",
                extra={"item_id": candidate.id, "match_type": match_type.value},
            )
            return None

        wash = next(iter(outcome.requests), None)
        logger.info(
            "fulfillment_matched",
            extra={
                "item_id": candidate.id,
                "match_type": match_type.value,
                "original_sku": original_sku,
                "demand_sku": str(demand),
            },
        )
        self._events.record(
            "SKU_MATCH", candidate.id, "inventory_item",
            f"{match_type.value} match of {original_sku} for {demand}",
            {
                "match_type": match_type.value,
                "order_id": order_id,
                "demand_sku": str(demand),
                "original_sku": original_sku,
            },
        )
        return FulfillmentResult(
            matched=True,
            match_type=match_type,
            demand_sku=str(demand),
            order_id=order_id,
            quantity=quantity,
            item_id=candidate.id,
            original_sku=original_sku,
            wash_request_id=wash.id if wash is not None else None,
        )

    def _backorder(
        self,
        demand: SKU,
        order_id: str,
        quantity: int,
        priority: Priority | None,
    ) -> FulfillmentResult:
        production = self._production.create_pending_request(
            str(demand),
            quantity,
            order_id=order_id,
            priority=priority,
            notes=f"No stock match for order {order_id}",
        )
        entry = self._waitlist.enqueue(str(demand), order_id, quantity)
        logger.info(
            "fulfillment_backordered",
            extra={
                "demand_sku": str(demand),
                "universal_sku": production.universal_sku,
                "waitlist_position": entry.position,
            },
        )
        return FulfillmentResult(
            matched=False,
            match_type=MatchType.NONE,
            demand_sku=str(demand),
            order_id=order_id,
            quantity=quantity,
            waitlist_entry_id=entry.id,
            waitlist_position=entry.position,
            production_request_id=production.id,
        )

