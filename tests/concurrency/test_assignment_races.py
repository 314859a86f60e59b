"""
Race safety for item assignment and bin capacity.

Competing writers are simulated deterministically: the "other" writer's
change is applied with raw SQL between the matcher's read and its
compare-and-set, which is exactly the window a concurrent fulfill() would
race through.  The postgres-marked tests run real threads.

Run with: pytest tests/concurrency -v
Skip with: pytest -m "not slow_locks"
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import select, text

from fulfillment_kernel.domain.sku import parse
from fulfillment_kernel.domain.types import ItemAvailability, MatchType
from fulfillment_kernel.exceptions import BinFullError, ConcurrencyError, OptimisticLockError
from fulfillment_kernel.models.inventory import Bin
from fulfillment_kernel.selectors.inventory_selector import InventorySelector
from fulfillment_kernel.selectors.invariant_selector import InvariantSelector
from fulfillment_kernel.services import CapacityLedger, FulfillmentService, InventoryItemService

pytestmark = pytest.mark.slow_locks

DEMAND = "ST-32-X-30-RAW"


def _steal(session, item_id: str, order_id: str = "O-RIVAL") -> None:
    session.execute(
        text(
            "UPDATE inventory_items SET status2 = 'ASSIGNED', order_id = :order_id "
            "WHERE id = :item_id"
        ),
        {"item_id": item_id, "order_id": order_id},
    )


class TestItemCompareAndSet:

    def test_lost_race_raises_and_keeps_winner(self, session, item_service, make_stock_item):
        item = make_stock_item(DEMAND)
        item_service.get(item.id)
        _steal(session, item.id)

        with pytest.raises(OptimisticLockError):
            item_service.assign(item.id, "O-1", expected=ItemAvailability.UNCOMMITTED)

        winner = item_service.get(item.id)
        assert winner.status2 is ItemAvailability.ASSIGNED
        assert winner.order_id == "O-RIVAL"

    def test_matcher_skips_stolen_candidate(
        self, session, fulfillment, item_service, request_service, make_stock_item, monkeypatch
    ):
        stolen = make_stock_item(DEMAND)
        spare = make_stock_item(DEMAND)
        stale = InventorySelector(session).uncommitted_stock_for(parse(DEMAND))
        assert [c.id for c in stale] == [stolen.id, spare.id]
        item_service.get(stolen.id)
        _steal(session, stolen.id)
        monkeypatch.setattr(
            InventorySelector, "uncommitted_stock_for", lambda self, demand: stale
        )

        result = fulfillment.fulfill(DEMAND, "O-1")

        assert result.matched
        assert result.item_id == spare.id
        assert item_service.get(stolen.id).order_id == "O-RIVAL"
        assert request_service.list_for_item(stolen.id) == []

    def test_moved_row_is_a_conflict_not_a_bad_transition(self, session, item_service, make_stock_item):
        item = make_stock_item(DEMAND)
        _steal(session, item.id)
        session.expire_all()

        with pytest.raises(OptimisticLockError):
            item_service.assign(item.id, "O-1", expected=ItemAvailability.UNCOMMITTED)
        assert item_service.get(item.id).order_id == "O-RIVAL"

    def test_every_candidate_stolen_backorders(
        self, session, fulfillment, waitlist_service, make_stock_item, monkeypatch
    ):
        first = make_stock_item(DEMAND)
        second = make_stock_item(DEMAND)
        stale = InventorySelector(session).uncommitted_stock_for(parse(DEMAND))
        _steal(session, first.id)
        _steal(session, second.id)
        session.expire_all()
        monkeypatch.setattr(
            InventorySelector, "uncommitted_stock_for", lambda self, demand: stale
        )

        result = fulfillment.fulfill(DEMAND, "O-1")

        assert not result.matched
        assert [e.order_id for e in waitlist_service.list_for(DEMAND)] == ["O-1"]

    def test_universal_alteration_rolled_back_on_lost_race(
        self, session, fulfillment, item_service, make_stock_item, monkeypatch
    ):
        stolen = make_stock_item("ST-32-X-34-RAW")
        stale = InventorySelector(session).uncommitted_stock_for(parse(DEMAND))
        item_service.get(stolen.id)
        _steal(session, stolen.id)
        monkeypatch.setattr(
            InventorySelector, "uncommitted_stock_for", lambda self, demand: stale
        )

        result = fulfillment.fulfill(DEMAND, "O-1")

        assert not result.matched
        assert result.match_type is MatchType.NONE
        assert item_service.get(stolen.id).sku == "ST-32-X-34-RAW"


class TestBinCompareAndSet:

    def test_stale_counter_rejected(self, session, capacity_ledger, make_bin, make_stock_item, monkeypatch):
        bin_ = make_bin(capacity=2)
        item = make_stock_item(DEMAND)

        original = capacity_ledger._repo.compare_and_set

        def racing_cas(entity, expected, values):
            session.execute(
                text("UPDATE bins SET current_items = current_items + 1 WHERE id = :id"),
                {"id": entity.id},
            )
            return original(entity, expected, values)

        monkeypatch.setattr(capacity_ledger._repo, "compare_and_set", racing_cas)
        with pytest.raises(OptimisticLockError):
            capacity_ledger.assign(item.id, bin_.id)

        monkeypatch.undo()
        assert capacity_ledger.get(bin_.id).items == ()


@pytest.mark.postgres
class TestTrueConcurrency:

    def test_one_item_many_orders(self, session_factory, deterministic_clock):
        with session_factory() as setup:
            InventoryItemService(setup, deterministic_clock).create_item(DEMAND, item_id="I0RACE")
            setup.commit()

        barrier = threading.Barrier(8)

        def attempt(n: int):
            with session_factory() as session:
                barrier.wait()
                result = FulfillmentService(session, deterministic_clock).fulfill(DEMAND, f"O-{n}")
                session.commit()
                return result

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(8)))

        winners = [r for r in results if r.matched]
        assert len(winners) == 1
        assert winners[0].item_id == "I0RACE"

        with session_factory() as check:
            assert InvariantSelector(check).find_violations() == []

    def test_bin_never_overfills(self, session_factory, deterministic_clock):
        with session_factory() as setup:
            items = InventoryItemService(setup, deterministic_clock)
            ids = [items.create_item(DEMAND).id for _ in range(6)]
            bin_id = CapacityLedger(setup, deterministic_clock).create_bin("STA", "A", "1", 3).id
            setup.commit()

        barrier = threading.Barrier(6)

        def attempt(item_id: str):
            with session_factory() as session:
                barrier.wait()
                try:
                    CapacityLedger(session, deterministic_clock).assign(item_id, bin_id)
                    session.commit()
                    return None
                except (BinFullError, ConcurrencyError) as exc:
                    session.rollback()
                    return exc

        with ThreadPoolExecutor(max_workers=6) as pool:
            outcomes = list(pool.map(attempt, ids))

        failures = [o for o in outcomes if o is not None]
        assert len(outcomes) - len(failures) == 3
        assert all(isinstance(f, BinFullError) for f in failures)
        with session_factory() as check:
            assert InvariantSelector(check).find_violations() == []

    def test_locked_bin_is_waited_for(self, session_factory, deterministic_clock):
        with session_factory() as setup:
            item_id = InventoryItemService(setup, deterministic_clock).create_item(DEMAND).id
            bin_id = CapacityLedger(setup, deterministic_clock).create_bin("STA", "A", "1", 3).id
            setup.commit()

        holder = session_factory()
        holder.execute(select(Bin).where(Bin.id == bin_id).with_for_update())

        def assign():
            with session_factory() as session:
                placed = CapacityLedger(session, deterministic_clock).assign(item_id, bin_id)
                session.commit()
                return placed

        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(assign)
            time.sleep(0.2)
            assert not future.done()
            holder.commit()
            holder.close()
            placed = future.result(timeout=10)

        assert placed.items == (item_id,)
