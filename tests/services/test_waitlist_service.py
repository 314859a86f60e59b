"""
WaitlistService: per-SKU FIFO backorder queue.
"""

from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from fulfillment_kernel.domain.types import ItemAvailability, ItemOrigin
from fulfillment_kernel.exceptions import (
    InvalidFormatError,
    InvalidQuantityError,
    WaitlistEntryNotFoundError,
)

SKU = "ST-32-X-30-RAW"


class TestEnqueue:

    def test_positions_are_one_based_per_sku(self, waitlist_service):
        first = waitlist_service.enqueue(SKU, "O-1", 1)
        second = waitlist_service.enqueue(SKU, "O-2", 2)
        other = waitlist_service.enqueue("ST-32-X-32-RAW", "O-3", 1)
        assert (first.position, second.position, other.position) == (1, 2, 1)

    def test_sku_is_canonicalised(self, waitlist_service):
        entry = waitlist_service.enqueue("st-32-x-30-raw", "O-1", 1)
        assert entry.sku == SKU
        assert [e.id for e in waitlist_service.list_for(SKU)] == [entry.id]

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_invalid_quantity(self, waitlist_service, quantity):
        with pytest.raises(InvalidQuantityError):
            waitlist_service.enqueue(SKU, "O-1", quantity)

    def test_invalid_sku(self, waitlist_service):
        with pytest.raises(InvalidFormatError):
            waitlist_service.enqueue("ST-32", "O-1", 1)


class TestDequeue:

    def test_no_renumbering(self, waitlist_service):
        entries = [waitlist_service.enqueue(SKU, f"O-{n}", 1) for n in range(1, 5)]
        waitlist_service.dequeue(entries[1].id)

        remaining = waitlist_service.list_for(SKU)
        assert [e.order_id for e in remaining] == ["O-1", "O-3", "O-4"]
        assert [e.position for e in remaining] == [1, 3, 4]

    def test_new_entries_never_reuse_a_live_position(self, waitlist_service):
        a = waitlist_service.enqueue(SKU, "O-1", 1)
        waitlist_service.enqueue(SKU, "O-2", 1)
        waitlist_service.dequeue(a.id)
        late = waitlist_service.enqueue(SKU, "O-3", 1)

        positions = [e.position for e in waitlist_service.list_for(SKU)]
        assert len(positions) == len(set(positions))
        assert late.position == 3

    def test_unknown_entry(self, waitlist_service):
        with pytest.raises(WaitlistEntryNotFoundError):
            waitlist_service.dequeue(uuid4())

    @settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(removals=st.lists(st.integers(min_value=0, max_value=7), max_size=5, unique=True))
    def test_removal_preserves_relative_order(self, waitlist_service, removals):
        sku = "ST-34-X-30-RAW"
        for entry in waitlist_service.list_for(sku):
            waitlist_service.dequeue(entry.id)

        entries = [waitlist_service.enqueue(sku, f"O-{n}", 1) for n in range(8)]
        for index in removals:
            waitlist_service.dequeue(entries[index].id)

        expected = [e.order_id for i, e in enumerate(entries) if i not in removals]
        remaining = waitlist_service.list_for(sku)
        assert [e.order_id for e in remaining] == expected
        positions = [e.position for e in remaining]
        assert positions == sorted(positions)


class TestAllocate:

    def test_oldest_compatible_entry_gets_the_item(
        self, waitlist_service, item_service, make_stock_item, deterministic_clock
    ):
        waitlist_service.enqueue(SKU, "O-1", 1)
        deterministic_clock.advance(1)
        waitlist_service.enqueue(SKU, "O-2", 1)
        item = make_stock_item("ST-32-X-36-RAW", origin=ItemOrigin.PRODUCTION)

        allocations = waitlist_service.allocate([item])

        assert [(a.item_id, a.order_id) for a in allocations] == [(item.id, "O-1")]
        committed = item_service.get(item.id)
        assert committed.status2 is ItemAvailability.COMMITTED
        assert committed.order_id == "O-1"
        assert [e.order_id for e in waitlist_service.list_for(SKU)] == ["O-2"]

    def test_partial_quantity_is_decremented(self, waitlist_service, make_stock_item):
        entry = waitlist_service.enqueue(SKU, "O-1", 2)
        item = make_stock_item("ST-32-X-36-RAW", origin=ItemOrigin.PRODUCTION)

        [allocation] = waitlist_service.allocate([item])

        assert allocation.remaining_quantity == 1
        assert waitlist_service.get(entry.id).quantity == 1

    def test_incompatible_items_are_skipped(self, waitlist_service, make_stock_item):
        waitlist_service.enqueue(SKU, "O-1", 1)
        too_short = make_stock_item("ST-32-X-28-RAW")
        wrong_finish = make_stock_item("ST-32-X-36-BRW")

        assert waitlist_service.allocate([too_short, wrong_finish]) == []
        assert len(waitlist_service.list_for(SKU)) == 1

    def test_taken_items_are_skipped(self, waitlist_service, item_service, make_stock_item):
        waitlist_service.enqueue(SKU, "O-1", 1)
        item = make_stock_item("ST-32-X-30-RAW")
        item_service.assign(item.id, "O-9")

        assert waitlist_service.allocate([item_service.get(item.id)]) == []

    def test_item_taken_after_it_was_offered_is_skipped(
        self, waitlist_service, item_service, make_stock_item
    ):
        waitlist_service.enqueue(SKU, "O-1", 1)
        offered = make_stock_item("ST-32-X-30-RAW")
        spare = make_stock_item("ST-32-X-30-RAW")
        item_service.assign(offered.id, "O-9")

        allocations = waitlist_service.allocate([offered, spare])

        assert [a.item_id for a in allocations] == [spare.id]
        assert item_service.get(offered.id).order_id == "O-9"
        assert waitlist_service.list_for(SKU) == []
