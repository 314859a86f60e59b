"""
CapacityLedger: bin definitions, membership and usage.

Verifies:
- 0 <= current_items <= capacity and current_items == |items| after every
  operation
- BinFull leaves bin and item untouched
- Availability checks and optimal placement
"""

import random

import pytest

from fulfillment_kernel.domain.identifiers import IdentifierIssuer
from fulfillment_kernel.domain.types import CapacitySeverity
from fulfillment_kernel.exceptions import (
    BinFullError,
    BinNotFoundError,
    BinsAtCapacityError,
    DuplicateBinIdError,
    ItemAlreadyInBinError,
    NoBinsExistError,
    NotInBinError,
)
from fulfillment_kernel.selectors.invariant_selector import InvariantSelector
from fulfillment_kernel.services import CapacityLedger


def _assert_ledger_consistent(bin_):
    assert 0 <= bin_.current_items <= bin_.capacity
    assert bin_.current_items == len(bin_.items)


class TestCreateBin:

    def test_create(self, make_bin):
        bin_ = make_bin(capacity=25)
        assert bin_.current_items == 0
        assert bin_.items == ()
        assert bin_.id.endswith("-025-STA-1-A")

    @pytest.mark.parametrize("capacity", [0, -1, 1000])
    def test_capacity_bounds(self, capacity_ledger, capacity):
        with pytest.raises(ValueError):
            capacity_ledger.create_bin("STA", "A", "1", capacity)

    def test_id_collision_is_redrawn(self, session, deterministic_clock, event_sink):
        first = CapacityLedger(
            session, deterministic_clock, event_sink,
            issuer=IdentifierIssuer(rng=random.Random(1)),
        ).create_bin("STA", "A", "1", 10)
        second = CapacityLedger(
            session, deterministic_clock, event_sink,
            issuer=IdentifierIssuer(rng=random.Random(1)),
        ).create_bin("STA", "A", "1", 10)
        assert first.id != second.id

    def test_id_collision_budget(self, session, deterministic_clock, event_sink):
        ledger = CapacityLedger(
            session, deterministic_clock, event_sink,
            issuer=IdentifierIssuer(rng=random.Random(1)),
            bin_id_attempts=1,
        )
        ledger.create_bin("STA", "A", "1", 10)
        replay = CapacityLedger(
            session, deterministic_clock, event_sink,
            issuer=IdentifierIssuer(rng=random.Random(1)),
            bin_id_attempts=1,
        )
        with pytest.raises(DuplicateBinIdError):
            replay.create_bin("STA", "A", "1", 10)


class TestMembership:

    def test_assign(self, capacity_ledger, item_service, make_bin, make_stock_item):
        bin_ = make_bin(capacity=2)
        item = make_stock_item("ST-32-X-30-RAW")
        updated = capacity_ledger.assign(item.id, bin_.id)

        assert updated.items == (item.id,)
        assert updated.current_items == 1
        assert item_service.get(item.id).bin_id == bin_.id
        _assert_ledger_consistent(updated)

    def test_bin_full_leaves_state_unchanged(self, capacity_ledger, item_service, make_bin, make_stock_item):
        bin_ = make_bin(capacity=1)
        first = make_stock_item("ST-32-X-30-RAW")
        second = make_stock_item("ST-32-X-30-RAW")
        capacity_ledger.assign(first.id, bin_.id)

        with pytest.raises(BinFullError) as exc_info:
            capacity_ledger.assign(second.id, bin_.id)

        assert exc_info.value.code == "BIN_FULL"
        after = capacity_ledger.get(bin_.id)
        assert after.items == (first.id,)
        assert after.current_items == 1
        assert item_service.get(second.id).bin_id is None

    def test_item_in_one_bin_at_a_time(self, capacity_ledger, make_bin, make_stock_item):
        a = make_bin(capacity=5, rack="A")
        b = make_bin(capacity=5, rack="B")
        item = make_stock_item("ST-32-X-30-RAW")
        capacity_ledger.assign(item.id, a.id)
        with pytest.raises(ItemAlreadyInBinError):
            capacity_ledger.assign(item.id, b.id)
        assert capacity_ledger.get(b.id).current_items == 0

    def test_release(self, capacity_ledger, item_service, make_bin, make_stock_item):
        bin_ = make_bin(capacity=3)
        item = make_stock_item("ST-32-X-30-RAW")
        capacity_ledger.assign(item.id, bin_.id)
        released = capacity_ledger.release(item.id, bin_.id)

        assert released.items == ()
        assert released.current_items == 0
        assert item_service.get(item.id).bin_id is None

    def test_release_not_in_bin(self, capacity_ledger, make_bin, make_stock_item):
        bin_ = make_bin(capacity=3)
        item = make_stock_item("ST-32-X-30-RAW")
        with pytest.raises(NotInBinError):
            capacity_ledger.release(item.id, bin_.id)
        assert capacity_ledger.get(bin_.id).current_items == 0

    def test_move(self, capacity_ledger, item_service, make_bin, make_stock_item):
        a = make_bin(capacity=5, rack="A")
        b = make_bin(capacity=5, rack="B")
        item = make_stock_item("ST-32-X-30-RAW")
        capacity_ledger.assign(item.id, a.id)
        capacity_ledger.move(item.id, b.id)

        assert capacity_ledger.get(a.id).items == ()
        assert capacity_ledger.get(b.id).items == (item.id,)
        assert item_service.get(item.id).bin_id == b.id

    def test_move_into_full_bin_keeps_original_membership(
        self, capacity_ledger, item_service, make_bin, make_stock_item
    ):
        a = make_bin(capacity=5, rack="A")
        b = make_bin(capacity=1, rack="B")
        item = make_stock_item("ST-32-X-30-RAW")
        blocker = make_stock_item("ST-32-X-30-RAW")
        capacity_ledger.assign(item.id, a.id)
        capacity_ledger.assign(blocker.id, b.id)

        with pytest.raises(BinFullError):
            capacity_ledger.move(item.id, b.id)

        assert capacity_ledger.get(a.id).items == (item.id,)
        assert item_service.get(item.id).bin_id == a.id

    def test_unknown_bin(self, capacity_ledger, make_stock_item):
        item = make_stock_item("ST-32-X-30-RAW")
        with pytest.raises(BinNotFoundError):
            capacity_ledger.assign(item.id, "000-010-STA-1-A")

    def test_fill_and_drain_keeps_invariants(self, session, capacity_ledger, make_bin, make_stock_item):
        bin_ = make_bin(capacity=4)
        items = [make_stock_item("ST-32-X-30-RAW") for _ in range(4)]
        for item in items:
            _assert_ledger_consistent(capacity_ledger.assign(item.id, bin_.id))
        for item in items[::2]:
            _assert_ledger_consistent(capacity_ledger.release(item.id, bin_.id))
        assert InvariantSelector(session).find_violations() == []


class TestAvailabilityAndUsage:

    def test_no_bins(self, capacity_ledger):
        with pytest.raises(NoBinsExistError):
            capacity_ledger.validate_availability()

    def test_all_full(self, capacity_ledger, make_bin, make_stock_item):
        bin_ = make_bin(capacity=1)
        capacity_ledger.assign(make_stock_item("ST-32-X-30-RAW").id, bin_.id)
        with pytest.raises(BinsAtCapacityError):
            capacity_ledger.validate_availability()

    def test_usage(self, capacity_ledger, make_bin, make_stock_item):
        bin_ = make_bin(capacity=10)
        for _ in range(9):
            capacity_ledger.assign(make_stock_item("ST-32-X-30-RAW").id, bin_.id)
        usage = capacity_ledger.usage(bin_.id)
        assert usage.ratio == pytest.approx(0.9)
        assert usage.severity is CapacitySeverity.CRITICAL
        assert capacity_ledger.usage_ratio(bin_.id) == pytest.approx(0.9)

    def test_usage_report_flags_loaded_bins(self, capacity_ledger, make_bin, make_stock_item, captured_logs):
        busy = make_bin(capacity=4, rack="A")
        make_bin(capacity=4, rack="B")
        for _ in range(3):
            capacity_ledger.assign(make_stock_item("ST-32-X-30-RAW").id, busy.id)

        report = {u.bin_id: u.severity for u in capacity_ledger.usage_report()}
        assert report[busy.id] is CapacitySeverity.NEAR_CAPACITY
        flagged = [r for r in captured_logs() if r["message"] == "bin_capacity_flagged"]
        assert [r["bin_id"] for r in flagged] == [busy.id]

    def test_place_item_prefers_same_sku(self, capacity_ledger, make_bin, make_stock_item):
        a = make_bin(capacity=10, rack="A")
        b = make_bin(capacity=10, rack="B")
        first = make_stock_item("ST-32-X-30-RAW")
        capacity_ledger.assign(first.id, b.id)

        second = make_stock_item("ST-32-X-30-RAW")
        assert capacity_ledger.place_item(second.id).id == b.id

        other = make_stock_item("ST-30-X-30-RAW")
        assert capacity_ledger.place_item(other.id).id == a.id
