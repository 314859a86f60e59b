"""
RequestService: work request creation and the request state machine.
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from fulfillment_kernel.domain.types import Priority, RequestStatus, RequestType
from fulfillment_kernel.exceptions import (
    InvalidTransitionError,
    ItemNotFoundError,
    RequestNotFoundError,
)
from fulfillment_kernel.models.event_log import EventLog


@pytest.fixture
def stock_item(make_stock_item):
    return make_stock_item("ST-32-X-30-RAW")


class TestCreateRequest:

    def test_created_pending(self, request_service, stock_item):
        request = request_service.create_request(
            stock_item.id, RequestType.STOCK_PULL, Priority.HIGH, {"note": "front rack"}
        )
        assert request.status is RequestStatus.PENDING
        assert request.request_type is RequestType.STOCK_PULL
        assert request.priority is Priority.HIGH
        assert request.metadata == {"note": "front rack"}

    def test_unknown_item_rejected(self, request_service):
        with pytest.raises(ItemNotFoundError):
            request_service.create_request("IZZZZ", RequestType.WASHING)

    def test_creation_is_logged_to_event_sink(self, session, request_service, stock_item):
        request = request_service.create_request(stock_item.id, RequestType.QC)
        events = session.scalars(
            select(EventLog).where(EventLog.entity_id == str(request.id))
        ).all()
        assert [e.event_type for e in events] == ["REQUEST_CREATED"]

    def test_list_for_item(self, request_service, stock_item, deterministic_clock):
        first = request_service.create_request(stock_item.id, RequestType.WASHING)
        deterministic_clock.advance(5)
        second = request_service.create_request(stock_item.id, RequestType.QC)
        assert [r.id for r in request_service.list_for_item(stock_item.id)] == [first.id, second.id]


class TestTransitions:

    def test_happy_path(self, request_service, stock_item):
        request = request_service.create_request(stock_item.id, RequestType.WASHING)
        assert request_service.start(request.id).status is RequestStatus.IN_PROGRESS
        assert request_service.complete(request.id).status is RequestStatus.COMPLETED

    def test_fail_and_retry(self, request_service, stock_item):
        request = request_service.create_request(stock_item.id, RequestType.WASHING)
        failed = request_service.fail(request.id, reason="machine down")
        assert failed.status is RequestStatus.FAILED
        assert failed.metadata["failure_reason"] == "machine down"
        assert request_service.retry(request.id).status is RequestStatus.PENDING

    def test_completed_is_terminal(self, request_service, stock_item):
        request = request_service.create_request(stock_item.id, RequestType.WASHING)
        request_service.start(request.id)
        request_service.complete(request.id)
        for target in (RequestStatus.PENDING, RequestStatus.IN_PROGRESS, RequestStatus.FAILED):
            with pytest.raises(InvalidTransitionError):
                request_service.transition(request.id, target)
        assert request_service.get(request.id).status is RequestStatus.COMPLETED

    def test_illegal_transition_leaves_state(self, request_service, stock_item):
        request = request_service.create_request(stock_item.id, RequestType.WASHING)
        with pytest.raises(InvalidTransitionError):
            request_service.complete(request.id)
        assert request_service.get(request.id).status is RequestStatus.PENDING

    def test_transition_merges_metadata(self, request_service, stock_item):
        request = request_service.create_request(
            stock_item.id, RequestType.WASHING, metadata={"order_id": "O-1"}
        )
        updated = request_service.transition(
            request.id, RequestStatus.IN_PROGRESS, {"operator": "sam"}
        )
        assert updated.metadata == {"order_id": "O-1", "operator": "sam"}

    def test_unknown_request(self, request_service):
        with pytest.raises(RequestNotFoundError):
            request_service.start(uuid4())
