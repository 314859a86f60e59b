"""
Lifecycle state machines: requests, item availability, production batches.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from fulfillment_kernel.domain.lifecycles import (
    BATCH_WORKFLOW,
    ITEM_AVAILABILITY_WORKFLOW,
    REQUEST_WORKFLOW,
)
from fulfillment_kernel.domain.types import ItemAvailability, RequestStatus
from fulfillment_kernel.domain.workflow import (
    Transition,
    Workflow,
    require_transition,
    state_name,
)
from fulfillment_kernel.exceptions import InvalidTransitionError

REQUEST_EDGES = {
    ("PENDING", "IN_PROGRESS"),
    ("PENDING", "FAILED"),
    ("IN_PROGRESS", "COMPLETED"),
    ("IN_PROGRESS", "FAILED"),
    ("FAILED", "PENDING"),
}


class TestRequestWorkflow:

    def test_edges_are_exactly_the_legal_graph(self):
        edges = {(t.from_state, t.to_state) for t in REQUEST_WORKFLOW.transitions}
        assert edges == REQUEST_EDGES

    def test_completed_is_terminal(self):
        assert REQUEST_WORKFLOW.allowed_targets("COMPLETED") == frozenset()

    @given(
        st.sampled_from([s.value for s in RequestStatus]),
        st.sampled_from([s.value for s in RequestStatus]),
    )
    def test_require_transition_agrees_with_graph(self, source, target):
        if (source, target) in REQUEST_EDGES:
            assert require_transition(REQUEST_WORKFLOW, "request", source, target).to_state == target
        else:
            with pytest.raises(InvalidTransitionError):
                require_transition(REQUEST_WORKFLOW, "request", source, target)

    def test_error_names_states(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            require_transition(
                REQUEST_WORKFLOW, "request", RequestStatus.COMPLETED, RequestStatus.PENDING
            )
        assert exc_info.value.from_state == "COMPLETED"
        assert exc_info.value.to_state == "PENDING"


class TestItemAvailabilityWorkflow:

    @pytest.mark.parametrize(
        "source,target",
        [
            (ItemAvailability.UNCOMMITTED, ItemAvailability.COMMITTED),
            (ItemAvailability.COMMITTED, ItemAvailability.ASSIGNED),
            (ItemAvailability.UNCOMMITTED, ItemAvailability.ASSIGNED),
            (ItemAvailability.ASSIGNED, ItemAvailability.UNCOMMITTED),
        ],
    )
    def test_legal(self, source, target):
        assert ITEM_AVAILABILITY_WORKFLOW.can_transition(source.value, target.value)

    @pytest.mark.parametrize(
        "source,target",
        [
            (ItemAvailability.ASSIGNED, ItemAvailability.COMMITTED),
            (ItemAvailability.COMMITTED, ItemAvailability.UNCOMMITTED),
            (ItemAvailability.UNCOMMITTED, ItemAvailability.UNCOMMITTED),
        ],
    )
    def test_illegal(self, source, target):
        assert not ITEM_AVAILABILITY_WORKFLOW.can_transition(source.value, target.value)

    def test_order_guard_on_commit_and_assign(self):
        commit = ITEM_AVAILABILITY_WORKFLOW.find("UNCOMMITTED", "COMMITTED")
        unassign = ITEM_AVAILABILITY_WORKFLOW.find("ASSIGNED", "UNCOMMITTED")
        assert commit.guard is not None
        assert unassign.guard is None


class TestBatchWorkflow:

    def test_linear(self):
        assert BATCH_WORKFLOW.allowed_targets("CREATED") == frozenset({"IN_PROGRESS"})
        assert BATCH_WORKFLOW.allowed_targets("IN_PROGRESS") == frozenset({"COMPLETED"})
        assert BATCH_WORKFLOW.allowed_targets("COMPLETED") == frozenset()


class TestWorkflowValidation:

    def test_unknown_state_rejected(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow(
                name="bad",
                description="",
                initial_state="A",
                states=("A",),
                transitions=(Transition("A", "B", action="go"),),
            )

    def test_terminal_with_outgoing_edge_rejected(self):
        with pytest.raises(ValueError, match="terminal"):
            Workflow(
                name="bad",
                description="",
                initial_state="A",
                states=("A", "B"),
                transitions=(Transition("B", "A", action="back"),),
                terminal_states=("B",),
            )

    def test_state_name(self):
        assert state_name(RequestStatus.PENDING) == "PENDING"
        assert state_name("PENDING") == "PENDING"
