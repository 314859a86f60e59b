"""
Lifecycle Workflows.

State machines for work requests, item availability and production batches.
"""

from fulfillment_kernel.domain.types import (
    BatchStatus,
    ItemAvailability,
    RequestStatus,
)
from fulfillment_kernel.domain.workflow import Guard, Transition, Workflow
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("domain.lifecycles")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

ORDER_PRESENT = Guard(
    name="order_present",
    description="An order id accompanies the transition",
)


# -----------------------------------------------------------------------------
# Request Workflow
# -----------------------------------------------------------------------------

REQUEST_WORKFLOW = Workflow(
    name="request",
    description="Work request processing (wash, pull, production, QC, ...)",
    initial_state=RequestStatus.PENDING.value,
    states=tuple(s.value for s in RequestStatus),
    transitions=(
        Transition("PENDING", "IN_PROGRESS", action="start"),
        Transition("PENDING", "FAILED", action="fail"),
        Transition("IN_PROGRESS", "COMPLETED", action="complete"),
        Transition("IN_PROGRESS", "FAILED", action="fail"),
        Transition("FAILED", "PENDING", action="retry"),
    ),
    terminal_states=("COMPLETED",),
)


# -----------------------------------------------------------------------------
# Item Availability Workflow
# -----------------------------------------------------------------------------

ITEM_AVAILABILITY_WORKFLOW = Workflow(
    name="item_availability",
    description="Commitment of a physical item to an order",
    initial_state=ItemAvailability.UNCOMMITTED.value,
    states=tuple(s.value for s in ItemAvailability),
    transitions=(
        Transition("UNCOMMITTED", "COMMITTED", action="commit", guard=ORDER_PRESENT),
        Transition("COMMITTED", "ASSIGNED", action="assign", guard=ORDER_PRESENT),
        Transition("UNCOMMITTED", "ASSIGNED", action="assign", guard=ORDER_PRESENT),
        Transition("ASSIGNED", "UNCOMMITTED", action="unassign"),
    ),
)


# -----------------------------------------------------------------------------
# Production Batch Workflow
# -----------------------------------------------------------------------------

BATCH_WORKFLOW = Workflow(
    name="production_batch",
    description="Production batch progress on the floor",
    initial_state=BatchStatus.CREATED.value,
    states=tuple(s.value for s in BatchStatus),
    transitions=(
        Transition("CREATED", "IN_PROGRESS", action="start"),
        Transition("IN_PROGRESS", "COMPLETED", action="complete"),
    ),
    terminal_states=("COMPLETED",),
)

logger.info(
    "lifecycle_workflows_defined",
    extra={
        "workflows": [
            REQUEST_WORKFLOW.name,
            ITEM_AVAILABILITY_WORKFLOW.name,
            BATCH_WORKFLOW.name,
        ],
    },
)
