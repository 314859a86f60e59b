"""
Named business policies.

Each rule that triggers a side effect or derives a value lives here as one
function so it can be found, tested and changed in a single place.
"""

from __future__ import annotations

from fulfillment_kernel.domain.types import (
    ItemAvailability,
    ItemOrigin,
    Priority,
)


def requires_wash_on_assignment(
    origin: ItemOrigin,
    from_state: ItemAvailability,
    to_state: ItemAvailability,
) -> bool:
    """A STOCK item entering ASSIGNED must be washed before it ships.

    PRODUCTION items are finished as part of their batch.
    """
    return (
        origin is ItemOrigin.STOCK
        and to_state is ItemAvailability.ASSIGNED
        and from_state is not ItemAvailability.ASSIGNED
    )


def wash_priority(order_priority: Priority | None) -> Priority:
    """Wash requests inherit the order's priority, MEDIUM by default."""
    return order_priority or Priority.MEDIUM


def production_priority(order_priority: Priority | None, has_order: bool) -> Priority:
    """Production for a waiting order is HIGH unless the order says otherwise."""
    if order_priority is not None:
        return order_priority
    return Priority.HIGH if has_order else Priority.MEDIUM
