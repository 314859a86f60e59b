"""Read-only query selectors."""

from fulfillment_kernel.selectors.base import BaseSelector
from fulfillment_kernel.selectors.inventory_selector import InventorySelector
from fulfillment_kernel.selectors.invariant_selector import (
    InvariantSelector,
    InvariantViolation,
)

__all__ = [
    "BaseSelector",
    "InvariantSelector",
    "InvariantViolation",
    "InventorySelector",
]
