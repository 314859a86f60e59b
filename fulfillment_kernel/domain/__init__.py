"""
Pure domain layer.

SKU rules, identifier issuance, workflows, capacity arithmetic, policies and
the frozen snapshots services return.  Nothing here touches the ORM or the
database; time comes from an injected Clock and randomness from an injected
random source.
"""

from fulfillment_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from fulfillment_kernel.domain.sku import SKU, DEFAULT_SKU_RULES, SkuRules, parse
from fulfillment_kernel.domain.types import (
    BatchStatus,
    CapacitySeverity,
    FulfillmentResult,
    ItemAvailability,
    ItemOrigin,
    MatchType,
    Priority,
    RequestStatus,
    RequestType,
)

__all__ = [
    "BatchStatus",
    "CapacitySeverity",
    "Clock",
    "DEFAULT_SKU_RULES",
    "DeterministicClock",
    "FulfillmentResult",
    "ItemAvailability",
    "ItemOrigin",
    "MatchType",
    "Priority",
    "RequestStatus",
    "RequestType",
    "SKU",
    "SkuRules",
    "SystemClock",
    "parse",
]
