"""
Capacity arithmetic (``fulfillment_kernel.domain.capacity``).

Responsibility:
    Pure bin-capacity rules: usage ratio, severity classification, the
    availability precheck and optimal bin choice for placing an item.

Architecture position:
    Kernel > Domain.  Operates on ``BinSnapshot`` values.  ZERO I/O.

Invariants enforced:
    - A full bin is never chosen for placement.

Failure modes:
    - NoBinsExistError / BinsAtCapacityError from ``validate_availability``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from fulfillment_kernel.domain.types import BinSnapshot, BinUsage, CapacitySeverity
from fulfillment_kernel.exceptions import BinsAtCapacityError, NoBinsExistError


@dataclass(frozen=True)
class CapacityThresholds:
    """Usage ratios at which a bin is flagged."""

    near_capacity: float = 0.70
    critical: float = 0.90

    def __post_init__(self) -> None:
        if not 0.0 < self.near_capacity <= self.critical <= 1.0:
            raise ValueError(
                "thresholds must satisfy 0 < near_capacity <= critical <= 1"
            )


DEFAULT_THRESHOLDS = CapacityThresholds()


def usage_ratio(current_items: int, capacity: int) -> float:
    """Fraction of the bin in use, in [0, 1]."""
    if capacity <= 0:
        raise ValueError(f"capacity must be positive, got {capacity}")
    return min(1.0, max(0.0, current_items / capacity))


def classify(ratio: float, thresholds: CapacityThresholds = DEFAULT_THRESHOLDS) -> CapacitySeverity:
    if ratio <= 0.0:
        return CapacitySeverity.EMPTY
    if ratio >= thresholds.critical:
        return CapacitySeverity.CRITICAL
    if ratio >= thresholds.near_capacity:
        return CapacitySeverity.NEAR_CAPACITY
    return CapacitySeverity.NORMAL


def bin_usage(bin_: BinSnapshot, thresholds: CapacityThresholds = DEFAULT_THRESHOLDS) -> BinUsage:
    ratio = usage_ratio(bin_.current_items, bin_.capacity)
    return BinUsage(
        bin_id=bin_.id,
        current_items=bin_.current_items,
        capacity=bin_.capacity,
        ratio=ratio,
        severity=classify(ratio, thresholds),
    )


def validate_availability(bins: Sequence[BinSnapshot]) -> None:
    """Raise unless at least one bin exists and one has free space."""
    if not bins:
        raise NoBinsExistError()
    if all(b.is_full for b in bins):
        raise BinsAtCapacityError(len(bins))


def choose_bin(bins: Sequence[BinSnapshot], sku: str) -> BinSnapshot:
    """Pick the bin an item of ``sku`` should go into.

    Preference order:
      1. a non-full bin already holding ``sku`` (keeps like items together),
      2. otherwise the non-full bin with the most free space.
    Ties are broken by bin id so the choice is deterministic.
    """
    validate_availability(bins)
    open_bins = [b for b in bins if not b.is_full]
    same_sku = [b for b in open_bins if sku in b.skus]
    pool = same_sku or open_bins
    return sorted(pool, key=lambda b: (-b.available_space, b.id))[0]
