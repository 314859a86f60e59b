"""
Kernel Invariants Contract.

These invariants are structural law.  No configuration may override them.

This module declares them explicitly.  Enforcement is distributed across the
capacity ledger, item lifecycle, production service and waitlist, and
``InvariantSelector`` audits a database against them.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    BIN_CAPACITY = "bin_capacity"
    """0 <= current_items <= capacity for every bin.  Enforced by
    CapacityLedger compare-and-set updates and a DB check constraint."""

    BIN_LEDGER_CONSISTENCY = "bin_ledger_consistency"
    """current_items equals the number of distinct ids in a bin's item list,
    and each member item points back at the bin."""

    EXCLUSIVE_MEMBERSHIP = "exclusive_membership"
    """An item id appears in at most one bin.  Enforced by CapacityLedger,
    which refuses to assign an item that already has a bin."""

    ASSIGNED_HAS_ORDER = "assigned_has_order"
    """status2 = ASSIGNED implies order_id is set.  Enforced by
    InventoryItemService and a DB check constraint."""

    STOCK_ASSIGNMENT_WASHED = "stock_assignment_washed"
    """Every STOCK item that reached ASSIGNED has a WASHING request.
    Enforced by the wash-on-assignment policy."""

    BATCH_COMPLETENESS = "batch_completeness"
    """An issued batch holds exactly ``quantity`` items, or none.  Enforced
    by ProductionService issuing the whole set in one savepoint."""

    WAITLIST_POSITION_UNIQUE = "waitlist_position_unique"
    """No two live waitlist entries for one SKU share a position.  Enforced
    by WaitlistService and a unique constraint."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)
