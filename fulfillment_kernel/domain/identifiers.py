"""
Identifier Issuer (``fulfillment_kernel.domain.identifiers``).

Responsibility:
    Draws short human-readable ids for inventory items (``I`` + 4 symbols),
    storage bins (``NNN-CCC-ZONE-SHELF-RACK``) and production batches
    (``batch_`` + 8 symbols).

Architecture position:
    Kernel > Domain.  Pure apart from the injected random source; callers
    supply the set of ids already in use.

Invariants enforced:
    - Issued item ids are not members of ``existing_ids``.
    - The collision retry loop is bounded; it never spins forever.

Failure modes:
    - ExhaustedKeyspaceError when the attempt budget is spent or the
      keyspace is already full.
"""

from __future__ import annotations

import math
import random
from collections.abc import Collection
from dataclasses import dataclass

from fulfillment_kernel.exceptions import ExhaustedKeyspaceError

ID_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


@dataclass(frozen=True)
class IdentifierPolicy:
    """Shape of issued ids and the retry budget.

    The attempt budget for one item id is ``retry_multiplier`` times the
    expected number of draws needed to hit a free id at the current
    occupancy (``1 / (1 - occupied / keyspace)``), floored at
    ``min_attempts`` and capped at ``max_attempts``.
    """

    alphabet: str = ID_ALPHABET
    item_prefix: str = "I"
    item_length: int = 4
    batch_prefix: str = "batch_"
    batch_length: int = 8
    bin_disambiguator_min: int = 100
    bin_disambiguator_max: int = 999
    retry_multiplier: int = 10
    min_attempts: int = 10
    max_attempts: int = 10_000

    def __post_init__(self) -> None:
        if len(set(self.alphabet)) != len(self.alphabet) or not self.alphabet:
            raise ValueError("alphabet must be non-empty with distinct symbols")
        if self.item_length <= 0 or self.batch_length <= 0:
            raise ValueError("id lengths must be positive")
        if self.min_attempts <= 0 or self.max_attempts < self.min_attempts:
            raise ValueError("attempt bounds must satisfy 0 < min <= max")
        if self.bin_disambiguator_min > self.bin_disambiguator_max:
            raise ValueError("bin disambiguator range is empty")

    @property
    def item_keyspace(self) -> int:
        return len(self.alphabet) ** self.item_length


def attempt_budget(occupied: int, keyspace: int, policy: IdentifierPolicy) -> int:
    """Number of draws allowed before giving up.  Zero when the space is full."""
    if occupied >= keyspace:
        return 0
    expected = 1.0 / (1.0 - occupied / keyspace)
    budget = math.ceil(policy.retry_multiplier * expected)
    return max(policy.min_attempts, min(policy.max_attempts, budget))


class IdentifierIssuer:
    """
    Draws ids from an injected random source.

    Contract:
        ``rng`` is any ``random.Random``; tests pass a seeded one.  The
        default is ``random.SystemRandom``.

    Non-goals:
        Bin and batch ids are only probabilistically unique; callers check
        them against the repository before persisting.
    """

    def __init__(
        self,
        policy: IdentifierPolicy | None = None,
        rng: random.Random | None = None,
    ):
        self._policy = policy or IdentifierPolicy()
        self._rng = rng or random.SystemRandom()

    @property
    def policy(self) -> IdentifierPolicy:
        return self._policy

    def _draw(self, length: int) -> str:
        return "".join(self._rng.choice(self._policy.alphabet) for _ in range(length))

    def new_item_id(self, existing_ids: Collection[str]) -> str:
        """Issue an item id not present in ``existing_ids``.

        Raises:
            ExhaustedKeyspaceError: budget spent, or keyspace already full.
        """
        prefix = self._policy.item_prefix
        keyspace = self._policy.item_keyspace
        occupied = sum(
            1
            for existing in existing_ids
            if existing.startswith(prefix)
            and len(existing) == len(prefix) + self._policy.item_length
        )
        budget = attempt_budget(occupied, keyspace, self._policy)
        for _ in range(budget):
            candidate = prefix + self._draw(self._policy.item_length)
            if candidate not in existing_ids:
                return candidate
        raise ExhaustedKeyspaceError(budget, occupied, keyspace)

    def new_item_ids(self, count: int, existing_ids: Collection[str]) -> tuple[str, ...]:
        """Issue ``count`` ids distinct from each other and from ``existing_ids``."""
        taken = set(existing_ids)
        issued: list[str] = []
        for _ in range(count):
            item_id = self.new_item_id(taken)
            taken.add(item_id)
            issued.append(item_id)
        return tuple(issued)

    def new_bin_id(self, capacity: int, zone: str, shelf: str, rack: str) -> str:
        """``NNN-CCC-ZONE-SHELF-RACK``, e.g. ``123-025-STA-1-A``."""
        disambiguator = self._rng.randint(
            self._policy.bin_disambiguator_min, self._policy.bin_disambiguator_max
        )
        return f"{disambiguator}-{capacity:03d}-{zone}-{shelf}-{rack}"

    def new_batch_id(self) -> str:
        return self._policy.batch_prefix + self._draw(self._policy.batch_length)
