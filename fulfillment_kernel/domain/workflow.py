"""
Canonical workflow types (``fulfillment_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines, and the single transition
check every lifecycle uses.  Requests, item availability and production
batches are all expressed as a ``Workflow``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from fulfillment_kernel.exceptions import InvalidTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the owning service does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for an entity lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: ``initial_state`` is a member of ``states``; the graph is
    checked at construction so a malformed workflow cannot be registered.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state} has outgoing "
                    f"transition {t.action}"
                )

    def allowed_targets(self, state: str) -> frozenset[str]:
        return frozenset(t.to_state for t in self.transitions if t.from_state == state)

    def can_transition(self, from_state: str, to_state: str) -> bool:
        return to_state in self.allowed_targets(from_state)

    def find(self, from_state: str, to_state: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None


def state_name(state: str | Enum) -> str:
    return state.value if isinstance(state, Enum) else state


def require_transition(
    workflow: Workflow, entity_type: str, from_state: str | Enum, to_state: str | Enum
) -> Transition:
    """Return the matching transition or raise ``InvalidTransitionError``."""
    source, target = state_name(from_state), state_name(to_state)
    transition = workflow.find(source, target)
    if transition is None:
        raise InvalidTransitionError(entity_type, source, target)
    return transition
