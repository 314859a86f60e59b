"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer: a caller-owned ``Session`` wrapped
    in a ``Repository``, and an injected ``Clock``.

Invariants enforced:
    Services flush within the caller's transaction and never commit or
    rollback the outer transaction themselves.  Atomic sub-steps use
    savepoints.
"""

from abc import ABC

from sqlalchemy.orm import Session

from fulfillment_kernel.db.repository import Repository
from fulfillment_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()``; the caller controls
          transaction boundaries, enabling atomic multi-step operations.

    Non-goals:
        - Query-only methods belong in ``fulfillment_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._repo = Repository(session)
        self._clock = clock or SystemClock()
