"""Database layer: declarative base, engine/session management, repository."""

from fulfillment_kernel.db.base import Base, TrackedBase, UUIDString
from fulfillment_kernel.db.engine import (
    build_engine,
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    run_in_transaction,
    session_scope,
)
from fulfillment_kernel.db.repository import Repository

__all__ = [
    "Base",
    "Repository",
    "TrackedBase",
    "UUIDString",
    "build_engine",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "run_in_transaction",
    "session_scope",
]
