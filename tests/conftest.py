"""
Pytest fixtures for the fulfillment kernel test suite.

Provides:
- An in-memory SQLite session per test (tables created fresh)
- A deterministic clock and a seeded identifier issuer
- Services wired to a database-backed event sink
- Item and bin factories

Environment Variables:
- TEST_DATABASE_URL: database URL for the suite.  Defaults to in-memory
  SQLite; point it at PostgreSQL to run the ``postgres`` marked tests.
"""

import json
import logging
import os
import random
from datetime import datetime, timezone
from io import StringIO

import pytest
from sqlalchemy.orm import sessionmaker

from fulfillment_kernel.db.engine import build_engine, create_tables, drop_tables
from fulfillment_kernel.domain.clock import DeterministicClock
from fulfillment_kernel.domain.identifiers import IdentifierIssuer
from fulfillment_kernel.domain.types import ItemOrigin
from fulfillment_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from fulfillment_kernel.services import (
    CapacityLedger,
    DatabaseEventSink,
    FulfillmentService,
    InventoryItemService,
    ProductionService,
    RequestService,
    WaitlistService,
)

DEFAULT_TEST_URL = "sqlite://"

FIXED_NOW = datetime(2026, 2, 1, 12, 0, 0, tzinfo=timezone.utc)


def get_database_url() -> str:
    return os.environ.get("TEST_DATABASE_URL", DEFAULT_TEST_URL)


def pytest_collection_modifyitems(config, items):
    """Skip ``postgres`` tests unless the suite runs against PostgreSQL."""
    if get_database_url().startswith("postgresql"):
        return
    skip = pytest.mark.skip(reason="requires TEST_DATABASE_URL pointing at PostgreSQL")
    for item in items:
        if "postgres" in item.keywords:
            item.add_marker(skip)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture fulfillment_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, fulfillment):
            fulfillment.fulfill("ST-32-X-30-RAW", "O-1")
            logs = captured_logs()
            assert any(r["message"] == "fulfillment_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("fulfillment_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    eng = build_engine(get_database_url())
    create_tables(eng)
    yield eng
    drop_tables(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Domain collaborators
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def issuer():
    return IdentifierIssuer(rng=random.Random(20260201))


@pytest.fixture
def event_sink(session, deterministic_clock):
    return DatabaseEventSink(session, deterministic_clock)


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def request_service(session, deterministic_clock, event_sink):
    return RequestService(session, deterministic_clock, event_sink)


@pytest.fixture
def item_service(session, deterministic_clock, event_sink, issuer, request_service):
    return InventoryItemService(
        session, deterministic_clock, event_sink, issuer=issuer, requests=request_service
    )


@pytest.fixture
def capacity_ledger(session, deterministic_clock, event_sink, issuer):
    return CapacityLedger(session, deterministic_clock, event_sink, issuer=issuer)


@pytest.fixture
def production_service(session, deterministic_clock, event_sink, issuer):
    return ProductionService(session, deterministic_clock, event_sink, issuer=issuer)


@pytest.fixture
def waitlist_service(session, deterministic_clock, event_sink, item_service):
    return WaitlistService(session, deterministic_clock, event_sink, items=item_service)


@pytest.fixture
def fulfillment(
    session,
    deterministic_clock,
    event_sink,
    item_service,
    production_service,
    waitlist_service,
):
    return FulfillmentService(
        session,
        deterministic_clock,
        event_sink,
        items=item_service,
        production=production_service,
        waitlist=waitlist_service,
    )


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_stock_item(item_service, deterministic_clock):
    """
    Create a STOCK / UNCOMMITTED item.  The clock advances one second per
    item so creation order is also ``created_at`` order.
    """

    def _make(sku: str, item_id: str | None = None, origin: ItemOrigin = ItemOrigin.STOCK):
        deterministic_clock.advance(1)
        return item_service.create_item(sku, origin, item_id=item_id)

    return _make


@pytest.fixture
def make_bin(capacity_ledger):
    def _make(capacity: int = 10, zone: str = "STA", rack: str = "A", shelf: str = "1"):
        return capacity_ledger.create_bin(zone, rack, shelf, capacity)

    return _make
