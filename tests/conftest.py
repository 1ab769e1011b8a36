"""
Pytest fixtures for the mill ledger test suite.

Provides:
- A fresh in-memory SQLite database per test, with every table created
- Seeded company / inventory item fixtures
- A deterministic clock (2024-01-01 12:00 UTC)
- Captured structured logs
- A FastAPI TestClient wired to the test database
- PostgreSQL engine and per-thread session factory for tests marked
  ``postgres`` (skipped unless DATABASE_URL names a PostgreSQL server)

SQLite notes:
    The in-memory engine uses a single shared connection.  A test must not
    hold an open transaction on its own session while it calls the API;
    seed fixtures commit before returning.
"""

import json
import logging
import os
import threading
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from mill_api import create_app
from mill_config import MillConfig
from mill_kernel.db.base import Base
from mill_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from mill_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from mill_kernel.domain.clock import DeterministicClock
from mill_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from mill_kernel.models import Company, InventoryItem, InventoryLocation
from mill_modules.scrap import MoveToScrapRequest, ScrapReason, ScrapService

# Test actor ID for all test operations
TEST_ACTOR_ID = UUID("00000000-0000-4000-a000-0000000000aa")


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
    Capture mill_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, scrap_service):
            scrap_service.move_to_scrap(...)
            logs = captured_logs()
            assert any(r["message"] == "scrap_moved" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("mill_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Per-test in-memory database with all tables and append-only guards."""
    engine = init_engine_from_url("sqlite://")
    create_tables()
    register_immutability_listeners()
    yield engine
    unregister_immutability_listeners()
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing."""
    sess = get_session()
    yield sess
    sess.close()


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


# =============================================================================
# Seed data
# =============================================================================


def make_company(session: Session, code: str | None, name: str) -> Company:
    company = Company(company_code=code, name=name, created_by_id=TEST_ACTOR_ID)
    session.add(company)
    session.commit()
    return company


def make_item(
    session: Session,
    company: Company,
    item_code: str = "FAB-001",
    current_stock: Decimal = Decimal("50"),
    cost_price: Decimal | None = Decimal("2.5"),
    average_cost: Decimal = Decimal("2"),
    warehouse_id: str | None = None,
    location_quantity: Decimal = Decimal("0"),
) -> InventoryItem:
    item = InventoryItem(
        company_id=company.id,
        item_code=item_code,
        item_name=f"Greige fabric {item_code}",
        unit="m",
        cost_price=cost_price,
        average_cost=average_cost,
        current_stock=current_stock,
        available_stock=current_stock,
        reserved_stock=Decimal("0"),
        total_value=current_stock * average_cost,
        batch_number="B-77",
        lot_number="LOT-ITEM",
        created_by_id=TEST_ACTOR_ID,
    )
    if warehouse_id is not None:
        item.locations.append(
            InventoryLocation(
                warehouse_id=warehouse_id,
                warehouse_name=f"Warehouse {warehouse_id}",
                quantity=location_quantity,
                created_by_id=TEST_ACTOR_ID,
            )
        )
    session.add(item)
    session.commit()
    return item


@pytest.fixture
def company_factory(session):
    """Create and commit a company: ``company_factory(code, name)``."""

    def _make(code: str | None, name: str) -> Company:
        return make_company(session, code, name)

    return _make


@pytest.fixture
def item_factory(session):
    """Create and commit an inventory item: ``item_factory(company, **fields)``."""

    def _make(company: Company, **fields) -> InventoryItem:
        return make_item(session, company, **fields)

    return _make


@pytest.fixture
def company(session) -> Company:
    return make_company(session, "ACME", "Acme Textiles")


@pytest.fixture
def other_company(session) -> Company:
    return make_company(session, "OTHR", "Other Mills")


@pytest.fixture
def item(session, company) -> InventoryItem:
    """Inventory item with 50 in stock, cost price 2.5, average cost 2."""
    return make_item(session, company)


@pytest.fixture
def other_item(session, other_company) -> InventoryItem:
    return make_item(session, other_company, item_code="OTH-001")


# =============================================================================
# Scrap fixtures
# =============================================================================


@pytest.fixture
def scrap_service(session, deterministic_clock) -> ScrapService:
    return ScrapService(session, deterministic_clock)


@pytest.fixture
def move(scrap_service, test_actor_id):
    """
    Move stock to scrap with sensible defaults.

    Usage::

        record = move(item, "10", scrap_reason="defective")
    """

    def _move(item: InventoryItem, quantity="10", scrap_reason="damaged", **fields):
        request = MoveToScrapRequest(
            quantity=Decimal(quantity),
            scrap_reason=ScrapReason(scrap_reason),
            **fields,
        )
        return scrap_service.move_to_scrap(item.id, request, test_actor_id, item.company_id)

    return _move


# =============================================================================
# HTTP fixtures
# =============================================================================


@pytest.fixture
def app(db_engine, deterministic_clock):
    return create_app(
        config=MillConfig(),
        session_factory=get_session_factory(),
        clock=deterministic_clock,
    )


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def tenant_headers(company, test_actor_id) -> dict[str, str]:
    return {"X-Company-Id": str(company.id), "X-User-Id": str(test_actor_id)}


@pytest.fixture
def random_id() -> str:
    return str(uuid4())


# =============================================================================
# PostgreSQL fixtures (real commits, TRUNCATE cleanup)
# =============================================================================


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "postgres: needs a PostgreSQL server named by DATABASE_URL"
    )


def _truncate_all_tables(engine) -> None:
    names = ", ".join(t.name for t in reversed(Base.metadata.sorted_tables))
    with engine.connect() as conn:
        conn.execute(text(f"TRUNCATE {names} CASCADE"))
        conn.commit()


@pytest.fixture
def pg_engine():
    """
    Engine on the PostgreSQL database in ``DATABASE_URL``.

    Skips the test when the variable is unset, names another backend, or the
    server cannot be reached.  Tables are truncated afterwards.
    """
    url = os.environ.get("DATABASE_URL", "")
    if not url.startswith("postgresql"):
        pytest.skip("DATABASE_URL does not name a PostgreSQL database")

    engine = init_engine_from_url(url)
    try:
        create_tables()
    except OperationalError as exc:
        reset_engine()
        pytest.skip(f"PostgreSQL not reachable: {exc.orig}")
    _truncate_all_tables(engine)
    register_immutability_listeners()
    yield engine
    unregister_immutability_listeners()
    _truncate_all_tables(engine)
    reset_engine()


@pytest.fixture
def pg_session_factory(pg_engine):
    """
    Session factory for worker threads.

    Every session it hands out is rolled back and closed at teardown; sessions
    requested after teardown started raise RuntimeError.
    """
    factory = get_session_factory()
    created: list[Session] = []
    lock = threading.Lock()
    closed = False

    def tracked() -> Session:
        with lock:
            if closed:
                raise RuntimeError("pg_session_factory closed")
            sess = factory()
            created.append(sess)
            return sess

    yield tracked

    with lock:
        closed = True
    for sess in created:
        sess.rollback()
        sess.close()


@pytest.fixture
def pg_company(pg_session_factory) -> Company:
    """Company ACME, committed so worker threads can see it."""
    return make_company(pg_session_factory(), "ACME", "Acme Textiles")


@pytest.fixture
def pg_item_factory(pg_session_factory):
    """Committed inventory items: ``pg_item_factory(company, **fields)``."""
    seed = pg_session_factory()

    def _make(company: Company, **fields) -> InventoryItem:
        return make_item(seed, company, **fields)

    return _make
