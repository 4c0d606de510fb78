# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Pytest configuration and shared fixtures.

This module provides test fixtures that are shared across the test suite.

Assumptions:
- Database fixtures use in-memory SQLite with foreign keys enforced
- Each test gets a fresh schema and a fresh TestClient instance
- Dates are passed explicitly and naive, as SQLite hands them back naive
"""
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


BASE_DATE = datetime(2025, 3, 1, 6, 0, 0)


@pytest.fixture
def db_session():
    """Create an in-memory SQLite database for testing.

    Returns:
        Session: SQLAlchemy session

    Assumptions:
    - StaticPool keeps the single connection alive across threads
    - check_same_thread=False allows TestClient to use same connection
    - Session is closed after test
    """
    from pressledger.database.schema import init_db
    from pressledger.database.session import enable_sqlite_foreign_keys

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    enable_sqlite_foreign_keys(engine)

    init_db(engine)

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def actor():
    """Actor attributed with every mutation in a test."""
    from pressledger.models import Actor
    return Actor(id=1, name="Operator")


@pytest.fixture
def make_tool(db_session, actor):
    """Factory creating tools with sensible defaults.

    Example:
        top = make_tool("top", code="G01", press=3)
    """
    from pressledger.tools import create_tool

    counter = {"n": 0}

    def _make(position="top", code=None, width=120, height=60, press=None, tool_type=None):
        counter["n"] += 1
        return create_tool(
            db_session,
            position=position,
            width=width,
            height=height,
            code=code or f"T{counter['n']:02d}",
            actor=actor,
            tool_type=tool_type,
            press=press,
        )

    return _make


@pytest.fixture
def record(db_session, actor):
    """Factory recording readings a fixed number of hours after BASE_DATE.

    Example:
        cycle_id = record(3, tool.id, "top", 100, hours=1)
    """
    from pressledger.cycles import add_cycle

    def _record(press_number, tool_id, position, total_cycles, hours=0):
        return add_cycle(
            db_session,
            press_number=press_number,
            tool_id=tool_id,
            position=position,
            total_cycles=total_cycles,
            actor=actor,
            date=BASE_DATE + timedelta(hours=hours),
        )

    return _record


@pytest.fixture
def actor_headers():
    """Headers identifying the caller of mutating API endpoints."""
    return {"X-Actor-Id": "1", "X-Actor-Name": "Operator"}


@pytest.fixture
def client(db_session):
    """Create test client sharing the same database session.

    Assumptions:
    - Overrides get_db dependency to use shared session
    """
    from pressledger.main import create_app
    from pressledger.api.dependencies import get_db

    app = create_app()

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close, let the fixture handle it

    app.dependency_overrides[get_db] = override_get_db

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
