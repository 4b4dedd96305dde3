import os

# Keep the app's default engine off the on-disk database during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db import Base
from models import Transaction
from app.deps import get_db
from app.main import app


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def add_transaction(db_session):
    """Insert a transaction row directly and return it."""

    def _add(**overrides):
        values = {
            "owner_id": "user-1",
            "kind": "expense",
            "amount": Decimal("12.99"),
            "category": "Entertainment",
            "description": "Streaming",
            "vendor": "StreamCo",
            "date": datetime(2024, 1, 15),
            "recurring": True,
            "frequency": "monthly",
            "recurring_paused": False,
        }
        values.update(overrides)
        tx = Transaction(**values)
        db_session.add(tx)
        db_session.commit()
        db_session.refresh(tx)
        return tx

    return _add


@pytest.fixture
def client(session_factory):
    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
