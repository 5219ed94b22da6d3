"""
Shared fixtures: in-memory SQLite, a booking factory and an app client
wired to the test session.
"""

import sys
import os
import uuid
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from venue_backend.database import Base
from venue_backend.models.booking import Booking, BookingStatus

NOW = 1_760_000_000
HOUR = 3600
DAY = 24 * HOUR


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def make_booking(db):
    """Insert a booking; timestamps default relative to NOW"""
    def _make(
        status=BookingStatus.PENDING,
        start_date=NOW + 10 * DAY,
        end_date=None,
        email="guest@example.com",
        **kwargs,
    ):
        booking = Booking(
            id=kwargs.pop("id", str(uuid.uuid4())),
            name=kwargs.pop("name", "Test Guest"),
            email=email,
            event_type=kwargs.pop("event_type", "Wedding"),
            start_date=start_date,
            end_date=end_date,
            status=status,
            response_token=kwargs.pop("response_token", uuid.uuid4().hex),
            created_at=kwargs.pop("created_at", NOW - DAY),
            updated_at=kwargs.pop("updated_at", NOW - DAY),
            **kwargs,
        )
        db.add(booking)
        db.commit()
        return booking
    return _make


@pytest.fixture
def transport():
    """Mail transport double; every send succeeds"""
    mock = AsyncMock()
    mock.send = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def client(db, engine, monkeypatch):
    from fastapi.testclient import TestClient
    from venue_backend.main import app
    from venue_backend.database import get_db, get_session_factory
    from venue_backend.services.mail_transport import MailTransport
    from venue_backend.utils.rate_limiter import limiter

    def override_get_db():
        yield db

    monkeypatch.setattr(MailTransport, "send", AsyncMock(return_value=None))
    monkeypatch.setattr(limiter, "enabled", False)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield TestClient(app)
    app.dependency_overrides.clear()
