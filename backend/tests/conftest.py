"""Pytest configuration and fixtures."""

import datetime as dt
import os
from decimal import Decimal
from typing import Generator

import pytest

# Keep the app's own engine off the working directory
os.environ.setdefault("DB_URL", "sqlite:///:memory:")

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from nightbase.core.db import build_engine
from nightbase.core.deps import get_db
from nightbase.core.locks import SessionLockRegistry
from nightbase.main import app
from nightbase.models.db import Base, BillSettings, PricingPolicy, Profile, Venue
from nightbase.services.session_service import SessionService

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

SESSION_START = dt.datetime(2026, 1, 10, 20, 0, 0)


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def session_start() -> dt.datetime:
    return SESSION_START


@pytest.fixture
def locks() -> SessionLockRegistry:
    return SessionLockRegistry()


@pytest.fixture
def venue(db_session: Session) -> Venue:
    v = Venue(name="Club Aurora")
    db_session.add(v)
    db_session.commit()
    db_session.refresh(v)
    return v


@pytest.fixture
def pricing_policy(db_session: Session, venue: Venue) -> PricingPolicy:
    """Default policy: 60 min set, 30 min extensions at 1000 per guest."""
    p = PricingPolicy(
        venue_id=venue.id,
        name="Standard",
        set_fee=3000,
        set_duration_minutes=60,
        extension_fee=1000,
        extension_duration_minutes=30,
        nomination_fee=5000,
        nomination_set_duration_minutes=60,
        companion_fee=3000,
        companion_set_duration_minutes=60,
        escort_fee=8000,
        escort_set_duration_minutes=90,
        is_default=True,
    )
    db_session.add(p)
    db_session.commit()
    db_session.refresh(p)
    return p


@pytest.fixture
def bill_settings(db_session: Session, venue: Venue) -> BillSettings:
    bs = BillSettings(
        venue_id=venue.id,
        service_rate=Decimal("0.10"),
        tax_rate=Decimal("0.10"),
        rounding_enabled=False,
        rounding_method="round",
        rounding_unit=100,
    )
    db_session.add(bs)
    db_session.commit()
    db_session.refresh(bs)
    return bs


@pytest.fixture
def cast_profile(db_session: Session, venue: Venue) -> Profile:
    p = Profile(venue_id=venue.id, display_name="Mio", role="cast")
    db_session.add(p)
    db_session.commit()
    db_session.refresh(p)
    return p


@pytest.fixture
def guest_profile(db_session: Session, venue: Venue) -> Profile:
    p = Profile(venue_id=venue.id, display_name="Tanaka", role="guest")
    db_session.add(p)
    db_session.commit()
    db_session.refresh(p)
    return p


@pytest.fixture
def open_session(db_session: Session, venue: Venue, pricing_policy: PricingPolicy):
    """An active session started at SESSION_START with one named guest."""
    s = SessionService.create_session(db_session, venue_id=venue.id, start_time=SESSION_START)
    SessionService.add_guest_by_name(db_session, s.id, "Guest A")
    return SessionService.get_session(db_session, s.id)
