"""
Pytest configuration and fixtures

Tests run against an in-memory SQLite database. The schema is created fresh
for every test and dropped afterwards, so nothing leaks between tests.
"""
import os
import sys

# Must be set before core.config is imported anywhere.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_FORMAT", "text")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest  # noqa: E402

from core.database import Base, SessionLocal, engine  # noqa: E402
import models  # noqa: E402,F401
from models import Spot, SpotConfig  # noqa: E402


@pytest.fixture(scope="function")
def db_session():
    """Fresh schema per test; dropped afterwards."""
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def spot(db_session):
    """Coastal spot near Lisbon supporting both sport classes."""
    spot = Spot(
        name="Praia do Guincho",
        latitude=38.70,
        longitude=-9.42,
        timezone="Europe/Lisbon",
        sports=["wingfoil", "surfing"],
    )
    db_session.add(spot)
    db_session.commit()
    return spot


@pytest.fixture
def spot_without_coordinates(db_session):
    spot = Spot(name="Lagoa", timezone="Europe/Lisbon", sports=["wingfoil"])
    db_session.add(spot)
    db_session.commit()
    return spot


@pytest.fixture
def wingfoil_config(db_session, spot):
    config = SpotConfig(
        spot_id=spot.id,
        sport="wingfoil",
        min_speed=15,
        min_gust=18,
        direction_from=315,
        direction_to=45,
    )
    db_session.add(config)
    db_session.commit()
    return config
