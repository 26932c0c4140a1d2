import os

# Keep the app's own engine off the working directory during tests
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timedelta

import pytest
import pytz
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from admission import AdmissionController
from crud import ReservationStore, create_spot, get_spot_constraints
from database import Base, get_db, make_engine
from lifecycle import LifecycleManager
from schemas.spotSchema import ParkingSpotCreate

# 2030-01-07 is a Monday
MONDAY = datetime(2030, 1, 7, tzinfo=pytz.utc)
SATURDAY = MONDAY + timedelta(days=5)
NOW = MONDAY.replace(hour=6)

OWNER_ID = "owner-1"
DRIVER_ID = "driver-1"


def at(hour, minute=0, day=MONDAY):
    return day.replace(hour=hour, minute=minute)


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'booking.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def store(db):
    return ReservationStore(db)


@pytest.fixture
def spot(db):
    """Weekday spot open 08:00-18:00 at 4.00 an hour."""
    return create_spot(db, ParkingSpotCreate(
        owner_id=OWNER_ID,
        name="Station Road driveway",
        city="Leeds",
        price_per_hour=4.0,
        available_days=["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
        time_slots=[{"start": "08:00", "end": "18:00"}],
    ))


@pytest.fixture
def constraints(db, spot):
    return get_spot_constraints(db, spot.id)


@pytest.fixture
def admission(store, clock):
    return AdmissionController(store, clock=clock)


@pytest.fixture
def lifecycle(store, clock):
    return LifecycleManager(
        store,
        payment_wait=timedelta(minutes=15),
        cancellation_grace=timedelta(minutes=60),
        clock=clock,
    )


@pytest.fixture
def client(session_factory, clock):
    from main import app
    from routers.reservations import get_clock

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    yield TestClient(app)

    app.dependency_overrides.clear()
