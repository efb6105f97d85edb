import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_REDIS", "false")
os.environ.setdefault("ENABLE_CACHING", "false")

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.models.driver import Driver, DriverRole
from app.models.vehicle import Vehicle, VehicleState
from app.schemas.session import SessionContext

# One in-memory database shared by every session and thread
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

T0 = datetime(2026, 3, 2, 8, 0, 0)


class FakeCache:
    """Dict-backed stand-in for RedisClient that remembers each key's expiry."""

    def __init__(self, writable=True):
        self.values = {}
        self.ttls = {}
        self.writable = writable

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value, expire=3600):
        if not self.writable:
            return False
        self.values[key] = value
        self.ttls[key] = expire
        return True

    async def delete(self, key):
        self.ttls.pop(key, None)
        return self.values.pop(key, None) is not None


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def master_ctx():
    return SessionContext(uid="M1", name="Maya Master", role=DriverRole.VEHICLE_MASTER)


@pytest.fixture
def driver_ctx():
    return SessionContext(uid="D1", name="Dan Driver", role=DriverRole.DRIVER)


@pytest.fixture
def other_driver_ctx():
    return SessionContext(uid="D2", name="Dee Driver", role=DriverRole.DRIVER)


@pytest.fixture
def users(db):
    """A master and two drivers without vehicles."""
    rows = [
        Driver(id="M1", name="Maya Master", email="maya@example.com", phone="5550001",
               role=DriverRole.VEHICLE_MASTER, is_active=True),
        Driver(id="D1", name="Dan Driver", email="dan@example.com", phone="5550002",
               role=DriverRole.DRIVER, is_active=True),
        Driver(id="D2", name="Dee Driver", email="dee@example.com", phone="5550003",
               role=DriverRole.DRIVER, is_active=True),
    ]
    db.add_all(rows)
    db.commit()
    return {row.id: row for row in rows}


@pytest.fixture
def make_vehicle(db):
    def _make(vehicle_id, status=VehicleState.AVAILABLE, **fields):
        vehicle = Vehicle(
            id=vehicle_id,
            status=status,
            warehouse=fields.pop("warehouse", "Warehouse A"),
            current_location=fields.pop("current_location", "Warehouse A"),
            **fields,
        )
        db.add(vehicle)
        db.commit()
        db.refresh(vehicle)
        return vehicle
    return _make


@pytest.fixture
def on_trip(db, users, make_vehicle):
    """Build a vehicle already assigned to D1 in the given status."""
    def _make(vehicle_id, status, started_at=T0, reached_at=None):
        users["D1"].current_vehicle_id = vehicle_id
        db.commit()
        return make_vehicle(
            vehicle_id,
            status=status,
            driver_id="D1",
            driver_name="Dan Driver",
            destination="Warehouse B",
            assigned_at=T0 - timedelta(minutes=10),
            started_at=started_at if status != VehicleState.ASSIGNED else None,
            reached_destination_at=reached_at,
        )
    return _make
