from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tenant_scheduler.auth.identity import Identity, Role
from tenant_scheduler.core.config import Settings
from tenant_scheduler.database import Base
from tenant_scheduler.models.appointment import Appointment
from tenant_scheduler.services.appointment_store import AppointmentStore


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url='sqlite://', jwt_secret_key='test-secret-key-for-tenant-scheduler-suite')


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=[Appointment.__table__])
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine, tables=[Appointment.__table__])
        engine.dispose()


@pytest.fixture
def store(session_factory, settings: Settings, clock: FakeClock) -> AppointmentStore:
    return AppointmentStore(session_factory, settings, clock=clock)


@pytest.fixture
def owner() -> Identity:
    return Identity(user_id='u1', tenant_id='t1', role=Role.USER)


@pytest.fixture
def other_user() -> Identity:
    return Identity(user_id='u2', tenant_id='t1', role=Role.USER)


@pytest.fixture
def tenant_admin() -> Identity:
    return Identity(user_id='admin1', tenant_id='t1', role=Role.TENANT_ADMIN)


@pytest.fixture
def super_admin() -> Identity:
    return Identity(user_id='root', tenant_id='ops', role=Role.SUPER_ADMIN)


@pytest.fixture
def sync_fields() -> dict:
    return {
        'title': 'Sync',
        'startTime': '2024-06-01T10:00:00Z',
        'endTime': '2024-06-01T10:30:00Z',
    }
