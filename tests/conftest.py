"""Shared fixtures: an isolated in-memory store per test and seed helpers."""

import os
from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')

from clinic_booking.core import config  # noqa: E402
from clinic_booking.database import build_engine, init_store  # noqa: E402
from clinic_booking.schemas import CreateDoctorRequest  # noqa: E402
from clinic_booking.services import doctor_service, slot_service  # noqa: E402


@pytest.fixture(autouse=True)
def default_booking_policy(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'BOOKING_INITIAL_STATUS', 'CONFIRMED')
    monkeypatch.setattr(config, 'CANCELLATION_POLICY', 'retain')


@pytest.fixture
def store_engine():
    engine = build_engine('sqlite:///:memory:')
    init_store(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(store_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=store_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def doctor(db):
    return doctor_service.create_doctor(
        db,
        CreateDoctorRequest(name='Dr. Ada Lovelace', specialization='Cardiology', bio='Heart specialist.'),
    )


@pytest.fixture
def slot(db, doctor):
    return slot_service.create_slot(
        db,
        doctor.id,
        datetime(2025, 1, 1, 9, 0),
        datetime(2025, 1, 1, 9, 30),
    )
