import sqlite3

import pytest
from sqlalchemy import exc as sa_exc
from sqlalchemy import inspect, text
from sqlalchemy.orm import sessionmaker

from clinic_booking.core import config, errors
from clinic_booking.database import build_engine, ensure_store_schema, init_store, ping, session_scope, transaction
from clinic_booking.models.doctor import Doctor
from clinic_booking.services import doctor_service


def test_ensure_store_schema_adds_missing_columns_to_legacy_tables(tmp_path) -> None:
    engine = build_engine(f"sqlite:///{tmp_path / 'legacy.db'}")
    try:
        with engine.begin() as connection:
            connection.execute(text('CREATE TABLE doctors (id INTEGER PRIMARY KEY, name VARCHAR, specialization VARCHAR)'))
            connection.execute(
                text('CREATE TABLE bookings (id INTEGER PRIMARY KEY, slot_id INTEGER, user_name VARCHAR, '
                     'status VARCHAR, created_at DATETIME)')
            )

        ensure_store_schema(engine)

        inspector = inspect(engine)
        assert 'bio' in {column['name'] for column in inspector.get_columns('doctors')}
        booking_columns = {column['name'] for column in inspector.get_columns('bookings')}
        assert {'doctor_id', 'user_email'} <= booking_columns
        assert 'idx_bookings_status_created' in {index['name'] for index in inspector.get_indexes('bookings')}
    finally:
        engine.dispose()


def test_transaction_rolls_back_and_reraises_booking_errors(session_factory) -> None:
    with session_scope(session_factory) as db:
        with pytest.raises(errors.ConflictError):
            with transaction(db):
                db.add(Doctor(name='Dr. Rollback', specialization='Undo'))
                db.flush()
                raise errors.ConflictError()

        assert db.query(Doctor).count() == 0


def test_transaction_classifies_store_failures(session_factory) -> None:
    with session_scope(session_factory) as db:
        with pytest.raises(errors.ValidationError):
            with transaction(db):
                db.add(Doctor(name=None, specialization='Missing name'))
                db.flush()


def test_ping_reports_healthy_store(store_engine) -> None:
    assert ping(store_engine) is True


@pytest.fixture
def file_session_factory(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(config, 'DB_QUERY_TIMEOUT_MS', 200)
    engine = build_engine(f"sqlite:///{tmp_path / 'locks.db'}")
    init_store(engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


def test_sqlite_readers_share_the_store(file_session_factory) -> None:
    with session_scope(file_session_factory) as first, session_scope(file_session_factory) as second:
        assert doctor_service.list_doctors(first) == []
        assert first.in_transaction()

        assert doctor_service.list_doctors(second) == []


def test_sqlite_write_transactions_exclude_each_other(file_session_factory) -> None:
    with session_scope(file_session_factory) as writer, session_scope(file_session_factory) as other:
        with transaction(writer):
            writer.add(Doctor(name='Dr. First', specialization='Queue'))
            writer.flush()

            with pytest.raises(errors.StoreTimeoutError):
                with transaction(other):
                    other.add(Doctor(name='Dr. Second', specialization='Queue'))

        assert [doctor.name for doctor in doctor_service.list_doctors(other)] == ['Dr. First']


def _operational_error(message: str) -> sa_exc.OperationalError:
    return sa_exc.OperationalError('SELECT 1', {}, sqlite3.OperationalError(message))


@pytest.mark.parametrize(
    ('store_error', 'expected'),
    [
        (sa_exc.IntegrityError('INSERT', {}, sqlite3.IntegrityError('FOREIGN KEY constraint failed')),
         errors.ValidationError),
        (sa_exc.TimeoutError('QueuePool limit reached'), errors.PoolExhaustionError),
        (_operational_error('database is locked'), errors.StoreTimeoutError),
        (_operational_error('canceling statement due to statement timeout'), errors.StoreTimeoutError),
        (_operational_error('could not connect to server'), errors.StoreUnavailableError),
        (sa_exc.NoSuchTableError('slots'), errors.StoreError),
    ],
)
def test_classify_store_error_maps_taxonomy(store_error: Exception, expected: type) -> None:
    classified = errors.classify_store_error(store_error)

    assert type(classified) is expected


def test_store_errors_do_not_leak_details() -> None:
    classified = errors.classify_store_error(_operational_error('password authentication failed for user "x"'))

    assert classified.status_code == 503
    assert 'password' not in classified.message
