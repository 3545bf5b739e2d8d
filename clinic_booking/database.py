import logging
from contextlib import contextmanager
from threading import Lock
from typing import Iterator

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_booking.core import config
from clinic_booking.core.errors import BookingError, classify_store_error

logger = logging.getLogger(__name__)


WRITE_LOCK_OPTION = 'sqlite_write_lock'


def _install_sqlite_locking(engine: Engine) -> None:
    # SQLite has no SELECT ... FOR UPDATE. Write transactions take the write lock
    # at BEGIN instead, so reservations on the same slot run one at a time.
    # Read-only sessions use a deferred BEGIN and never hold the write lock.
    @event.listens_for(engine, 'connect')
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()

    @event.listens_for(engine, 'begin')
    def _on_begin(connection):
        if connection.get_execution_options().get(WRITE_LOCK_OPTION):
            connection.exec_driver_sql('BEGIN IMMEDIATE')
        else:
            connection.exec_driver_sql('BEGIN')


def build_engine(database_url: str | None = None) -> Engine:
    url = make_url(database_url or config.DATABASE_URL)
    timeout_seconds = config.DB_QUERY_TIMEOUT_MS / 1000

    if url.get_backend_name() == 'sqlite':
        engine_kwargs = {
            'connect_args': {'timeout': timeout_seconds, 'check_same_thread': False},
        }
        if url.database in (None, '', ':memory:'):
            engine_kwargs['poolclass'] = StaticPool
        engine = create_engine(url, echo=config.DB_ECHO, **engine_kwargs)
        _install_sqlite_locking(engine)
        return engine

    connect_args = {}
    if url.get_backend_name() == 'postgresql':
        connect_args['options'] = f'-c statement_timeout={config.DB_QUERY_TIMEOUT_MS}'

    return create_engine(
        url,
        echo=config.DB_ECHO,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_timeout=config.DB_POOL_TIMEOUT_SECONDS,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


engine = build_engine()

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_schema_checked: set[str] = set()


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(session_factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    """Hand out a session for one unit of work and always give its connection back."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit on success, roll back on any failure.

    Store failures are re-raised as the matching ``BookingError`` so callers
    never see a raw SQLAlchemy exception. A session that has not started a
    transaction yet begins one holding the sqlite write lock.
    """
    try:
        if not db.in_transaction():
            db.connection(execution_options={WRITE_LOCK_OPTION: True})
        yield db
        db.commit()
    except BookingError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        raise classify_store_error(exc) from exc
    except Exception:
        db.rollback()
        raise


def ensure_store_schema(bind: Engine | None = None) -> None:
    """Bring tables created by older releases up to the current column set."""
    bind = bind or engine
    key = str(bind.url)

    if key in _schema_checked:
        return

    with _schema_lock:
        if key in _schema_checked:
            return

        inspector = inspect(bind)
        table_names = set(inspector.get_table_names())

        migration_steps = {
            'doctors': [
                ('bio', 'ALTER TABLE doctors ADD COLUMN bio TEXT'),
            ],
            'bookings': [
                ('doctor_id', 'ALTER TABLE bookings ADD COLUMN doctor_id INTEGER'),
                ('user_email', 'ALTER TABLE bookings ADD COLUMN user_email VARCHAR(255)'),
            ],
        }

        # Reflect before opening the write transaction; on sqlite the inspector
        # would otherwise wait on our own lock.
        existing_columns_by_table = {
            table_name: {column['name'] for column in inspector.get_columns(table_name)}
            for table_name in migration_steps
            if table_name in table_names
        }

        with bind.begin() as connection:
            for table_name, existing_columns in existing_columns_by_table.items():
                for column_name, statement in migration_steps[table_name]:
                    if column_name not in existing_columns:
                        logger.info('Adding column %s.%s', table_name, column_name)
                        connection.execute(text(statement))

            if 'slots' in table_names:
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_slots_doctor_start ON slots(doctor_id, start_time)')
                )
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_slots_booked_start ON slots(is_booked, start_time)')
                )
            if 'bookings' in table_names:
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_bookings_status_created ON bookings(status, created_at)')
                )

        _schema_checked.add(key)


def ping(bind: Engine | None = None) -> bool:
    bind = bind or engine
    try:
        with bind.connect() as connection:
            connection.execute(text('SELECT 1'))
        return True
    except SQLAlchemyError:
        logger.exception('Database ping failed')
        return False


def pool_status(bind: Engine | None = None) -> str:
    return (bind or engine).pool.status()


def init_store(bind: Engine | None = None) -> None:
    # Importing the models registers their tables on Base.metadata.
    from clinic_booking.models import booking, doctor, slot  # noqa: F401

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    ensure_store_schema(bind)
    logger.info('Store initialised (%s)', pool_status(bind))


def dispose_store(bind: Engine | None = None) -> None:
    bind = bind or engine
    logger.info('Closing connection pool')
    bind.dispose()
