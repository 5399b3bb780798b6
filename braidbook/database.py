import logging
from contextlib import contextmanager
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from braidbook.core import config, errors

logger = logging.getLogger(__name__)


def build_engine(database_url: str, **kwargs):
    if database_url.startswith('sqlite'):
        # Request handlers run in a thread pool; each one gets its own session.
        connect_args = kwargs.pop('connect_args', {})
        connect_args.setdefault('check_same_thread', False)
        connect_args.setdefault('timeout', 30)
        kwargs['connect_args'] = connect_args
    return create_engine(database_url, **kwargs)


engine = build_engine(config.DATABASE_URL, echo=config.SQL_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_availability_schema_checked = False
_booking_schema_checked = False


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(engine)

        if 'availability_slots' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('availability_slots')}
        migration_steps = [
            ('created_at', 'ALTER TABLE availability_slots ADD COLUMN created_at TIMESTAMP'),
            ('updated_at', 'ALTER TABLE availability_slots ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_slots_provider_date ON availability_slots(provider_id, slot_date)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_slots_booked_date ON availability_slots(is_booked, slot_date)')
            )

        _availability_schema_checked = True


def ensure_booking_schema() -> None:
    global _booking_schema_checked

    if _booking_schema_checked:
        return

    with _schema_lock:
        if _booking_schema_checked:
            return

        inspector = inspect(engine)

        if 'bookings' not in inspector.get_table_names():
            _booking_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('bookings')}
        migration_steps = [
            ('notes', 'ALTER TABLE bookings ADD COLUMN notes VARCHAR'),
            ('total_amount', 'ALTER TABLE bookings ADD COLUMN total_amount NUMERIC(10, 2)'),
            ('updated_at', 'ALTER TABLE bookings ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_bookings_provider_status ON bookings(provider_id, status)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_bookings_slot ON bookings(slot_id)')
            )
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_bookings_active_slot ON bookings(slot_id) '
                    "WHERE status IN ('pending', 'confirmed')"
                )
            )

        _booking_schema_checked = True


@contextmanager
def storage_transaction(db: Session):
    """Commit the work done in the block, or roll it back and re-raise.

    Database errors surface as ``StorageFailure``; domain errors pass through
    unchanged after the rollback.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Database operation failed; transaction rolled back.')
        raise errors.StorageFailure() from exc
    except Exception:
        db.rollback()
        raise


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_booking_schema()
    except SQLAlchemyError as exc:
        logger.exception('Schema check failed.')
        raise errors.StorageFailure() from exc
