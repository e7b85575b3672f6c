from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from neuromeet.core import config


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {}


engine = create_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO, **_engine_kwargs(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_user_schema_checked = False
_rating_schema_checked = False
_legacy_sessions_checked = False


def ensure_user_schema(bind=None) -> None:
    global _user_schema_checked

    if _user_schema_checked and bind is None:
        return

    bind = bind or engine
    with _schema_lock:
        inspector = inspect(bind)

        if 'users' in inspector.get_table_names():
            existing_columns = {column['name'] for column in inspector.get_columns('users')}
            if 'session_fee' not in existing_columns:
                with bind.begin() as connection:
                    connection.execute(text('ALTER TABLE users ADD COLUMN session_fee NUMERIC(10, 2)'))

        _user_schema_checked = True


def ensure_rating_schema(bind=None) -> None:
    global _rating_schema_checked

    if _rating_schema_checked and bind is None:
        return

    bind = bind or engine
    with _schema_lock:
        inspector = inspect(bind)

        if 'ratings' in inspector.get_table_names():
            existing_columns = {column['name'] for column in inspector.get_columns('ratings')}
            with bind.begin() as connection:
                if 'booking_id' not in existing_columns:
                    connection.execute(
                        text('ALTER TABLE ratings ADD COLUMN booking_id INTEGER REFERENCES bookings(id) ON DELETE CASCADE')
                    )
                if 'session_id' in existing_columns:
                    connection.execute(text('ALTER TABLE ratings DROP COLUMN session_id'))
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_ratings_therapist ON ratings(therapist_id)')
                )

        _rating_schema_checked = True


def drop_legacy_sessions_table(bind=None) -> None:
    """Bookings replaced the old sessions table; drop it if it is still around."""
    global _legacy_sessions_checked

    if _legacy_sessions_checked and bind is None:
        return

    bind = bind or engine
    with _schema_lock:
        if 'sessions' in inspect(bind).get_table_names():
            with bind.begin() as connection:
                connection.execute(text('DROP TABLE sessions'))

        _legacy_sessions_checked = True


def ensure_booking_indexes(bind=None) -> None:
    bind = bind or engine
    inspector = inspect(bind)
    if 'bookings' not in inspector.get_table_names():
        return
    existing_columns = {column['name'] for column in inspector.get_columns('bookings')}

    with bind.begin() as connection:
        connection.execute(
            text('CREATE INDEX IF NOT EXISTS idx_bookings_therapist_date ON bookings(therapist_id, booking_date)')
        )
        connection.execute(
            text('CREATE INDEX IF NOT EXISTS idx_bookings_user ON bookings(user_id)')
        )
        if {'start_time', 'status'} <= existing_columns:
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_bookings_active_slot '
                    'ON bookings(therapist_id, booking_date, start_time) '
                    "WHERE status IN ('pending', 'confirmed')"
                )
            )


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
