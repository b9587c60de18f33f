from threading import Lock

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic_backend.core import config


def _begin_immediate_on_sqlite(engine: Engine) -> None:
    """Take SQLite's write lock when a transaction begins.

    SQLite ignores ``FOR UPDATE``, so two bookings could both pass the
    conflict check before either inserts. ``BEGIN IMMEDIATE`` makes the
    second transaction wait until the first commits or rolls back.
    """

    @event.listens_for(engine, 'connect')
    def disable_driver_begin(dbapi_connection, connection_record):
        # pysqlite would otherwise emit a deferred BEGIN on the first write.
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, 'begin')
    def begin_immediate(connection):
        connection.exec_driver_sql('BEGIN IMMEDIATE')


def build_engine(database_url: str, timeout_seconds: int = config.STORE_TIMEOUT_SECONDS, **kwargs) -> Engine:
    """Create an engine whose connections give up after ``timeout_seconds``."""
    connect_args = dict(kwargs.pop('connect_args', {}))
    is_sqlite = database_url.startswith('sqlite')

    if is_sqlite:
        connect_args.setdefault('timeout', timeout_seconds)
        connect_args.setdefault('check_same_thread', False)
    elif database_url.startswith('postgresql'):
        connect_args.setdefault('connect_timeout', timeout_seconds)
        connect_args.setdefault('options', f'-c statement_timeout={timeout_seconds * 1000}')

    kwargs.setdefault('pool_pre_ping', not is_sqlite)
    engine = create_engine(database_url, connect_args=connect_args, echo=config.DATABASE_ECHO, **kwargs)

    if is_sqlite:
        _begin_immediate_on_sqlite(engine)

    return engine


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False


def ensure_appointment_schema(bind: Engine | None = None) -> None:
    """Create the lookup indexes and the double-booking guard on older ``appointments`` tables."""
    global _appointment_schema_checked

    if _appointment_schema_checked and bind is None:
        return

    target = bind or engine

    with _schema_lock:
        if _appointment_schema_checked and bind is None:
            return

        inspector = inspect(target)

        if 'appointments' not in inspector.get_table_names():
            if bind is None:
                _appointment_schema_checked = True
            return

        with target.begin() as connection:
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_doctor_date '
                    'ON appointments(doctor_id, appointment_date)'
                )
            )
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_patient_status '
                    'ON appointments(patient_id, status, appointment_date)'
                )
            )
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_doctor_slot '
                    'ON appointments(doctor_id, appointment_date, appointment_time) '
                    "WHERE status IN ('scheduled', 'confirmed', 'in_progress')"
                )
            )

        if bind is None:
            _appointment_schema_checked = True


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
