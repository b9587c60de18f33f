import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.pool import StaticPool

from clinic_backend.database import build_engine, ensure_appointment_schema


def _legacy_engine():
    engine = create_engine('sqlite://', connect_args={'check_same_thread': False}, poolclass=StaticPool)
    with engine.begin() as connection:
        connection.execute(
            text(
                'CREATE TABLE appointments ('
                'id INTEGER PRIMARY KEY, patient_id INTEGER, doctor_id INTEGER, '
                'appointment_date DATE, appointment_time TIME, duration_minutes INTEGER, '
                'status VARCHAR, appointment_type VARCHAR, reason VARCHAR)'
            )
        )
    return engine


def _insert(connection, appointment_id: int, status: str) -> None:
    connection.execute(
        text(
            'INSERT INTO appointments (id, patient_id, doctor_id, appointment_date, appointment_time, status) '
            "VALUES (:id, 1, 1, '2030-01-07', '09:00:00.000000', :status)"
        ),
        {'id': appointment_id, 'status': status},
    )


def test_ensure_appointment_schema_adds_indexes_to_existing_table() -> None:
    engine = _legacy_engine()

    ensure_appointment_schema(bind=engine)

    indexes = {index['name'] for index in inspect(engine).get_indexes('appointments')}
    assert {
        'idx_appointments_doctor_date',
        'idx_appointments_patient_status',
        'uq_appointments_doctor_slot',
    } <= indexes


def test_migrated_slot_index_only_guards_blocking_appointments() -> None:
    engine = _legacy_engine()
    ensure_appointment_schema(bind=engine)

    with engine.begin() as connection:
        _insert(connection, 1, 'cancelled')
        _insert(connection, 2, 'scheduled')

    with pytest.raises(IntegrityError):
        with engine.begin() as connection:
            _insert(connection, 3, 'confirmed')


def test_ensure_appointment_schema_is_repeatable() -> None:
    engine = _legacy_engine()

    ensure_appointment_schema(bind=engine)
    ensure_appointment_schema(bind=engine)

    names = [index['name'] for index in inspect(engine).get_indexes('appointments')]
    assert names.count('uq_appointments_doctor_slot') == 1


def test_ensure_appointment_schema_skips_missing_table() -> None:
    engine = create_engine('sqlite://')

    ensure_appointment_schema(bind=engine)

    assert inspect(engine).get_table_names() == []


def test_build_engine_connects_to_sqlite() -> None:
    engine = build_engine('sqlite://', timeout_seconds=2)

    with engine.connect() as connection:
        assert connection.execute(text('SELECT 1')).scalar() == 1


def test_sqlite_transactions_take_the_write_lock_when_they_begin(tmp_path) -> None:
    engine = build_engine(f'sqlite:///{tmp_path / "lock.db"}', timeout_seconds=0)

    try:
        with engine.connect() as first:
            first.execute(text('SELECT 1'))

            # A read alone holds the lock, so a second transaction cannot start.
            with engine.connect() as second:
                with pytest.raises(OperationalError, match='locked'):
                    second.execute(text('SELECT 1'))
    finally:
        engine.dispose()
