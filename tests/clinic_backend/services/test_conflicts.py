import pytest

from clinic_backend.core.errors import SlotConflictError
from clinic_backend.models.appointment import STATUS_CANCELLED, STATUS_COMPLETED, STATUS_IN_PROGRESS
from clinic_backend.services.conflicts import BookedInterval, ensure_no_conflict, find_conflict, first_overlap


def test_first_overlap_skips_adjacent_bookings() -> None:
    bookings = [
        BookedInterval(appointment_id=1, start_time='09:00', end_time='09:30'),
        BookedInterval(appointment_id=2, start_time='10:00', end_time='10:45'),
    ]

    assert first_overlap('09:30', '10:00', bookings) is None
    assert first_overlap('09:45', '10:15', bookings).appointment_id == 2


def test_find_conflict_reports_overlapping_booking(db, clinic, monday_doctor, upcoming_monday) -> None:
    doctor, _, patient, _ = monday_doctor
    booked = clinic.appointment(patient, doctor, upcoming_monday, '09:00', duration_minutes=45)

    conflict = find_conflict(db, doctor.id, upcoming_monday, '09:30', 30)

    assert conflict == BookedInterval(appointment_id=booked.id, start_time='09:00', end_time='09:45')
    assert find_conflict(db, doctor.id, upcoming_monday, '09:45', 30) is None
    assert find_conflict(db, doctor.id, upcoming_monday, '08:30', 30) is None


@pytest.mark.parametrize('status', [STATUS_CANCELLED, STATUS_COMPLETED])
def test_find_conflict_ignores_non_blocking_statuses(db, clinic, monday_doctor, upcoming_monday, status: str) -> None:
    doctor, _, patient, _ = monday_doctor
    clinic.appointment(patient, doctor, upcoming_monday, '09:00', status=status)

    assert find_conflict(db, doctor.id, upcoming_monday, '09:00', 30) is None


def test_find_conflict_counts_appointments_in_progress(db, clinic, monday_doctor, upcoming_monday) -> None:
    doctor, _, patient, _ = monday_doctor
    clinic.appointment(patient, doctor, upcoming_monday, '09:00', status=STATUS_IN_PROGRESS)

    assert find_conflict(db, doctor.id, upcoming_monday, '09:15', 15) is not None


def test_find_conflict_only_checks_the_same_doctor(db, clinic, monday_doctor, upcoming_monday) -> None:
    doctor, _, patient, _ = monday_doctor
    other_doctor, _ = clinic.doctor(full_name='Dr. Ben Ortiz')
    clinic.appointment(patient, other_doctor, upcoming_monday, '09:00')

    assert find_conflict(db, doctor.id, upcoming_monday, '09:00', 30) is None


def test_ensure_no_conflict_can_exclude_the_moving_appointment(db, clinic, monday_doctor, upcoming_monday) -> None:
    doctor, _, patient, _ = monday_doctor
    booked = clinic.appointment(patient, doctor, upcoming_monday, '09:00')

    ensure_no_conflict(db, doctor.id, upcoming_monday, '09:15', 30, exclude_appointment_id=booked.id)

    with pytest.raises(SlotConflictError) as exception_info:
        ensure_no_conflict(db, doctor.id, upcoming_monday, '09:15', 30)

    assert exception_info.value.status_code == 409
    assert exception_info.value.to_dict() == {
        'error': 'Time slot conflict. The doctor has an appointment from 09:00 to 09:30.',
        'kind': 'policy',
        'conflict': {'start': '09:00', 'end': '09:30'},
    }
