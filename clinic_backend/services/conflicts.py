from dataclasses import dataclass
from datetime import date
from typing import Iterable

from sqlalchemy.orm import Session

from clinic_backend.core import timeutils
from clinic_backend.core.errors import SlotConflictError
from clinic_backend.models.appointment import BLOCKING_STATUSES, Appointment


@dataclass(frozen=True)
class BookedInterval:
    appointment_id: int
    start_time: str
    end_time: str


def first_overlap(start_time: str, end_time: str, bookings: Iterable[BookedInterval]) -> BookedInterval | None:
    for booking in bookings:
        if timeutils.intervals_overlap(start_time, end_time, booking.start_time, booking.end_time):
            return booking
    return None


def get_booked_intervals(
    db: Session,
    doctor_id: int,
    appointment_date: date,
    before_time: str | None = None,
    exclude_appointment_id: int | None = None,
) -> list[BookedInterval]:
    query = db.query(Appointment.id, Appointment.appointment_time, Appointment.duration_minutes).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_date == appointment_date,
        Appointment.status.in_(BLOCKING_STATUSES),
    )
    if before_time is not None:
        # A booking that starts at or after the candidate's end cannot overlap it.
        query = query.filter(Appointment.appointment_time < timeutils.parse_time(before_time))
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)

    return [
        BookedInterval(
            appointment_id=appointment_id,
            start_time=timeutils.format_time(start),
            end_time=timeutils.add_minutes(start, duration),
        )
        for appointment_id, start, duration in query.order_by(Appointment.appointment_time.asc()).all()
    ]


def find_conflict(
    db: Session,
    doctor_id: int,
    appointment_date: date,
    start_time: str,
    duration_minutes: int,
    exclude_appointment_id: int | None = None,
) -> BookedInterval | None:
    end_time = timeutils.add_minutes(start_time, duration_minutes)
    bookings = get_booked_intervals(
        db,
        doctor_id,
        appointment_date,
        before_time=end_time,
        exclude_appointment_id=exclude_appointment_id,
    )
    return first_overlap(start_time, end_time, bookings)


def ensure_no_conflict(
    db: Session,
    doctor_id: int,
    appointment_date: date,
    start_time: str,
    duration_minutes: int,
    exclude_appointment_id: int | None = None,
) -> None:
    conflict = find_conflict(db, doctor_id, appointment_date, start_time, duration_minutes, exclude_appointment_id)
    if conflict is not None:
        raise SlotConflictError(
            f'Time slot conflict. The doctor has an appointment from {conflict.start_time} to {conflict.end_time}.',
            conflict_start=conflict.start_time,
            conflict_end=conflict.end_time,
        )
