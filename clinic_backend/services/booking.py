"""
Booking policy for new appointments.

Request-shape checks (required fields, reason length, duration, type, date
and time format) are done by ``CreateAppointmentRequest`` before this module
runs. Here the request is checked against the clinic hours, then against
stored data:

1. check the start time is within the clinic's business hours
2. resolve the patient record of the caller
3. lock the doctor row and check the doctor is bookable
4. resolve the doctor's weekly window for the weekday
5. check the slot fits inside the window
6. check the slot does not overlap another blocking appointment
7. check the patient's pending-appointment cap
8. insert the appointment, then write the audit entry
"""

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic_backend.auth.jwt_handler import Identity
from clinic_backend.core import config, timeutils
from clinic_backend.core.errors import NotFoundError, PolicyRejection, SchedulingError
from clinic_backend.models.appointment import PENDING_STATUSES, STATUS_SCHEDULED, Appointment
from clinic_backend.models.doctor import Doctor
from clinic_backend.models.patient import Patient
from clinic_backend.schemas.appointment import CreateAppointmentRequest
from clinic_backend.services.audit import record_audit, snapshot
from clinic_backend.services.availability import resolve_doctor_window
from clinic_backend.services.conflicts import ensure_no_conflict
from clinic_backend.services.transactions import refresh_committed, store_transaction

logger = logging.getLogger(__name__)

CREATE_FAILED_MESSAGE = 'Error creating the appointment. Please try again.'


@dataclass
class BookingResult:
    appointment: Appointment
    doctor: Doctor
    estimated_end_time: str


def resolve_patient(db: Session, identity: Identity) -> Patient:
    patient = db.query(Patient).filter(Patient.user_id == identity.user_id).first()
    if patient is None:
        raise NotFoundError('Patient record not found.')
    return patient


def ensure_business_hours(start_time: str) -> None:
    if not timeutils.is_business_hours(start_time):
        raise PolicyRejection(
            f'Appointments must be between {timeutils.format_time(config.BUSINESS_OPEN_TIME)} '
            f'and {timeutils.format_time(config.BUSINESS_CLOSE_TIME)}.'
        )


def get_bookable_doctor(db: Session, doctor_id: int, lock: bool = False) -> Doctor:
    query = db.query(Doctor).filter(Doctor.id == doctor_id)
    if lock:
        # Serializes bookings for the same doctor until commit or rollback.
        query = query.with_for_update(of=Doctor)

    doctor = query.first()
    if doctor is None:
        raise NotFoundError('Doctor not found.')
    if not doctor.is_bookable:
        raise PolicyRejection('Doctor is not currently available.')
    return doctor


def validate_slot(
    db: Session,
    doctor_id: int,
    appointment_date: date,
    start_time: str,
    duration_minutes: int,
    exclude_appointment_id: int | None = None,
) -> str:
    """Check a slot against the doctor's window and bookings; return its end time."""
    window = resolve_doctor_window(db, doctor_id, appointment_date)
    if not window.contains(start_time, duration_minutes):
        raise PolicyRejection(f'The doctor sees patients from {window.start_time} to {window.end_time}.')

    ensure_no_conflict(
        db,
        doctor_id,
        appointment_date,
        start_time,
        duration_minutes,
        exclude_appointment_id=exclude_appointment_id,
    )
    return timeutils.add_minutes(start_time, duration_minutes)


def count_pending_appointments(db: Session, patient_id: int, today: date) -> int:
    return db.query(func.count(Appointment.id)).filter(
        Appointment.patient_id == patient_id,
        Appointment.status.in_(PENDING_STATUSES),
        Appointment.appointment_date >= today,
    ).scalar() or 0


def ensure_below_booking_cap(db: Session, patient_id: int, today: date) -> int:
    pending = count_pending_appointments(db, patient_id, today)
    if pending >= config.BOOKING_CAP:
        raise PolicyRejection(f'Maximum of {config.BOOKING_CAP} pending appointments per patient.')
    return pending


def create_appointment(
    db: Session,
    identity: Identity,
    request: CreateAppointmentRequest,
    ip_address: str | None = None,
    today: date | None = None,
) -> BookingResult:
    today = today or timeutils.utc_today()
    appointment_date = request.parsed_date

    logger.info(
        'Booking request: user=%s doctor=%s date=%s time=%s duration=%s',
        identity.user_id,
        request.doctor_id,
        request.appointment_date,
        request.appointment_time,
        request.duration_minutes,
    )

    try:
        ensure_business_hours(request.appointment_time)
        with store_transaction(db, CREATE_FAILED_MESSAGE):
            patient = resolve_patient(db, identity)
            doctor = get_bookable_doctor(db, request.doctor_id, lock=True)
            end_time = validate_slot(
                db,
                doctor.id,
                appointment_date,
                request.appointment_time,
                request.duration_minutes,
            )
            pending = ensure_below_booking_cap(db, patient.id, today)

            appointment = Appointment(
                patient_id=patient.id,
                doctor_id=doctor.id,
                appointment_date=appointment_date,
                appointment_time=timeutils.parse_time(request.appointment_time),
                duration_minutes=request.duration_minutes,
                status=STATUS_SCHEDULED,
                appointment_type=request.appointment_type,
                reason=request.reason,
                reminder_sent=False,
            )
            db.add(appointment)
    except SchedulingError as exc:
        logger.info('Booking rejected for user %s: %s', identity.user_id, exc.message)
        raise

    refresh_committed(db, appointment)
    logger.info(
        'Appointment %s created (%s/%s pending for patient %s)',
        appointment.id,
        pending + 1,
        config.BOOKING_CAP,
        patient.id,
    )

    record_audit(
        db,
        identity,
        'create_appointment',
        appointment.id,
        new_data=snapshot(appointment),
        ip_address=ip_address,
    )

    return BookingResult(appointment=appointment, doctor=doctor, estimated_end_time=end_time)
