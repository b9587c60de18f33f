from collections import Counter
from datetime import date

from sqlalchemy.orm import Session

from clinic_backend.auth.jwt_handler import Identity
from clinic_backend.core.errors import BookingValidationError, NotFoundError
from clinic_backend.models.appointment import APPOINTMENT_STATUSES, Appointment
from clinic_backend.models.doctor import Doctor
from clinic_backend.models.user import User
from clinic_backend.services.booking import resolve_patient

MAX_AGENDA_DAYS = 62


def list_doctors(db: Session, specialization: str | None = None) -> tuple[list[Doctor], list[str]]:
    """Bookable doctors ordered by name, and the specializations on offer."""
    query = db.query(Doctor).join(Doctor.user).filter(
        Doctor.is_available.is_(True),
        User.is_active.is_(True),
    )
    if specialization:
        query = query.filter(Doctor.specialization == specialization.strip())

    doctors = query.order_by(User.full_name.asc(), Doctor.id.asc()).all()

    rows = db.query(Doctor.specialization).join(Doctor.user).filter(
        Doctor.is_available.is_(True),
        User.is_active.is_(True),
    ).distinct().all()
    specializations = sorted({value for (value,) in rows if value})

    return doctors, specializations


def get_doctor_for_identity(db: Session, identity: Identity) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.user_id == identity.user_id).first()
    if doctor is None:
        raise NotFoundError('Doctor record not found.')
    return doctor


def get_doctor_agenda(
    db: Session,
    doctor_id: int,
    date_from: date,
    date_to: date,
    status: str | None = None,
) -> tuple[list[Appointment], dict[str, int]]:
    if date_to < date_from:
        raise BookingValidationError('date_to must not be before date_from.')
    if (date_to - date_from).days > MAX_AGENDA_DAYS:
        raise BookingValidationError(f'The agenda range cannot exceed {MAX_AGENDA_DAYS} days.')
    if status is not None and status not in APPOINTMENT_STATUSES:
        raise BookingValidationError('Invalid appointment status.')

    query = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_date >= date_from,
        Appointment.appointment_date <= date_to,
    )
    appointments = query.order_by(Appointment.appointment_date.asc(), Appointment.appointment_time.asc()).all()

    counts = Counter(appointment.status for appointment in appointments)
    statistics = {value: counts.get(value, 0) for value in APPOINTMENT_STATUSES}
    statistics['total'] = len(appointments)

    if status is not None:
        appointments = [appointment for appointment in appointments if appointment.status == status]

    return appointments, statistics


def list_patient_appointments(db: Session, identity: Identity, upcoming_from: date | None = None) -> list[Appointment]:
    patient = resolve_patient(db, identity)
    query = db.query(Appointment).filter(Appointment.patient_id == patient.id)
    if upcoming_from is not None:
        query = query.filter(Appointment.appointment_date >= upcoming_from)
    return query.order_by(Appointment.appointment_date.asc(), Appointment.appointment_time.asc()).all()
