"""
Status transitions of an existing appointment.

    scheduled   -> confirmed | in_progress | completed | cancelled
    confirmed   -> in_progress | completed | cancelled
    in_progress -> completed | cancelled

completed, cancelled and no_show are terminal. Rescheduling moves the slot
and is not a status transition; a confirmed appointment returns to scheduled.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy.orm import Session

from clinic_backend.auth.jwt_handler import Identity
from clinic_backend.core import timeutils
from clinic_backend.core.errors import AuthorizationError, NotFoundError, PolicyRejection
from clinic_backend.models.appointment import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_IN_PROGRESS,
    STATUS_NO_SHOW,
    STATUS_SCHEDULED,
    TERMINAL_STATUSES,
    Appointment,
)
from clinic_backend.models.doctor import Doctor
from clinic_backend.models.patient import Patient
from clinic_backend.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT
from clinic_backend.schemas.appointment import (
    CancelAppointmentRequest,
    CompleteAppointmentRequest,
    RescheduleAppointmentRequest,
)
from clinic_backend.services.audit import record_audit, snapshot
from clinic_backend.services.booking import ensure_business_hours, get_bookable_doctor, validate_slot
from clinic_backend.services.notifications import LoggingNotifier, Notifier, notify_completion
from clinic_backend.services.transactions import refresh_committed, store_transaction

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    STATUS_SCHEDULED: {STATUS_CONFIRMED, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_CANCELLED},
    STATUS_CONFIRMED: {STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_CANCELLED},
    STATUS_IN_PROGRESS: {STATUS_COMPLETED, STATUS_CANCELLED},
    STATUS_COMPLETED: set(),
    STATUS_CANCELLED: set(),
    STATUS_NO_SHOW: set(),
}
RESCHEDULABLE_STATUSES = (STATUS_SCHEDULED, STATUS_CONFIRMED)

CANCEL_ROLES = (ROLE_PATIENT, ROLE_DOCTOR, ROLE_ADMIN)
RESCHEDULE_ROLES = (ROLE_PATIENT, ROLE_DOCTOR, ROLE_ADMIN)
CLINICAL_ROLES = (ROLE_DOCTOR, ROLE_ADMIN)

UPDATE_FAILED_MESSAGE = 'Error updating the appointment. Please try again.'


@dataclass
class RescheduleResult:
    appointment: Appointment
    previous: dict
    estimated_end_time: str


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def ensure_transition(appointment: Appointment, target: str) -> None:
    if appointment.status in TERMINAL_STATUSES:
        raise PolicyRejection(f'Appointment is already {appointment.status}.')
    if not can_transition(appointment.status, target):
        raise PolicyRejection(f'Cannot change an appointment from {appointment.status} to {target}.')


def ensure_upcoming(appointment: Appointment, today: date, action: str) -> None:
    if appointment.appointment_date < today:
        raise PolicyRejection(f'Only upcoming appointments can be {action}.')


def get_appointment(db: Session, appointment_id: int, lock: bool = False) -> Appointment:
    query = db.query(Appointment).filter(Appointment.id == appointment_id)
    if lock:
        query = query.with_for_update()

    appointment = query.first()
    if appointment is None:
        raise NotFoundError('Appointment not found.')
    return appointment


def is_owning_patient(db: Session, identity: Identity, appointment: Appointment) -> bool:
    if identity.role != ROLE_PATIENT:
        return False
    patient_id = db.query(Patient.id).filter(Patient.user_id == identity.user_id).scalar()
    return patient_id is not None and patient_id == appointment.patient_id


def is_assigned_doctor(db: Session, identity: Identity, appointment: Appointment) -> bool:
    if identity.role != ROLE_DOCTOR:
        return False
    doctor_id = db.query(Doctor.id).filter(Doctor.user_id == identity.user_id).scalar()
    return doctor_id is not None and doctor_id == appointment.doctor_id


def ensure_can_act(
    db: Session,
    identity: Identity,
    appointment: Appointment,
    allowed_roles: tuple[str, ...],
    action: str,
) -> None:
    if identity.role in allowed_roles:
        if identity.role == ROLE_ADMIN:
            return
        if identity.role == ROLE_PATIENT and is_owning_patient(db, identity, appointment):
            return
        if identity.role == ROLE_DOCTOR and is_assigned_doctor(db, identity, appointment):
            return
    raise AuthorizationError(f'You are not allowed to {action} this appointment.')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _change_status(
    db: Session,
    identity: Identity,
    appointment_id: int,
    target: str,
    action: str,
    ip_address: str | None,
) -> Appointment:
    with store_transaction(db, UPDATE_FAILED_MESSAGE):
        appointment = get_appointment(db, appointment_id, lock=True)
        ensure_can_act(db, identity, appointment, CLINICAL_ROLES, action)
        ensure_transition(appointment, target)
        before = snapshot(appointment)
        appointment.status = target

    refresh_committed(db, appointment)
    logger.info('Appointment %s moved to %s by user %s', appointment.id, target, identity.user_id)
    record_audit(
        db,
        identity,
        f'{action}_appointment',
        appointment.id,
        old_data=before,
        new_data=snapshot(appointment),
        ip_address=ip_address,
    )
    return appointment


def confirm_appointment(
    db: Session,
    identity: Identity,
    appointment_id: int,
    ip_address: str | None = None,
) -> Appointment:
    return _change_status(db, identity, appointment_id, STATUS_CONFIRMED, 'confirm', ip_address)


def start_appointment(
    db: Session,
    identity: Identity,
    appointment_id: int,
    ip_address: str | None = None,
) -> Appointment:
    return _change_status(db, identity, appointment_id, STATUS_IN_PROGRESS, 'start', ip_address)


def cancel_appointment(
    db: Session,
    identity: Identity,
    appointment_id: int,
    request: CancelAppointmentRequest,
    ip_address: str | None = None,
    today: date | None = None,
) -> Appointment:
    today = today or timeutils.utc_today()

    with store_transaction(db, UPDATE_FAILED_MESSAGE):
        appointment = get_appointment(db, appointment_id, lock=True)
        ensure_can_act(db, identity, appointment, CANCEL_ROLES, 'cancel')
        ensure_transition(appointment, STATUS_CANCELLED)
        ensure_upcoming(appointment, today, 'cancelled')

        before = snapshot(appointment)
        appointment.status = STATUS_CANCELLED
        appointment.cancellation_reason = request.cancellation_reason
        appointment.cancelled_by = identity.user_id
        appointment.cancelled_at = _utcnow()

    refresh_committed(db, appointment)
    logger.info('Appointment %s cancelled by %s %s', appointment.id, identity.role, identity.user_id)
    record_audit(
        db,
        identity,
        'cancel_appointment',
        appointment.id,
        old_data=before,
        new_data=snapshot(appointment),
        ip_address=ip_address,
    )
    return appointment


def reschedule_appointment(
    db: Session,
    identity: Identity,
    appointment_id: int,
    request: RescheduleAppointmentRequest,
    ip_address: str | None = None,
    today: date | None = None,
) -> RescheduleResult:
    today = today or timeutils.utc_today()
    new_date = request.parsed_date
    ensure_business_hours(request.appointment_time)

    with store_transaction(db, UPDATE_FAILED_MESSAGE):
        appointment = get_appointment(db, appointment_id, lock=True)
        ensure_can_act(db, identity, appointment, RESCHEDULE_ROLES, 'reschedule')
        if appointment.status in TERMINAL_STATUSES:
            raise PolicyRejection(f'Appointment is already {appointment.status}.')
        if appointment.status not in RESCHEDULABLE_STATUSES:
            raise PolicyRejection('An appointment in progress cannot be rescheduled.')
        ensure_upcoming(appointment, today, 'rescheduled')

        duration = request.duration_minutes or appointment.duration_minutes
        doctor = get_bookable_doctor(db, appointment.doctor_id, lock=True)
        end_time = validate_slot(
            db,
            doctor.id,
            new_date,
            request.appointment_time,
            duration,
            exclude_appointment_id=appointment.id,
        )

        before = snapshot(appointment)
        previous = {
            'appointment_date': appointment.appointment_date,
            'appointment_time': timeutils.format_time(appointment.appointment_time),
            'duration_minutes': appointment.duration_minutes,
            'status': appointment.status,
        }

        appointment.appointment_date = new_date
        appointment.appointment_time = timeutils.parse_time(request.appointment_time)
        appointment.duration_minutes = duration
        appointment.status = STATUS_SCHEDULED
        appointment.reminder_sent = False

    refresh_committed(db, appointment)
    logger.info(
        'Appointment %s rescheduled from %s %s to %s %s',
        appointment.id,
        previous['appointment_date'],
        previous['appointment_time'],
        request.appointment_date,
        request.appointment_time,
    )
    record_audit(
        db,
        identity,
        'reschedule_appointment',
        appointment.id,
        old_data=before,
        new_data=snapshot(appointment),
        ip_address=ip_address,
    )
    return RescheduleResult(appointment=appointment, previous=previous, estimated_end_time=end_time)


def complete_appointment(
    db: Session,
    identity: Identity,
    appointment_id: int,
    request: CompleteAppointmentRequest,
    ip_address: str | None = None,
    notifier: Notifier | None = None,
) -> Appointment:
    with store_transaction(db, UPDATE_FAILED_MESSAGE):
        appointment = get_appointment(db, appointment_id, lock=True)
        ensure_can_act(db, identity, appointment, CLINICAL_ROLES, 'complete')
        ensure_transition(appointment, STATUS_COMPLETED)

        before = snapshot(appointment)
        appointment.status = STATUS_COMPLETED
        appointment.notes = request.medical_notes
        appointment.follow_up_notes = request.follow_up_required
        appointment.completed_at = _utcnow()

    refresh_committed(db, appointment)
    logger.info('Appointment %s completed by user %s', appointment.id, identity.user_id)
    record_audit(
        db,
        identity,
        'complete_appointment',
        appointment.id,
        old_data=before,
        new_data=snapshot(appointment),
        ip_address=ip_address,
    )
    notify_completion(notifier or LoggingNotifier(), appointment)
    return appointment
