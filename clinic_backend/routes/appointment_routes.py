from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.auth.dependencies import (
    get_client_ip,
    get_current_identity,
    require_doctor,
    require_patient,
)
from clinic_backend.auth.jwt_handler import Identity
from clinic_backend.core import timeutils
from clinic_backend.core.errors import InfrastructureError
from clinic_backend.database import ensure_appointment_schema, get_db
from clinic_backend.schemas.appointment import (
    AgendaResponse,
    AppointmentResponse,
    CancelAppointmentRequest,
    CompleteAppointmentRequest,
    CreateAppointmentRequest,
    CreateAppointmentResponse,
    DoctorSummary,
    RescheduleAppointmentRequest,
    RescheduleAppointmentResponse,
    SlotSnapshot,
)
from clinic_backend.services import booking, directory, lifecycle
from clinic_backend.services.notifications import LoggingNotifier, Notifier

router = APIRouter(tags=['appointments'])

DEFAULT_AGENDA_DAYS = 7
DATABASE_UNAVAILABLE_MESSAGE = 'Database unavailable. Please try again.'


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise InfrastructureError(DATABASE_UNAVAILABLE_MESSAGE) from exc


def get_notifier(request: Request) -> Notifier:
    return getattr(request.app.state, 'notifier', None) or LoggingNotifier()


@router.post('', response_model=CreateAppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    request: Request,
    identity: Identity = Depends(require_patient),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    result = booking.create_appointment(db, identity, data, ip_address=get_client_ip(request))

    return CreateAppointmentResponse(
        appointment=AppointmentResponse.model_validate(result.appointment),
        doctor=DoctorSummary(name=result.doctor.full_name, specialization=result.doctor.specialization),
        estimated_end_time=result.estimated_end_time,
    )


@router.get('/mine', response_model=list[AppointmentResponse])
def list_my_appointments(
    upcoming_only: bool = Query(default=False),
    identity: Identity = Depends(require_patient),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        upcoming_from = timeutils.utc_today() if upcoming_only else None
        appointments = directory.list_patient_appointments(db, identity, upcoming_from)
    except SQLAlchemyError as exc:
        raise InfrastructureError(DATABASE_UNAVAILABLE_MESSAGE) from exc

    return [AppointmentResponse.model_validate(appointment) for appointment in appointments]


@router.get('/agenda', response_model=AgendaResponse)
def get_agenda(
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias='status'),
    identity: Identity = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    start = date_from or timeutils.utc_today()
    end = date_to or start + timedelta(days=DEFAULT_AGENDA_DAYS - 1)

    try:
        doctor = directory.get_doctor_for_identity(db, identity)
        appointments, statistics = directory.get_doctor_agenda(db, doctor.id, start, end, status_filter)
    except SQLAlchemyError as exc:
        raise InfrastructureError(DATABASE_UNAVAILABLE_MESSAGE) from exc

    return AgendaResponse(
        appointments=[AppointmentResponse.model_validate(appointment) for appointment in appointments],
        statistics=statistics,
    )


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = lifecycle.cancel_appointment(db, identity, appointment_id, data, ip_address=get_client_ip(request))
    return AppointmentResponse.model_validate(appointment)


@router.post('/{appointment_id}/reschedule', response_model=RescheduleAppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    data: RescheduleAppointmentRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    result = lifecycle.reschedule_appointment(db, identity, appointment_id, data, ip_address=get_client_ip(request))
    return RescheduleAppointmentResponse(
        appointment=AppointmentResponse.model_validate(result.appointment),
        previous=SlotSnapshot(**result.previous),
        estimated_end_time=result.estimated_end_time,
    )


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    data: CompleteAppointmentRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    notifier: Notifier = Depends(get_notifier),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = lifecycle.complete_appointment(
        db,
        identity,
        appointment_id,
        data,
        ip_address=get_client_ip(request),
        notifier=notifier,
    )
    return AppointmentResponse.model_validate(appointment)


@router.post('/{appointment_id}/confirm', response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: int,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = lifecycle.confirm_appointment(db, identity, appointment_id, ip_address=get_client_ip(request))
    return AppointmentResponse.model_validate(appointment)


@router.post('/{appointment_id}/start', response_model=AppointmentResponse)
def start_appointment(
    appointment_id: int,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = lifecycle.start_appointment(db, identity, appointment_id, ip_address=get_client_ip(request))
    return AppointmentResponse.model_validate(appointment)
