from datetime import date, datetime, time

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_core import PydanticCustomError

from clinic_backend.core import timeutils
from clinic_backend.models.appointment import (
    ALLOWED_DURATIONS,
    APPOINTMENT_TYPES,
    DEFAULT_APPOINTMENT_TYPE,
    DEFAULT_DURATION_MINUTES,
)

MIN_REASON_LENGTH = 10
MIN_CANCELLATION_REASON_LENGTH = 5
MIN_MEDICAL_NOTES_LENGTH = 10
MAX_TEXT_LENGTH = 2000


def _require_text(value):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise PydanticCustomError('missing', 'Field required')
    return value


def _validate_date(value: str) -> str:
    value = value.strip()
    if not timeutils.is_valid_date(value):
        raise ValueError('Invalid date or date in the past. Use YYYY-MM-DD.')
    return value


def _validate_time(value: str) -> str:
    value = value.strip()
    if not timeutils.is_valid_time(value):
        raise ValueError('Invalid time. Use HH:MM.')
    return timeutils.normalize_time(value)


def _validate_duration(value: int) -> int:
    if value not in ALLOWED_DURATIONS:
        allowed = ', '.join(str(duration) for duration in ALLOWED_DURATIONS[:-1])
        raise ValueError(f'Duration must be {allowed} or {ALLOWED_DURATIONS[-1]} minutes.')
    return value


def _validate_min_length(value: str, minimum: int, label: str) -> str:
    normalized = value.strip()
    if len(normalized) < minimum:
        raise ValueError(f'{label} must be at least {minimum} characters.')
    if len(normalized) > MAX_TEXT_LENGTH:
        raise ValueError(f'{label} must be {MAX_TEXT_LENGTH} characters or fewer.')
    return normalized


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    appointment_date: str
    appointment_time: str
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    appointment_type: str = DEFAULT_APPOINTMENT_TYPE
    reason: str

    @field_validator('doctor_id', 'appointment_date', 'appointment_time', 'reason', mode='before')
    @classmethod
    def validate_required(cls, value):
        return _require_text(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        return _validate_min_length(value, MIN_REASON_LENGTH, 'The appointment reason')

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration(cls, value: int) -> int:
        return _validate_duration(value)

    @field_validator('appointment_type')
    @classmethod
    def validate_appointment_type(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in APPOINTMENT_TYPES:
            raise ValueError('Invalid appointment type.')
        return normalized

    @field_validator('appointment_date')
    @classmethod
    def validate_appointment_date(cls, value: str) -> str:
        return _validate_date(value)

    @field_validator('appointment_time')
    @classmethod
    def validate_appointment_time(cls, value: str) -> str:
        return _validate_time(value)

    @property
    def parsed_date(self) -> date:
        return date.fromisoformat(self.appointment_date)


class RescheduleAppointmentRequest(BaseModel):
    appointment_date: str
    appointment_time: str
    duration_minutes: int | None = None

    @field_validator('appointment_date', 'appointment_time', mode='before')
    @classmethod
    def validate_required(cls, value):
        return _require_text(value)

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration(cls, value: int | None) -> int | None:
        if value is None:
            return None
        return _validate_duration(value)

    @field_validator('appointment_date')
    @classmethod
    def validate_appointment_date(cls, value: str) -> str:
        return _validate_date(value)

    @field_validator('appointment_time')
    @classmethod
    def validate_appointment_time(cls, value: str) -> str:
        return _validate_time(value)

    @property
    def parsed_date(self) -> date:
        return date.fromisoformat(self.appointment_date)


class CancelAppointmentRequest(BaseModel):
    cancellation_reason: str

    @field_validator('cancellation_reason', mode='before')
    @classmethod
    def validate_required(cls, value):
        return _require_text(value)

    @field_validator('cancellation_reason')
    @classmethod
    def validate_cancellation_reason(cls, value: str) -> str:
        return _validate_min_length(value, MIN_CANCELLATION_REASON_LENGTH, 'The cancellation reason')


class CompleteAppointmentRequest(BaseModel):
    medical_notes: str
    follow_up_required: str | None = None

    @field_validator('medical_notes', mode='before')
    @classmethod
    def validate_required(cls, value):
        return _require_text(value)

    @field_validator('medical_notes')
    @classmethod
    def validate_medical_notes(cls, value: str) -> str:
        return _validate_min_length(value, MIN_MEDICAL_NOTES_LENGTH, 'Medical notes')

    @field_validator('follow_up_required')
    @classmethod
    def validate_follow_up(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_TEXT_LENGTH:
            raise ValueError(f'Follow-up notes must be {MAX_TEXT_LENGTH} characters or fewer.')

        return normalized


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    doctor_id: int
    appointment_date: date
    appointment_time: str
    duration_minutes: int
    status: str
    appointment_type: str
    reason: str
    notes: str | None = None
    follow_up_notes: str | None = None
    cancellation_reason: str | None = None
    reminder_sent: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator('appointment_time', mode='before')
    @classmethod
    def format_appointment_time(cls, value):
        if isinstance(value, time):
            return timeutils.format_time(value)
        return value


class DoctorSummary(BaseModel):
    name: str
    specialization: str


class CreateAppointmentResponse(BaseModel):
    appointment: AppointmentResponse
    doctor: DoctorSummary
    estimated_end_time: str


class SlotSnapshot(BaseModel):
    appointment_date: date
    appointment_time: str
    duration_minutes: int
    status: str


class RescheduleAppointmentResponse(BaseModel):
    appointment: AppointmentResponse
    previous: SlotSnapshot
    estimated_end_time: str


class AgendaResponse(BaseModel):
    appointments: list[AppointmentResponse]
    statistics: dict[str, int]
