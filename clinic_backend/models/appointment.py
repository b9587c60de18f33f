"""Appointment model definitions."""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    func,
    text,
)
from clinic_backend.database import Base

STATUS_SCHEDULED = 'scheduled'
STATUS_CONFIRMED = 'confirmed'
STATUS_IN_PROGRESS = 'in_progress'
STATUS_COMPLETED = 'completed'
STATUS_CANCELLED = 'cancelled'
STATUS_NO_SHOW = 'no_show'

APPOINTMENT_STATUSES = (
    STATUS_SCHEDULED,
    STATUS_CONFIRMED,
    STATUS_IN_PROGRESS,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    STATUS_NO_SHOW,
)
BLOCKING_STATUSES = (STATUS_SCHEDULED, STATUS_CONFIRMED, STATUS_IN_PROGRESS)
PENDING_STATUSES = (STATUS_SCHEDULED, STATUS_CONFIRMED)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW)

APPOINTMENT_TYPES = ('first_visit', 'follow_up', 'emergency', 'routine', 'telemedicine')
ALLOWED_DURATIONS = (15, 30, 45, 60)
DEFAULT_DURATION_MINUTES = 30
DEFAULT_APPOINTMENT_TYPE = 'routine'

_BLOCKING_PREDICATE = text("status IN ('scheduled', 'confirmed', 'in_progress')")


class Appointment(Base):
    """Represents a booked appointment. Cancelled rows are kept, never deleted."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_doctor_date', 'doctor_id', 'appointment_date'),
        Index('idx_appointments_patient_status', 'patient_id', 'status', 'appointment_date'),
        # Backstop against two concurrent bookings that start at the same minute.
        Index(
            'uq_appointments_doctor_slot',
            'doctor_id',
            'appointment_date',
            'appointment_time',
            unique=True,
            postgresql_where=_BLOCKING_PREDICATE,
            sqlite_where=_BLOCKING_PREDICATE,
        ),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=DEFAULT_DURATION_MINUTES)
    status = Column(String, nullable=False, default=STATUS_SCHEDULED)
    appointment_type = Column(String, nullable=False, default=DEFAULT_APPOINTMENT_TYPE)
    reason = Column(String, nullable=False)
    notes = Column(String)
    follow_up_notes = Column(String)
    cancellation_reason = Column(String)
    cancelled_by = Column(Integer)
    cancelled_at = Column(DateTime)
    completed_at = Column(DateTime)
    reminder_sent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
