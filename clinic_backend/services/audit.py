import logging
from datetime import date, datetime, time
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.auth.jwt_handler import Identity
from clinic_backend.core import timeutils
from clinic_backend.models.appointment import Appointment
from clinic_backend.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

SNAPSHOT_FIELDS = (
    'patient_id',
    'doctor_id',
    'appointment_date',
    'appointment_time',
    'duration_minutes',
    'status',
    'appointment_type',
    'cancellation_reason',
    'cancelled_by',
    'cancelled_at',
    'completed_at',
)


def _to_json(value: Any) -> Any:
    if isinstance(value, time):
        return timeutils.format_time(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def snapshot(appointment: Appointment) -> dict[str, Any]:
    data = {field: _to_json(getattr(appointment, field)) for field in SNAPSHOT_FIELDS}
    data['appointment_id'] = appointment.id
    return data


def record_audit(
    db: Session,
    actor: Identity,
    action: str,
    record_id: int,
    old_data: dict[str, Any] | None = None,
    new_data: dict[str, Any] | None = None,
    ip_address: str | None = None,
) -> bool:
    """Append an audit entry in its own commit.

    Runs after the audited mutation has been committed; a failure here is
    logged and reported as ``False`` but never undoes that mutation.
    """
    entry = AuditLog(
        user_id=actor.user_id,
        actor_role=actor.role,
        action=action,
        table_name=Appointment.__tablename__,
        record_id=record_id,
        old_data=old_data,
        new_data=new_data,
        ip_address=ip_address or 'unknown',
    )

    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning('Audit log write failed for %s on appointment %s', action, record_id, exc_info=True)
        return False

    return True
