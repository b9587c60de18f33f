from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from clinic_backend.core import timeutils
from clinic_backend.core.errors import PolicyRejection
from clinic_backend.models.schedule import WeeklySchedule


@dataclass(frozen=True)
class ScheduleWindow:
    doctor_id: int
    day_of_week: int
    start_time: str
    end_time: str

    def contains(self, start_time: str, duration_minutes: int) -> bool:
        start = timeutils.to_minutes(start_time)
        end = start + duration_minutes
        return timeutils.to_minutes(self.start_time) <= start and end <= timeutils.to_minutes(self.end_time)


def find_schedule_entry(db: Session, doctor_id: int, day_of_week: int) -> WeeklySchedule | None:
    # Several active entries for one day is a data problem; pick the earliest.
    return db.query(WeeklySchedule).filter(
        WeeklySchedule.doctor_id == doctor_id,
        WeeklySchedule.day_of_week == day_of_week,
        WeeklySchedule.is_active.is_(True),
    ).order_by(WeeklySchedule.start_time.asc(), WeeklySchedule.id.asc()).first()


def resolve_doctor_window(db: Session, doctor_id: int, appointment_date: date) -> ScheduleWindow:
    day = timeutils.day_of_week(appointment_date)
    entry = find_schedule_entry(db, doctor_id, day)

    if entry is None:
        raise PolicyRejection(f'Doctor does not work on {timeutils.weekday_name(day)}s.')

    return ScheduleWindow(
        doctor_id=doctor_id,
        day_of_week=day,
        start_time=timeutils.format_time(entry.start_time),
        end_time=timeutils.format_time(entry.end_time),
    )
