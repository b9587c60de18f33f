"""Weekly schedule model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Time
from clinic_backend.database import Base


class WeeklySchedule(Base):
    """Recurring weekly availability window of a doctor."""
    __tablename__ = "doctor_schedules"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), index=True, nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday..6=Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
