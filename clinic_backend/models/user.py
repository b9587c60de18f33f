"""User model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from clinic_backend.database import Base

ROLE_PATIENT = 'patient'
ROLE_DOCTOR = 'doctor'
ROLE_ADMIN = 'admin'


class User(Base):
    """Represents an application account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False, default='')
    hashed_password = Column(String)
    role = Column(String, nullable=False, default=ROLE_PATIENT)  # patient/doctor/admin
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
