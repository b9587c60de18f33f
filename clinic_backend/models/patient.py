"""Patient model definitions."""

from sqlalchemy import Column, ForeignKey, Integer
from sqlalchemy.orm import relationship
from clinic_backend.database import Base
from clinic_backend.models.user import User


class Patient(Base):
    """Clinical record of a patient, linked to one user account."""
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    user = relationship(User, lazy="joined", innerjoin=True)
