"""Doctor model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from clinic_backend.database import Base
from clinic_backend.models.user import User


class Doctor(Base):
    """A doctor in the clinic directory.

    ``is_available`` is controlled by the doctor; the account-level active
    flag and the display name live on the linked user.
    """
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    specialization = Column(String, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)

    user = relationship(User, lazy="joined", innerjoin=True)

    @property
    def full_name(self) -> str:
        return self.user.full_name if self.user else ''

    @property
    def is_active(self) -> bool:
        return bool(self.user and self.user.is_active)

    @property
    def is_bookable(self) -> bool:
        return bool(self.is_available) and self.is_active
