"""Audit log model definitions."""

from sqlalchemy import JSON, Column, DateTime, Integer, String, func
from clinic_backend.database import Base


class AuditLog(Base):
    """Append-only record of a mutation made through the scheduling core."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, index=True)
    actor_role = Column(String)
    action = Column(String, nullable=False)
    table_name = Column(String, nullable=False)
    record_id = Column(Integer, index=True)
    old_data = Column(JSON)
    new_data = Column(JSON)
    ip_address = Column(String)
    created_at = Column(DateTime, server_default=func.now())
