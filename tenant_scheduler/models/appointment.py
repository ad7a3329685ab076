"""Appointment model definitions."""

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text
from tenant_scheduler.database import Base


class Appointment(Base):
    """One appointment row, reachable by id, by tenant and by owner.

    Key columns are derived by ``tenant_scheduler.services.keys``; timestamps
    are stored as naive UTC.
    """
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_gsi1", "gsi1pk", "gsi1sk"),
        Index("idx_appointments_gsi2", "gsi2pk", "gsi2sk"),
        Index("idx_appointments_expires_at", "expires_at"),
    )

    pk = Column(String, primary_key=True)
    sk = Column(String, primary_key=True)
    gsi1pk = Column(String, nullable=False)
    gsi1sk = Column(String, nullable=False)
    gsi2pk = Column(String, nullable=False)
    gsi2sk = Column(String, nullable=False)

    appointment_id = Column(String, nullable=False, unique=True)
    tenant_id = Column(String, nullable=False)
    owner_user_id = Column(String, nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    location = Column(String(200))
    attendees = Column(JSON, nullable=False, default=list)
    status = Column(String, nullable=False)
    reminder_lead_minutes = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
