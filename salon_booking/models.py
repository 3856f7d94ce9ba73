# salon_booking/models.py
import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class AppointmentStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    RESCHEDULED = "RESCHEDULED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# Statuses that hold the staff member's time
OCCUPYING_STATUSES = (
    AppointmentStatus.PENDING,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.RESCHEDULED,
)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    staff_profile = relationship("Staff", back_populates="user", uselist=False)


class Staff(Base):
    __tablename__ = "staff"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, unique=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="staff_profile")
    appointments = relationship("Appointment", back_populates="staff")


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    description = Column(Text)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=False, unique=True)
    email = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    appointments = relationship("Appointment", back_populates="client")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_staff_range", "staff_id", "start_at", "end_at"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False)
    staff_id = Column(String(36), ForeignKey("staff.id"), nullable=False)
    # Wall-clock time in the business timezone
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    total_duration_minutes = Column(Integer, nullable=False)
    total_price = Column(Float, nullable=False, default=0.0)
    status = Column(
        Enum(AppointmentStatus, name="appointment_status"),
        nullable=False,
        default=AppointmentStatus.PENDING,
    )
    cancellation_token = Column(String, nullable=False, unique=True)
    confirmation_code = Column(String(20), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    client = relationship("Client", back_populates="appointments")
    staff = relationship("Staff", back_populates="appointments")
    service_links = relationship(
        "AppointmentService",
        back_populates="appointment",
        order_by="AppointmentService.position",
    )


class AppointmentService(Base):
    """Join row between an appointment and a service, frozen at booking time."""

    __tablename__ = "appointment_services"

    appointment_id = Column(String(36), ForeignKey("appointments.id"), primary_key=True)
    service_id = Column(String(36), ForeignKey("services.id"), primary_key=True)
    position = Column(Integer, nullable=False, default=0)
    unit_price = Column(Float, nullable=False)

    # Relationships
    appointment = relationship("Appointment", back_populates="service_links")
    service = relationship("Service")


class BlockedDay(Base):
    __tablename__ = "blocked_days"

    id = Column(Integer, primary_key=True, index=True)
    day = Column(Date, nullable=False, unique=True)
    reason = Column(String)
