import uuid

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ExcludeConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

ROLE_CLIENT = "client"
ROLE_CONSULTANT = "consultant"
ROLE_ADMIN = "admin"
ROLES = (ROLE_CLIENT, ROLE_CONSULTANT, ROLE_ADMIN)

INQUIRY_PENDING = "pending"
INQUIRY_CLAIMED = "claimed"

APPOINTMENT_CONFIRMED = "confirmed"


def generate_public_id():
    """Generate a unique public ID for inquiries and appointments"""
    return str(uuid.uuid4())


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    roles = relationship("UserRole", back_populates="profile", cascade="all, delete-orphan")
    google_integration = relationship(
        "GoogleCalendarIntegration",
        back_populates="profile",
        uselist=False,
        cascade="all, delete-orphan",
    )
    fna_snapshot = relationship("FnaSnapshot", back_populates="client", uselist=False)


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("profile_id", "role", name="uq_user_roles_profile_role"),)

    id = Column(Integer, primary_key=True, index=True)
    profile_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False)  # client, consultant, admin
    created_at = Column(DateTime, server_default=func.now())

    profile = relationship("Profile", back_populates="roles")


class Inquiry(Base):
    __tablename__ = "inquiries"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    # name, gender, birth_date, email, four has_* qualifiers, financial_goals (ordered)
    form_data = Column(JSON, nullable=False)
    requested_time = Column(DateTime, nullable=False)  # UTC
    status = Column(String(20), nullable=False, default=INQUIRY_PENDING, index=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    appointment = relationship("Appointment", back_populates="inquiry", uselist=False)


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (Index("ix_appointments_consultant_start", "consultant_id", "start_time"),)

    id = Column(String(36), primary_key=True, default=generate_public_id)
    client_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    consultant_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    inquiry_id = Column(String(36), ForeignKey("inquiries.id"), nullable=False, unique=True)
    start_time = Column(DateTime, nullable=False)  # UTC
    end_time = Column(DateTime, nullable=False)  # UTC, start_time + duration
    status = Column(String(20), nullable=False, default=APPOINTMENT_CONFIRMED)
    meeting_link = Column(String(500), nullable=True)
    google_event_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    client = relationship("Profile", foreign_keys=[client_id])
    consultant = relationship("Profile", foreign_keys=[consultant_id])
    inquiry = relationship("Inquiry", back_populates="appointment")


# PostgreSQL-only backstop for the application-level conflict check:
# no two appointments of a consultant may share any instant.
# Requires the btree_gist extension (created at startup, see main.py).
Appointment.__table__.append_constraint(
    ExcludeConstraint(
        (Appointment.__table__.c.consultant_id, "="),
        (func.tsrange(Appointment.__table__.c.start_time, Appointment.__table__.c.end_time), "&&"),
        name="ex_appointments_consultant_overlap",
        using="gist",
    ).ddl_if(dialect="postgresql")
)


class FnaSnapshot(Base):
    __tablename__ = "fna_snapshots"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, unique=True)
    # step name -> that step's payload
    fna_data = Column(JSON, nullable=False, default=dict)
    completed_at = Column(DateTime, nullable=True)
    last_updated = Column(DateTime, nullable=False)

    client = relationship("Profile", back_populates="fna_snapshot")


# Registered here so the Profile.google_integration relationship always resolves
from .models_google_calendar import GoogleCalendarIntegration  # noqa: E402,F401
