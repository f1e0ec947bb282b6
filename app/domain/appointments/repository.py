"""Appointment repository - Database operations for appointments"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import ROLE_CLIENT, Appointment, Profile, UserRole


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def lock_profile(db: Session, profile_id: int) -> Optional[Profile]:
        """
        Lock the consultant's profile row. Every acceptance for this consultant
        serializes on it, so check-then-insert cannot interleave.
        """
        return db.query(Profile).filter(Profile.id == profile_id).with_for_update().first()

    @staticmethod
    def find_overlapping(db: Session, consultant_id: int, start: datetime, end: datetime) -> list[Appointment]:
        """Inclusive overlap: existing.start <= end AND existing.end >= start"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.consultant_id == consultant_id,
                Appointment.start_time <= end,
                Appointment.end_time >= start,
            )
            .all()
        )

    @staticmethod
    def find_or_create_client_profile(db: Session, firebase_uid: str, email: str, full_name: str) -> Profile:
        """Local profile + client role for a newly provisioned identity. Does not commit."""
        profile = db.query(Profile).filter(Profile.email == email).first()
        if profile is None:
            profile = Profile(firebase_uid=firebase_uid, email=email, full_name=full_name)
            db.add(profile)
        else:
            # Stale row left behind by a deleted identity
            profile.firebase_uid = firebase_uid
            profile.full_name = profile.full_name or full_name

        if not any(role.role == ROLE_CLIENT for role in profile.roles):
            profile.roles.append(UserRole(role=ROLE_CLIENT))
        db.flush()
        return profile

    @staticmethod
    def add_appointment(db: Session, **fields) -> Appointment:
        """Stage an appointment in the current transaction. Does not commit."""
        appointment = Appointment(**fields)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def get_for_profile(db: Session, profile_id: int) -> list[Appointment]:
        """Appointments where the profile is either side, soonest first"""
        return (
            db.query(Appointment)
            .filter(or_(Appointment.client_id == profile_id, Appointment.consultant_id == profile_id))
            .order_by(Appointment.start_time.asc())
            .all()
        )

    @staticmethod
    def get_between(db: Session, consultant_id: int, client_id: int) -> list[Appointment]:
        return (
            db.query(Appointment)
            .filter(Appointment.consultant_id == consultant_id, Appointment.client_id == client_id)
            .order_by(Appointment.start_time.asc())
            .all()
        )

    @staticmethod
    def get_profile(db: Session, profile_id: int) -> Optional[Profile]:
        return db.query(Profile).filter(Profile.id == profile_id).first()
