"""
Appointment service - inquiry acceptance workflow and appointment views.

Acceptance order: inquiry -> consultant profile -> Google authorization ->
conflict check -> client identity -> appointment + inquiry claim (one commit)
-> calendar event and notifications (best-effort, after commit).
"""

import asyncio
import logging
from datetime import timedelta
from typing import Union

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...auth import SessionContext
from ...config import APPOINTMENT_DURATION_MINUTES
from ...email_service import send_appointment_confirmed_to_client, send_new_appointment_to_consultant
from ...errors import DownstreamServiceError, InquiryNotFoundError, ProfileMissingError
from ...models import APPOINTMENT_CONFIRMED, INQUIRY_CLAIMED, Appointment
from ...services import google_calendar_service as google
from ...services import identity_service
from ...shared.validators import to_business_time
from ..fna.repository import FnaRepository
from ..inquiries.repository import InquiryRepository
from .repository import AppointmentRepository
from .schemas import Accepted, NeedsAuthorization, SchedulingConflict

logger = logging.getLogger(__name__)

AcceptResult = Union[NeedsAuthorization, SchedulingConflict, Accepted]


class AppointmentService:
    """Service layer for appointments"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AppointmentRepository()
        self.inquiries = InquiryRepository()

    async def accept_inquiry(self, session: SessionContext, inquiry_id: str) -> AcceptResult:
        consultant_id = session.profile_id
        logger.info(f"🔍 Processing inquiry {inquiry_id} by consultant {consultant_id}")

        # Lock order is always consultant profile, then inquiry
        consultant = self.repo.lock_profile(self.db, consultant_id)
        inquiry = self.inquiries.get_pending_for_update(self.db, inquiry_id)

        if inquiry is None:
            self.db.rollback()
            raise InquiryNotFoundError()
        if consultant is None:
            self.db.rollback()
            raise ProfileMissingError()

        if consultant.google_integration is None:
            self.db.rollback()
            logger.info(f"🔑 Consultant {consultant_id} needs Google authorization")
            try:
                return NeedsAuthorization(auth_url=google.build_authorization_url(consultant_id))
            except google.GoogleAuthError as e:
                raise DownstreamServiceError(str(e), status_code=400) from e

        start_time = inquiry.requested_time
        end_time = start_time + timedelta(minutes=APPOINTMENT_DURATION_MINUTES)

        if self.repo.find_overlapping(self.db, consultant_id, start_time, end_time):
            self.db.rollback()
            logger.info(f"📅 Conflict for consultant {consultant_id} at {start_time}")
            return SchedulingConflict()

        client_email = inquiry.form_data["email"]
        client_name = inquiry.form_data["name"]
        temporary_password = identity_service.generate_temporary_password()

        try:
            client_uid = identity_service.create_client_user(client_email, client_name, temporary_password)
        except identity_service.IdentityError as e:
            self.db.rollback()
            logger.error(f"❌ Error creating client account for inquiry {inquiry_id}: {e}")
            raise DownstreamServiceError(f"Failed to create client account: {e}", status_code=400) from e

        try:
            client = self.repo.find_or_create_client_profile(self.db, client_uid, client_email, client_name)
            appointment = self.repo.add_appointment(
                self.db,
                client_id=client.id,
                consultant_id=consultant_id,
                inquiry_id=inquiry.id,
                start_time=start_time,
                end_time=end_time,
                status=APPOINTMENT_CONFIRMED,
                meeting_link=google.generate_meeting_link(),
            )
            inquiry.status = INQUIRY_CLAIMED
            self.db.commit()
        except IntegrityError as e:
            # Exclusion constraint or unique inquiry_id: another acceptance won the race
            self.db.rollback()
            logger.warning(f"⚠️ Identity {client_uid} was provisioned but appointment insert failed: {e}")
            raise DownstreamServiceError("Failed to create appointment", status_code=400) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Error creating appointment for inquiry {inquiry_id}: {e}")
            raise DownstreamServiceError("Failed to create appointment", status_code=400) from e

        self.db.refresh(appointment)
        logger.info(f"✅ Appointment {appointment.id} created for inquiry {inquiry_id}")

        await self._attach_calendar_event(appointment, consultant.google_integration, client_name, client_email)
        sent = await self._notify(appointment, consultant, client_name, client_email, temporary_password)
        return Accepted(appointment=appointment, notifications_sent=sent)

    async def _attach_calendar_event(self, appointment: Appointment, integration, client_name: str, client_email: str):
        try:
            event = await google.create_meeting_event(
                integration,
                self.db,
                summary=f"財務需求分析諮詢 - {client_name}",
                description="Financial needs analysis consultation",
                start_time=appointment.start_time,
                end_time=appointment.end_time,
                attendee_emails=[client_email],
            )
        except Exception as e:
            logger.warning(f"⚠️ Calendar event failed for appointment {appointment.id}: {e}")
            return

        if not event:
            return
        appointment.google_event_id = event.get("event_id")
        if event.get("meet_link"):
            appointment.meeting_link = event["meet_link"]
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Could not store calendar event for appointment {appointment.id}: {e}")

    async def _notify(self, appointment: Appointment, consultant, client_name: str, client_email: str, temporary_password: str) -> int:
        """Send both emails concurrently; failures are logged, never raised"""
        local_start = to_business_time(appointment.start_time)
        appointment_date = local_start.strftime("%Y-%m-%d")
        appointment_time = local_start.strftime("%H:%M")
        consultant_name = consultant.full_name or consultant.email

        results = await asyncio.gather(
            send_appointment_confirmed_to_client(
                to=client_email,
                client_name=client_name,
                consultant_name=consultant_name,
                appointment_date=appointment_date,
                appointment_time=appointment_time,
                meeting_link=appointment.meeting_link,
                temporary_password=temporary_password,
            ),
            send_new_appointment_to_consultant(
                to=consultant.email,
                consultant_name=consultant_name,
                client_name=client_name,
                client_email=client_email,
                appointment_date=appointment_date,
                appointment_time=appointment_time,
                meeting_link=appointment.meeting_link,
            ),
            return_exceptions=True,
        )

        sent = 0
        for recipient, result in zip(("client", "consultant"), results):
            if isinstance(result, BaseException):
                logger.error(f"❌ Error sending {recipient} email for appointment {appointment.id}: {result}")
            else:
                sent += 1
        return sent

    def get_appointments(self, session: SessionContext) -> list[Appointment]:
        return self.repo.get_for_profile(self.db, session.profile_id)

    def get_client_view(self, session: SessionContext, client_id: int) -> dict:
        """A consultant sees a client only if they share an appointment; admins see everyone"""
        client = self.repo.get_profile(self.db, client_id)
        if client is None:
            raise HTTPException(status_code=404, detail="Client not found")

        if session.is_admin:
            appointments = [a for a in self.repo.get_for_profile(self.db, client_id) if a.client_id == client_id]
        else:
            appointments = self.repo.get_between(self.db, session.profile_id, client_id)
            if not appointments:
                raise HTTPException(status_code=404, detail="Client not found")

        snapshot = FnaRepository.get_snapshot(self.db, client_id)
        return {
            "client": client,
            "appointments": appointments,
            "fna_data": dict(snapshot.fna_data or {}) if snapshot else {},
            "fna_completed_at": snapshot.completed_at if snapshot else None,
            "fna_last_updated": snapshot.last_updated if snapshot else None,
        }
