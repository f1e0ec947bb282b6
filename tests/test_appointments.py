"""Tests for the inquiry acceptance workflow."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import pytest

from app.auth import SessionContext
from app.domain.appointments.schemas import Accepted, NeedsAuthorization, SchedulingConflict
from app.domain.appointments.service import AppointmentService
from app.errors import DownstreamServiceError, InquiryNotFoundError, ProfileMissingError
from app.models import APPOINTMENT_CONFIRMED, INQUIRY_CLAIMED, INQUIRY_PENDING, Appointment, Inquiry, Profile
from app.services.identity_service import IdentityError

TEN_AM_UTC = datetime(2030, 1, 7, 10, 0)


@pytest.fixture
def consultant(make_profile):
    return make_profile("advisor@example.com", roles=("consultant",), full_name="陳顧問", google=True)


@pytest.fixture
def workflow_mocks():
    """Identity provider, calendar and both notification senders."""
    with patch(
        "app.services.identity_service.create_client_user", return_value="uid-new-client"
    ) as create_user, patch(
        "app.services.google_calendar_service.create_meeting_event", new=AsyncMock(return_value=None)
    ) as calendar, patch(
        "app.domain.appointments.service.send_appointment_confirmed_to_client", new=AsyncMock()
    ) as client_email, patch(
        "app.domain.appointments.service.send_new_appointment_to_consultant", new=AsyncMock()
    ) as consultant_email:
        yield {
            "create_user": create_user,
            "calendar": calendar,
            "client_email": client_email,
            "consultant_email": consultant_email,
        }


def add_existing_appointment(db, make_profile, make_inquiry, consultant, start):
    other_client = make_profile("existing@example.com")
    other_inquiry = make_inquiry(requested_time=start, email="existing@example.com", status=INQUIRY_CLAIMED)
    db.add(
        Appointment(
            client_id=other_client.id,
            consultant_id=consultant.id,
            inquiry_id=other_inquiry.id,
            start_time=start,
            end_time=start + timedelta(hours=1),
            status=APPOINTMENT_CONFIRMED,
        )
    )
    db.commit()


class TestAcceptInquiry:
    @pytest.mark.asyncio
    async def test_happy_path(self, db, consultant, make_inquiry, session_for, workflow_mocks):
        inquiry = make_inquiry(requested_time=TEN_AM_UTC)

        result = await AppointmentService(db).accept_inquiry(session_for(consultant), inquiry.id)

        assert isinstance(result, Accepted)
        appointments = db.query(Appointment).filter(Appointment.inquiry_id == inquiry.id).all()
        assert len(appointments) == 1
        appointment = appointments[0]
        assert appointment.status == APPOINTMENT_CONFIRMED
        assert appointment.consultant_id == consultant.id
        assert appointment.start_time == TEN_AM_UTC
        assert appointment.end_time == TEN_AM_UTC + timedelta(hours=1)
        assert appointment.meeting_link.startswith("https://meet.google.com/")

        db.expire_all()
        assert db.get(Inquiry, inquiry.id).status == INQUIRY_CLAIMED

        workflow_mocks["create_user"].assert_called_once()
        email, name, password = workflow_mocks["create_user"].call_args.args
        assert (email, name) == ("client@example.com", "王小明")
        assert len(password) >= 12

        client = db.query(Profile).filter(Profile.firebase_uid == "uid-new-client").one()
        assert appointment.client_id == client.id
        assert {r.role for r in client.roles} == {"client"}

    @pytest.mark.asyncio
    async def test_notifications_carry_credentials_and_local_time(
        self, db, consultant, make_inquiry, session_for, workflow_mocks
    ):
        inquiry = make_inquiry(requested_time=datetime(2030, 1, 7, 2, 0))

        result = await AppointmentService(db).accept_inquiry(session_for(consultant), inquiry.id)

        password = workflow_mocks["create_user"].call_args.args[2]
        client_kwargs = workflow_mocks["client_email"].await_args.kwargs
        assert client_kwargs["temporary_password"] == password
        assert client_kwargs["appointment_time"] == "10:00"  # Asia/Taipei
        assert client_kwargs["consultant_name"] == "陳顧問"

        consultant_kwargs = workflow_mocks["consultant_email"].await_args.kwargs
        assert consultant_kwargs["to"] == "advisor@example.com"
        assert consultant_kwargs["client_email"] == "client@example.com"
        assert result.notifications_sent == 2

    @pytest.mark.asyncio
    async def test_conflict_leaves_everything_untouched(
        self, db, consultant, make_profile, make_inquiry, session_for, workflow_mocks
    ):
        add_existing_appointment(db, make_profile, make_inquiry, consultant, TEN_AM_UTC)
        inquiry = make_inquiry(requested_time=TEN_AM_UTC + timedelta(minutes=30))

        result = await AppointmentService(db).accept_inquiry(session_for(consultant), inquiry.id)

        assert isinstance(result, SchedulingConflict)
        assert result.to_dict() == {"conflict": True, "message": "此時段您已有其他預約"}
        assert db.query(Appointment).count() == 1
        db.expire_all()
        assert db.get(Inquiry, inquiry.id).status == INQUIRY_PENDING
        workflow_mocks["create_user"].assert_not_called()

    @pytest.mark.asyncio
    async def test_touching_intervals_conflict(
        self, db, consultant, make_profile, make_inquiry, session_for, workflow_mocks
    ):
        add_existing_appointment(db, make_profile, make_inquiry, consultant, TEN_AM_UTC)
        inquiry = make_inquiry(requested_time=TEN_AM_UTC + timedelta(hours=1))

        result = await AppointmentService(db).accept_inquiry(session_for(consultant), inquiry.id)

        assert isinstance(result, SchedulingConflict)

    @pytest.mark.asyncio
    async def test_other_consultants_schedule_is_ignored(
        self, db, consultant, make_profile, make_inquiry, session_for, workflow_mocks
    ):
        colleague = make_profile("colleague@example.com", roles=("consultant",))
        add_existing_appointment(db, make_profile, make_inquiry, colleague, TEN_AM_UTC)
        inquiry = make_inquiry(requested_time=TEN_AM_UTC)

        result = await AppointmentService(db).accept_inquiry(session_for(consultant), inquiry.id)

        assert isinstance(result, Accepted)

    @pytest.mark.asyncio
    async def test_missing_google_authorization_returns_auth_url(
        self, db, make_profile, make_inquiry, session_for, workflow_mocks
    ):
        consultant = make_profile("new-advisor@example.com", roles=("consultant",))
        inquiry = make_inquiry()

        result = await AppointmentService(db).accept_inquiry(session_for(consultant), inquiry.id)

        assert isinstance(result, NeedsAuthorization)
        body = result.to_dict()
        assert body["needsAuth"] is True
        params = parse_qs(urlparse(body["authUrl"]).query)
        assert params["access_type"] == ["offline"]
        assert params["prompt"] == ["consent"]
        assert "https://www.googleapis.com/auth/gmail.send" in params["scope"][0]
        assert "https://www.googleapis.com/auth/calendar" in params["scope"][0]
        assert db.query(Appointment).count() == 0
        workflow_mocks["create_user"].assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_inquiry(self, db, consultant, session_for, workflow_mocks):
        with pytest.raises(InquiryNotFoundError):
            await AppointmentService(db).accept_inquiry(session_for(consultant), "does-not-exist")

    @pytest.mark.asyncio
    async def test_already_claimed_inquiry(self, db, consultant, make_inquiry, session_for, workflow_mocks):
        inquiry = make_inquiry(status=INQUIRY_CLAIMED)
        with pytest.raises(InquiryNotFoundError) as exc_info:
            await AppointmentService(db).accept_inquiry(session_for(consultant), inquiry.id)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_second_acceptance_of_same_inquiry_fails(
        self, db, consultant, make_inquiry, session_for, workflow_mocks
    ):
        inquiry = make_inquiry()
        service = AppointmentService(db)
        await service.accept_inquiry(session_for(consultant), inquiry.id)

        with pytest.raises(InquiryNotFoundError):
            await service.accept_inquiry(session_for(consultant), inquiry.id)
        assert workflow_mocks["create_user"].call_count == 1

    @pytest.mark.asyncio
    async def test_missing_consultant_profile(self, db, consultant, make_inquiry, session_for, workflow_mocks):
        inquiry = make_inquiry()
        ghost = SessionContext(uid="ghost", profile_id=9999, email="ghost@example.com", capabilities=frozenset({"consultant"}))

        with pytest.raises(ProfileMissingError):
            await AppointmentService(db).accept_inquiry(ghost, inquiry.id)

    @pytest.mark.asyncio
    async def test_identity_failure_is_a_downstream_error(
        self, db, consultant, make_inquiry, session_for, workflow_mocks
    ):
        workflow_mocks["create_user"].side_effect = IdentityError("email exists")
        inquiry = make_inquiry()

        with pytest.raises(DownstreamServiceError) as exc_info:
            await AppointmentService(db).accept_inquiry(session_for(consultant), inquiry.id)

        assert exc_info.value.status_code == 400
        assert db.query(Appointment).count() == 0
        db.expire_all()
        assert db.get(Inquiry, inquiry.id).status == INQUIRY_PENDING

    @pytest.mark.asyncio
    async def test_notification_failures_never_undo_the_booking(
        self, db, consultant, make_inquiry, session_for, workflow_mocks
    ):
        workflow_mocks["client_email"].side_effect = RuntimeError("resend down")
        workflow_mocks["consultant_email"].side_effect = RuntimeError("resend down")
        inquiry = make_inquiry()

        result = await AppointmentService(db).accept_inquiry(session_for(consultant), inquiry.id)

        assert isinstance(result, Accepted)
        assert result.notifications_sent == 0
        assert db.query(Appointment).count() == 1

    @pytest.mark.asyncio
    async def test_calendar_event_replaces_generated_link(
        self, db, consultant, make_inquiry, session_for, workflow_mocks
    ):
        workflow_mocks["calendar"].return_value = {"event_id": "evt-1", "meet_link": "https://meet.google.com/abc-defg-hij"}
        inquiry = make_inquiry()

        result = await AppointmentService(db).accept_inquiry(session_for(consultant), inquiry.id)

        assert result.appointment.google_event_id == "evt-1"
        assert result.appointment.meeting_link == "https://meet.google.com/abc-defg-hij"
        assert workflow_mocks["client_email"].await_args.kwargs["meeting_link"] == "https://meet.google.com/abc-defg-hij"

    @pytest.mark.asyncio
    async def test_accepted_serializes_appointment(self, db, consultant, make_inquiry, session_for, workflow_mocks):
        inquiry = make_inquiry(requested_time=TEN_AM_UTC)

        body = (await AppointmentService(db).accept_inquiry(session_for(consultant), inquiry.id)).to_dict()

        assert body["success"] is True
        assert body["appointment"]["inquiry_id"] == inquiry.id
        assert body["appointment"]["start_time"] == "2030-01-07T10:00:00Z"
