"""Pytest configuration and fixtures for test suite."""

import os
from datetime import date, datetime, timedelta
from unittest.mock import patch

import pytest

# Set test environment BEFORE any app imports; config is read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-google-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-google-client-secret")
os.environ.setdefault("RESEND_API_KEY", "re_test_key")
os.environ.setdefault("APP_TIMEZONE", "Asia/Taipei")
os.environ.setdefault("AUTOSAVE_QUIET_PERIOD_MS", "50")
os.environ.setdefault("FIREBASE_PROJECT_ID", "test-project")


@pytest.fixture
def db():
    """Fresh schema on the shared in-memory database for every test."""
    from app import models  # noqa: F401
    from app.database import Base, SessionLocal, engine

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_profile(db):
    """Create a profile with roles (and optionally a stored Google authorization)."""
    from app.models import Profile, UserRole
    from app.models_google_calendar import GoogleCalendarIntegration
    from app.services.google_calendar_service import encrypt_token
    from app.shared.validators import utc_now

    def _make(email, roles=("client",), full_name=None, uid=None, google=False):
        profile = Profile(
            firebase_uid=uid or f"uid-{email}",
            email=email,
            full_name=full_name or email.split("@")[0],
        )
        for role in roles:
            profile.roles.append(UserRole(role=role))
        if google:
            profile.google_integration = GoogleCalendarIntegration(
                access_token=encrypt_token("access"),
                refresh_token=encrypt_token("refresh"),
                token_expires_at=utc_now() + timedelta(hours=1),
                google_calendar_id="primary",
            )
        db.add(profile)
        db.commit()
        db.refresh(profile)
        return profile

    return _make


@pytest.fixture
def session_for():
    """SessionContext for a profile, bypassing token verification."""
    from app.auth import SessionContext

    def _session(profile, *capabilities):
        caps = capabilities or tuple(role.role for role in profile.roles)
        return SessionContext(
            uid=profile.firebase_uid,
            profile_id=profile.id,
            email=profile.email,
            full_name=profile.full_name or "",
            capabilities=frozenset(caps),
        )

    return _session


def future_slot(days=3, slot="10:00"):
    """A bookable (date, time) pair in business-local time."""
    from app.shared.validators import business_tz

    day = datetime.now(business_tz()).date() + timedelta(days=days)
    return day.isoformat(), slot


def inquiry_payload(**overrides):
    appointment_date, appointment_time = future_slot()
    payload = {
        "name": "王小明",
        "gender": "male",
        "birth_date": "1990-05-20",
        "email": "client@example.com",
        "has_children": True,
        "has_insurance": False,
        "has_mortgage": True,
        "has_investment": False,
        "financial_goals": [
            "retirement",
            "children_education",
            "property",
            "wealth_growth",
            "risk_protection",
        ],
        "appointment_date": appointment_date,
        "appointment_time": appointment_time,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_inquiry(db):
    """Insert an inquiry directly; requested_time is naive UTC."""
    from app.models import INQUIRY_PENDING, Inquiry

    def _make(requested_time=datetime(2030, 1, 7, 2, 0), email="client@example.com", name="王小明", status=INQUIRY_PENDING):
        inquiry = Inquiry(
            form_data={"name": name, "email": email, "gender": "male", "birth_date": date(1990, 5, 20).isoformat()},
            requested_time=requested_time,
            status=status,
        )
        db.add(inquiry)
        db.commit()
        db.refresh(inquiry)
        return inquiry

    return _make


@pytest.fixture
def api(db):
    """
    TestClient with token verification mocked: the bearer token is the
    profile's firebase uid, e.g. headers={"Authorization": "Bearer uid-a@b.com"}.
    """
    from fastapi.testclient import TestClient

    from app.main import app

    def fake_verify(token):
        return {"uid": token, "email": token.removeprefix("uid-") if "@" in token else f"{token}@example.com"}

    with patch("app.services.identity_service.verify_id_token", side_effect=fake_verify):
        with TestClient(app) as client:
            yield client


def auth_headers(profile):
    return {"Authorization": f"Bearer {profile.firebase_uid}"}
