"""
Google OAuth + Calendar access for consultants.

Consultants authorize calendar and mail-send access once; tokens are stored
Fernet-encrypted on GoogleCalendarIntegration. The OAuth ``state`` parameter
is itself a Fernet token wrapping the consultant's profile id, so the
callback can trust it without a server-side session.
"""

import base64
import hashlib
import json
import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

import httpx
from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.orm import Session

from ..config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI, SECRET_KEY
from ..models_google_calendar import GoogleCalendarIntegration
from ..shared.validators import utc_now

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"

GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/userinfo.email",
]

STATE_TTL_SECONDS = 3600


class GoogleAuthError(Exception):
    pass


def get_cipher() -> Fernet:
    """Fernet cipher derived from SECRET_KEY"""
    key = hashlib.sha256(SECRET_KEY.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(key))


def encrypt_token(value: str) -> str:
    return get_cipher().encrypt(value.encode()).decode()


def decrypt_token(value: str) -> str:
    return get_cipher().decrypt(value.encode()).decode()


def encode_state(consultant_id: int) -> str:
    payload = json.dumps({"consultant_id": consultant_id, "nonce": secrets.token_urlsafe(8)})
    return encrypt_token(payload)


def decode_state(state: str, ttl: int = STATE_TTL_SECONDS) -> int:
    """Return the consultant id carried by ``state``; raises GoogleAuthError if forged or expired"""
    try:
        payload = json.loads(get_cipher().decrypt(state.encode(), ttl=ttl).decode())
        return int(payload["consultant_id"])
    except (InvalidToken, ValueError, KeyError, TypeError) as e:
        raise GoogleAuthError("Invalid or expired authorization state") from e


def build_authorization_url(consultant_id: int) -> str:
    """Consent URL requesting offline calendar + mail-send access"""
    if not GOOGLE_CLIENT_ID:
        raise GoogleAuthError("Google OAuth not configured")

    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join(GOOGLE_SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "include_granted_scopes": "true",
        "state": encode_state(consultant_id),
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def get_integration(db: Session, profile_id: int) -> Optional[GoogleCalendarIntegration]:
    return (
        db.query(GoogleCalendarIntegration)
        .filter(GoogleCalendarIntegration.profile_id == profile_id)
        .first()
    )


async def exchange_code(code: str) -> dict:
    """Exchange an authorization code for tokens plus the Google account email"""
    async with httpx.AsyncClient(timeout=15) as client:
        token_response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "redirect_uri": GOOGLE_REDIRECT_URI,
                "grant_type": "authorization_code",
            },
        )
        if token_response.status_code != 200:
            logger.error(f"❌ Token exchange failed: HTTP {token_response.status_code}")
            raise GoogleAuthError("Failed to exchange authorization code")

        tokens = token_response.json()
        if not tokens.get("access_token") or not tokens.get("refresh_token"):
            raise GoogleAuthError("Invalid token response")

        user_info_response = await client.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {tokens['access_token']}"},
        )
        if user_info_response.status_code == 200:
            tokens["email"] = user_info_response.json().get("email")
        else:
            logger.warning(f"⚠️ Failed to get Google user info: HTTP {user_info_response.status_code}")

    return tokens


def save_integration(db: Session, profile_id: int, tokens: dict) -> GoogleCalendarIntegration:
    """Upsert the consultant's encrypted authorization bundle"""
    expires_at = utc_now() + timedelta(seconds=int(tokens.get("expires_in", 3600)))
    integration = get_integration(db, profile_id)

    if integration is None:
        integration = GoogleCalendarIntegration(profile_id=profile_id, google_calendar_id="primary")
        db.add(integration)

    integration.access_token = encrypt_token(tokens["access_token"])
    integration.refresh_token = encrypt_token(tokens["refresh_token"])
    integration.token_expires_at = expires_at
    integration.scopes = tokens.get("scope")
    integration.google_user_email = tokens.get("email")

    db.commit()
    db.refresh(integration)
    logger.info(f"✅ Google authorization stored for profile {profile_id}")
    return integration


async def revoke_and_delete(db: Session, integration: GoogleCalendarIntegration) -> None:
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            await client.post(GOOGLE_REVOKE_URL, params={"token": decrypt_token(integration.refresh_token)})
    except (httpx.HTTPError, InvalidToken) as e:
        logger.warning(f"⚠️ Failed to revoke Google tokens: {e}")

    db.delete(integration)
    db.commit()


async def get_valid_access_token(integration: GoogleCalendarIntegration, db: Session) -> Optional[str]:
    """
    Get a valid access token, refreshing if necessary
    Returns None if refresh fails
    """
    try:
        # Refresh when expired or about to expire (within 5 minutes)
        if integration.token_expires_at > utc_now() + timedelta(minutes=5):
            return decrypt_token(integration.access_token)

        logger.info("🔄 Google token expired, refreshing...")
        async with httpx.AsyncClient(timeout=15) as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": GOOGLE_CLIENT_ID,
                    "client_secret": GOOGLE_CLIENT_SECRET,
                    "refresh_token": decrypt_token(integration.refresh_token),
                    "grant_type": "refresh_token",
                },
            )

        if response.status_code != 200:
            logger.error(f"❌ Token refresh failed: HTTP {response.status_code}")
            return None

        tokens = response.json()
        new_access_token = tokens.get("access_token")
        if not new_access_token:
            logger.error("❌ No access token in refresh response")
            return None

        integration.access_token = encrypt_token(new_access_token)
        integration.token_expires_at = utc_now() + timedelta(seconds=int(tokens.get("expires_in", 3600)))
        db.commit()

        logger.info("✅ Google token refreshed successfully")
        return new_access_token

    except (httpx.HTTPError, InvalidToken) as e:
        logger.error(f"❌ Error getting valid access token: {e}")
        return None


def generate_meeting_link() -> str:
    """Meet-style placeholder link used until (or unless) the calendar event supplies one"""
    letters = string.ascii_lowercase
    parts = ("".join(secrets.choice(letters) for _ in range(n)) for n in (3, 4, 3))
    return "https://meet.google.com/" + "-".join(parts)


async def create_meeting_event(
    integration: GoogleCalendarIntegration,
    db: Session,
    summary: str,
    description: str,
    start_time: datetime,
    end_time: datetime,
    attendee_emails: list[str],
) -> Optional[dict]:
    """
    Create a calendar event with a Google Meet conference.

    start_time/end_time are naive UTC. Returns {"event_id", "meet_link"} or
    None if the event could not be created.
    """
    access_token = await get_valid_access_token(integration, db)
    if not access_token:
        return None

    calendar_id = integration.google_calendar_id or "primary"
    event = {
        "summary": summary,
        "description": description,
        "start": {"dateTime": start_time.isoformat() + "Z", "timeZone": "UTC"},
        "end": {"dateTime": end_time.isoformat() + "Z", "timeZone": "UTC"},
        "attendees": [{"email": email} for email in attendee_emails if email],
        "conferenceData": {
            "createRequest": {
                "requestId": secrets.token_hex(8),
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
            }
        },
    }

    try:
        async with httpx.AsyncClient(timeout=15) as client:
            response = await client.post(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
                params={"conferenceDataVersion": 1, "sendUpdates": "all"},
                headers={"Authorization": f"Bearer {access_token}"},
                json=event,
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Calendar event request failed: {e}")
        return None

    if response.status_code not in (200, 201):
        logger.error(f"❌ Failed to create calendar event: HTTP {response.status_code}")
        return None

    created = response.json()
    logger.info(f"📅 Calendar event created: {created.get('id')}")
    return {"event_id": created.get("id"), "meet_link": created.get("hangoutLink")}
