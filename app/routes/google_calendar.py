"""
Google Calendar Integration Routes
Handles the consultant OAuth callback, connection status and disconnect
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..auth import SessionContext, require_consultant
from ..config import FRONTEND_URL
from ..database import get_db
from ..models import Profile
from ..services import google_calendar_service as google

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/google-calendar", tags=["google-calendar"])


@router.get("/connect")
async def initiate_google_oauth(session: SessionContext = Depends(require_consultant)):
    """Consent URL for a consultant who wants to connect ahead of accepting inquiries"""
    try:
        return {"authorization_url": google.build_authorization_url(session.profile_id)}
    except google.GoogleAuthError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.get("/callback")
async def handle_google_oauth_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Google redirects here after consent; the state identifies the consultant"""
    if error:
        logger.warning(f"⚠️ Google authorization declined: {error}")
        return RedirectResponse(f"{FRONTEND_URL}/consultant/inquiries?google=denied")

    if not code or not state:
        raise HTTPException(status_code=400, detail="Missing authorization code or state")

    try:
        consultant_id = google.decode_state(state)
    except google.GoogleAuthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    if db.query(Profile).filter(Profile.id == consultant_id).first() is None:
        raise HTTPException(status_code=400, detail="Failed to fetch consultant profile")

    try:
        tokens = await google.exchange_code(code)
    except google.GoogleAuthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    google.save_integration(db, consultant_id, tokens)
    return RedirectResponse(f"{FRONTEND_URL}/consultant/inquiries?google=connected")


@router.get("/status")
async def get_google_status(
    session: SessionContext = Depends(require_consultant), db: Session = Depends(get_db)
):
    integration = google.get_integration(db, session.profile_id)
    if not integration:
        return {"connected": False, "user_email": None, "calendar_id": None}

    return {
        "connected": True,
        "user_email": integration.google_user_email,
        "calendar_id": integration.google_calendar_id,
    }


@router.post("/disconnect")
async def disconnect_google(
    session: SessionContext = Depends(require_consultant), db: Session = Depends(get_db)
):
    integration = google.get_integration(db, session.profile_id)
    if not integration:
        raise HTTPException(status_code=404, detail="Google Calendar not connected")

    await google.revoke_and_delete(db, integration)
    logger.info(f"✅ Google disconnected for profile {session.profile_id}")
    return {"success": True, "message": "Google Calendar disconnected"}
