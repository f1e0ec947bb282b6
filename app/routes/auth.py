import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import SessionContext, get_current_session
from ..database import get_db
from ..email_service import send_password_reset_email
from ..models import Profile
from ..rate_limiter import create_rate_limiter
from ..schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    MessageResponse,
    ProfileResponse,
    ProfileUpdate,
)
from ..services import identity_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

rate_limit_password_reset = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="password_reset")

RESET_REQUESTED_MESSAGE = "If an account exists for this email, a password reset link has been sent."


def _profile_response(profile: Profile, session: SessionContext) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        firebase_uid=profile.firebase_uid,
        full_name=profile.full_name,
        email=profile.email,
        capabilities=sorted(session.capabilities),
        created_at=profile.created_at,
    )


def _get_profile(db: Session, session: SessionContext) -> Profile:
    profile = db.query(Profile).filter(Profile.id == session.profile_id).first()
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.get("/me", response_model=ProfileResponse)
async def get_me(session: SessionContext = Depends(get_current_session), db: Session = Depends(get_db)):
    return _profile_response(_get_profile(db, session), session)


@router.patch("/me", response_model=ProfileResponse)
async def update_me(
    data: ProfileUpdate,
    session: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    profile = _get_profile(db, session)
    if data.full_name is not None:
        profile.full_name = data.full_name
        db.commit()
        db.refresh(profile)
    return _profile_response(profile, session)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: ForgotPasswordRequest,
    _: None = Depends(rate_limit_password_reset),
):
    """Send a reset link. The response is identical whether or not the account exists."""
    try:
        reset_link = identity_service.generate_password_reset_link(data.email)
    except identity_service.IdentityError as e:
        logger.error(f"❌ Password reset link failed: {e}")
        return MessageResponse(message=RESET_REQUESTED_MESSAGE)

    if reset_link:
        try:
            await send_password_reset_email(data.email, reset_link)
        except Exception as e:
            logger.error(f"❌ Password reset email failed: {e}")

    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    session: SessionContext = Depends(get_current_session),
):
    """Replace the temporary password handed out at account provisioning"""
    try:
        identity_service.update_password(session.uid, data.new_password)
    except identity_service.IdentityError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return MessageResponse(message="Password updated successfully")
