import logging
from dataclasses import dataclass, field

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models import ROLE_ADMIN, ROLE_CLIENT, ROLE_CONSULTANT, ROLES, Profile, UserRole
from .services import identity_service

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class SessionContext:
    """Authenticated caller, passed explicitly to every service that needs it"""

    uid: str
    profile_id: int
    email: str
    full_name: str = ""
    capabilities: frozenset = field(default_factory=frozenset)

    def has(self, capability: str) -> bool:
        return capability in self.capabilities

    @property
    def is_admin(self) -> bool:
        return ROLE_ADMIN in self.capabilities


def load_capabilities(db: Session, profile: Profile) -> frozenset:
    """Role set for a profile; a profile with no roles is a client"""
    roles = {
        row.role
        for row in db.query(UserRole).filter(UserRole.profile_id == profile.id).all()
        if row.role in ROLES
    }
    return frozenset(roles or {ROLE_CLIENT})


def get_or_create_profile(db: Session, firebase_uid: str, email: str, full_name: str = "") -> Profile:
    profile = db.query(Profile).filter(Profile.firebase_uid == firebase_uid).first()
    if profile:
        return profile

    # Account created outside the API (e.g. sign-up on the frontend)
    profile = Profile(firebase_uid=firebase_uid, email=email.lower(), full_name=full_name or None)
    profile.roles.append(UserRole(role=ROLE_CLIENT))
    db.add(profile)
    db.commit()
    db.refresh(profile)
    logger.info(f"👤 Created profile {profile.id} for {email}")
    return profile


async def get_current_session(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> SessionContext:
    """Verify the bearer token and build the caller's SessionContext"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    try:
        claims = identity_service.verify_id_token(credentials.credentials)
    except identity_service.IdentityError as e:
        logger.warning(f"⚠️ Token rejected: {e}")
        raise HTTPException(status_code=401, detail=str(e)) from e

    uid = claims.get("uid") or claims.get("sub")
    email = claims.get("email")
    if not uid or not email:
        raise HTTPException(status_code=401, detail="Invalid token claims")

    profile = get_or_create_profile(db, uid, email, claims.get("name", ""))
    return SessionContext(
        uid=uid,
        profile_id=profile.id,
        email=profile.email,
        full_name=profile.full_name or "",
        capabilities=load_capabilities(db, profile),
    )


def require_capability(*capabilities: str):
    """
    Dependency factory: the caller must hold at least one of ``capabilities``.
    Admins pass every check.
    """

    async def dependency(session: SessionContext = Depends(get_current_session)) -> SessionContext:
        if session.is_admin or any(session.has(c) for c in capabilities):
            return session
        logger.warning(f"🚫 Profile {session.profile_id} lacks capability {capabilities}")
        raise HTTPException(status_code=403, detail="You do not have permission to perform this action")

    return dependency


require_client = require_capability(ROLE_CLIENT)
require_consultant = require_capability(ROLE_CONSULTANT)
