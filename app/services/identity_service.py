"""
Identity provider access (Firebase Admin SDK).

The Firebase app is initialized lazily on first use so importing this module
never needs credentials; tests patch the functions below instead.
"""

import logging
import secrets
import string
from typing import Optional

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from firebase_admin import exceptions as firebase_exceptions

from ..config import FIREBASE_CREDENTIALS_PATH, FIREBASE_PROJECT_ID, FRONTEND_URL

logger = logging.getLogger(__name__)

TEMP_PASSWORD_LENGTH = 12
_PASSWORD_ALPHABET = string.ascii_letters + string.digits


class IdentityError(Exception):
    """Raised when the identity provider rejects or fails a request"""


def get_firebase_app():
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    options = {"projectId": FIREBASE_PROJECT_ID} if FIREBASE_PROJECT_ID else None
    if FIREBASE_CREDENTIALS_PATH:
        app = firebase_admin.initialize_app(credentials.Certificate(FIREBASE_CREDENTIALS_PATH), options)
        logger.info("🔥 Firebase Admin initialized with service account")
        return app

    try:
        app = firebase_admin.initialize_app(credentials.ApplicationDefault(), options)
        logger.info("🔥 Firebase Admin initialized with default credentials")
    except Exception as e:
        logger.warning(f"⚠️ Default credentials unavailable ({e}), initializing with project ID only")
        app = firebase_admin.initialize_app(options=options)
    return app


def generate_temporary_password(length: int = TEMP_PASSWORD_LENGTH) -> str:
    """Random password for a provisioned client; delivered once by email"""
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


def verify_id_token(token: str) -> dict:
    """Verify a Firebase ID token and return its decoded claims"""
    get_firebase_app()
    try:
        return firebase_auth.verify_id_token(token)
    except firebase_auth.ExpiredIdTokenError as e:
        raise IdentityError("Token has expired. Please refresh your session.") from e
    except (firebase_auth.InvalidIdTokenError, firebase_auth.RevokedIdTokenError, ValueError) as e:
        raise IdentityError("Invalid authentication token") from e


def create_client_user(email: str, display_name: str, password: str) -> str:
    """Create a pre-confirmed account and return its uid"""
    get_firebase_app()
    try:
        user = firebase_auth.create_user(
            email=email,
            password=password,
            display_name=display_name,
            email_verified=True,
        )
    except firebase_auth.EmailAlreadyExistsError as e:
        raise IdentityError("A user with this email address has already been registered") from e
    except firebase_exceptions.FirebaseError as e:
        raise IdentityError(f"Failed to create user: {e}") from e

    logger.info(f"👤 Created identity for {email} (uid={user.uid})")
    return user.uid


def generate_password_reset_link(email: str) -> Optional[str]:
    """Reset link for ``email``, or None if no such account exists"""
    get_firebase_app()
    settings = firebase_auth.ActionCodeSettings(url=f"{FRONTEND_URL}/auth")
    try:
        return firebase_auth.generate_password_reset_link(email, settings)
    except firebase_auth.UserNotFoundError:
        logger.info("ℹ️ Password reset requested for unknown email")
        return None
    except firebase_exceptions.FirebaseError as e:
        raise IdentityError(f"Failed to generate reset link: {e}") from e


def update_password(uid: str, new_password: str) -> None:
    get_firebase_app()
    try:
        firebase_auth.update_user(uid, password=new_password)
    except firebase_exceptions.FirebaseError as e:
        raise IdentityError(f"Failed to update password: {e}") from e
    logger.info(f"🔑 Password updated for uid={uid}")
