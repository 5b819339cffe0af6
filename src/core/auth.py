"""Authentication module for access-token validation and session resolution."""
import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import Settings, get_settings
from core.session_context import AuthType, SessionContext, UserIdentity

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)

DEV_USER_ID = UUID("00000000-0000-0000-0000-000000000001")
DEV_USER_EMAIL = "dev@localhost"


class AuthenticationError(Exception):
    """Raised when an access token cannot be verified."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


def dev_identity() -> UserIdentity:
    """Identity used for every request in DEV_MODE."""
    return UserIdentity(id=DEV_USER_ID, email=DEV_USER_EMAIL)


def create_access_token(
    user_id: UUID,
    settings: Settings,
    email: str | None = None,
    expires_in: timedelta = timedelta(hours=1),
) -> str:
    """Issue a token in the same shape the hosted auth provider does."""
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "aud": settings.jwt_audience,
        "role": "authenticated",
        "iat": now,
        "exp": now + expires_in,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def decode_jwt(token: str, settings: Settings) -> dict:
    """
    Decode and validate an access token.

    Raises:
        AuthenticationError: If token is invalid, expired, or has the wrong audience.
    """
    if not settings.jwt_secret:
        raise AuthenticationError("Token verification is not configured")
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidAudienceError:
        raise AuthenticationError("Invalid audience")
    except jwt.PyJWTError as e:
        raise AuthenticationError(f"Invalid token: {e}")


def identity_from_token(token: str, settings: Settings) -> UserIdentity:
    """Verify `token` and build the identity from its claims."""
    payload = decode_jwt(token, settings)
    sub = payload.get("sub")
    if not sub:
        raise AuthenticationError("Invalid token: missing sub claim")
    try:
        user_id = UUID(sub)
    except ValueError:
        raise AuthenticationError("Invalid token: sub claim is not a user id")
    return UserIdentity(id=user_id, email=payload.get("email"))


def resolve_identity(session: SessionContext, settings: Settings) -> UserIdentity | None:
    """
    Return the identity behind `session`, or None when it is anonymous or invalid.

    Never raises; callers treat None as "signed out".
    """
    if session.user is not None:
        return session.user
    if settings.dev_mode:
        return dev_identity()
    if not session.access_token:
        return None
    try:
        return identity_from_token(session.access_token, settings)
    except AuthenticationError as e:
        logger.info("Rejected access token: %s", e.detail)
        return None


async def get_current_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> SessionContext:
    """
    Dependency that validates the bearer token and returns the caller's session.

    In DEV_MODE, bypasses auth and returns the development user.
    """
    if settings.dev_mode:
        return SessionContext(user=dev_identity(), auth_type=AuthType.DEV)

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials
    try:
        user = identity_from_token(token, settings)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return SessionContext(access_token=token, user=user, auth_type=AuthType.JWT)
