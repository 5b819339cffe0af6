"""User endpoints: identity and sign-in configuration."""
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_current_session, get_settings
from core.config import Settings
from core.session_context import SessionContext


router = APIRouter(tags=["users"])


class UserResponse(BaseModel):
    """Response model for user info."""

    id: UUID
    email: str | None
    auth_type: str


class CallbackUrlResponse(BaseModel):
    """Where the identity provider sends the browser after sign-in."""

    callback_url: str


@router.get("/users/me", response_model=UserResponse)
async def get_me(session: SessionContext = Depends(get_current_session)) -> UserResponse:
    """Get the current authenticated user's info."""
    return UserResponse(id=session.user.id, email=session.user.email, auth_type=session.auth_type)


@router.get("/auth/callback-url", response_model=CallbackUrlResponse)
async def get_callback_url(settings: Settings = Depends(get_settings)) -> CallbackUrlResponse:
    """OAuth redirect target configured for this deployment."""
    return CallbackUrlResponse(callback_url=settings.auth_callback_url)
