"""
Login route issuing signed bearer tokens.
"""
import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from musicard.auth import (
    AuthenticatedUser,
    check_admin_password,
    create_access_token,
    is_admin,
    require_auth,
)
from musicard.config import settings
from musicard.schemas import USERNAME_PATTERN
from musicard.services.remote_profiles import remote_profile_store

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    username: str = Field(pattern=USERNAME_PATTERN)
    password: str | None = None


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    username: str
    is_admin: bool


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest):
    """Issue a token for a username; admin names must pass the admin password check."""
    username = body.username.lower()
    admin = is_admin(username)
    if admin and not check_admin_password(body.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token, token_id = create_access_token(username)
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.session_ttl_minutes)
    try:
        await remote_profile_store.record_session(username, token_id, expires_at)
    except Exception as e:
        logger.warning("Could not record login session for %s: %s", username, e)

    logger.info("Login: %s (admin=%s)", username, admin)
    return LoginResponse(access_token=token, username=username, is_admin=admin)


@router.get("/me")
async def me(user: AuthenticatedUser = Depends(require_auth)):
    return {
        "username": user.username,
        "is_admin": user.is_admin,
        "logged_in_at": user.logged_in_at.isoformat(),
    }
