"""
Authentication: signed bearer tokens and the admin allow-list.

A token carries the username (`sub`) and the login time (`iat`). Admin rights
are not stored in the token; they are decided on every request by membership
of the username in the configured allow-list.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from musicard.config import settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedUser:
    username: str
    is_admin: bool
    logged_in_at: datetime


def is_admin(username: str) -> bool:
    return username in settings.admin_user_list


def create_access_token(username: str, expires_delta: timedelta | None = None) -> tuple[str, str]:
    """Signed token for username. Returns (token, token id)."""
    now = datetime.now(timezone.utc)
    token_id = secrets.token_hex(16)
    payload = {
        "sub": username,
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=settings.session_ttl_minutes)),
        "jti": token_id,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM), token_id


def decode_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a token, None when invalid or expired."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None


def check_admin_password(password: str | None) -> bool:
    """Admin logins need ADMIN_PASSWORD when it is set, and always in production."""
    if not settings.admin_password:
        return not settings.is_production
    return secrets.compare_digest((password or "").encode(), settings.admin_password.encode())


async def require_auth(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthenticatedUser:
    """Raises 401 unless a valid bearer token is presented."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_token(credentials.credentials)
    username = payload.get("sub") if payload else None
    if not username:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AuthenticatedUser(
        username=username,
        is_admin=is_admin(username),
        logged_in_at=datetime.fromtimestamp(payload.get("iat", 0), tz=timezone.utc),
    )


async def require_admin(user: AuthenticatedUser = Depends(require_auth)) -> AuthenticatedUser:
    """Raises 403 for authenticated non-admin callers."""
    if not user.is_admin:
        logger.warning("Admin access denied for %s", user.username)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")
    return user
