"""
Token management and validation logic.
All JWT and authentication dependency operations are centralized here.
"""

from datetime import datetime, timedelta
from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from audioly.core.config import settings
from audioly.core.errors import AuthenticationError
from audioly.core.logging import bind_user

# HTTP Bearer scheme (Only shows a token input box in Swagger).
# Missing credentials are handled below so both required and optional
# identity share one scheme.
security_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({"exp": expire, "iat": datetime.utcnow(), "type": "access"})

    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_refresh_token(data: dict) -> str:
    """Create JWT refresh token"""
    to_encode = data.copy()
    expire = datetime.utcnow() + timedelta(days=settings.refresh_token_expire_days)
    to_encode.update({"exp": expire, "iat": datetime.utcnow(), "type": "refresh"})

    return jwt.encode(to_encode, settings.refresh_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, secret: Optional[str] = None) -> Optional[dict]:
    """Decode and validate JWT token string"""
    try:
        return jwt.decode(
            token, secret or settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        return None


def verify_token(token: str) -> Optional[str]:
    """Verify an access token and extract user ID (sub claim)"""
    payload = decode_token(token)
    if payload is None or payload.get("type") != "access":
        return None
    return payload.get("sub")


def verify_refresh_token(token: str) -> Optional[str]:
    payload = decode_token(token, settings.refresh_secret)
    if payload is None or payload.get("type") != "refresh":
        return None
    return payload.get("sub")


def _authenticated_user(auth: HTTPAuthorizationCredentials) -> str:
    user_id = verify_token(auth.credentials)
    if not user_id:
        raise AuthenticationError("Invalid token")
    bind_user(user_id)
    return user_id


async def get_current_user_id(
    auth: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security_scheme)],
) -> str:
    """
    FastAPI dependency to validate token and return current user ID.
    Used in protected routes.
    """
    if auth is None:
        raise AuthenticationError("Unauthorized")
    return _authenticated_user(auth)


async def get_optional_user_id(
    auth: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security_scheme)],
) -> Optional[str]:
    """
    Anonymous callers get None. A token that is present but invalid is
    still rejected so clients learn their session is stale.
    """
    if auth is None:
        return None
    return _authenticated_user(auth)


# Frequently used Dependency Annotations
CurrentUserDep = Annotated[str, Depends(get_current_user_id)]
OptionalUserDep = Annotated[Optional[str], Depends(get_optional_user_id)]
