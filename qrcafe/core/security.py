"""
Staff Credentials

Password hashing (argon2) and bearer tokens (JWT, HS256) for the staff
dashboard. Customers never authenticate.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from qrcafe.core.config import get_settings
from qrcafe.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

_hasher = PasswordHasher()
_bearer = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def create_access_token(staff_id: int, username: str) -> str:
    """Mint a signed staff token valid for ``jwt_expire_hours``."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(staff_id),
        "username": username,
        "iat": now,
        "exp": now + timedelta(hours=settings.jwt_expire_hours),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: Optional[str]) -> dict[str, Any]:
    """
    Validate a staff token and return its claims.

    Raises:
        AuthenticationError: Missing, malformed, forged or expired token
    """
    if not token:
        raise AuthenticationError("Staff token required")

    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Staff token expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected staff token: {e}")
        raise AuthenticationError("Invalid staff token")


async def require_staff(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> dict[str, Any]:
    """FastAPI dependency guarding staff-only endpoints."""
    return decode_access_token(credentials.credentials if credentials else None)
