"""
Password hashing (bcrypt) and access-token handling (PyJWT).

Passwords are never stored in plain text.  Access tokens carry the user id
and role and expire after ``JWT_EXPIRE_MINUTES``.
"""
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt

from shop_admin.config import settings


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Return True when *plain_password* matches *hashed_password*."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


def create_access_token(user_id: int, role: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    payload: dict[str, Any] = {"id": user_id, "role": role, "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """
    Verify *token* and return its payload.

    Raises ``jwt.PyJWTError`` (or a subclass such as
    ``jwt.ExpiredSignatureError``) when the token is invalid or expired.
    """
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
