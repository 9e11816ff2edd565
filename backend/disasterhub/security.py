"""
DisasterHub Backend — Credential Primitives
=============================================

What:  Password hashing (passlib/bcrypt) and access-token issuing/decoding
       (python-jose, HS256 by default).
Who:   AuthService (register, login, change password) and the identity
       resolver in disasterhub.dependencies.

Token payload:
    {"sub": "<user uuid>", "role": "<role at issue time>", "iat": ..., "exp": ...}
    The role claim is informational only; authorization always uses the
    role loaded from the database.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from disasterhub.config import settings
from disasterhub.exceptions import UnauthenticatedError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Constant-time comparison; malformed hashes count as a mismatch."""
    try:
        return pwd_context.verify(plain_password, password_hash)
    except (ValueError, TypeError):
        logger.warning("Stored password hash could not be parsed")
        return False


def create_access_token(
    user_id: uuid.UUID,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Issue a signed bearer token for the given user."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> uuid.UUID:
    """
    Validate a bearer token and return the user id it was issued for.

    Raises:
        UnauthenticatedError: signature invalid, token expired, or the
            subject claim is missing/not a UUID.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise UnauthenticatedError(message="Not authorized, token expired")
    except JWTError:
        raise UnauthenticatedError(message="Not authorized, token invalid")

    subject = payload.get("sub")
    try:
        return uuid.UUID(str(subject))
    except ValueError:
        raise UnauthenticatedError(message="Not authorized, token invalid")
