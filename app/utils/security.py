"""Password hashing and JWT access tokens."""

from __future__ import annotations

import base64
import hashlib
import hmac
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from app.config.settings import settings

_SALT_BYTES = 16
_ITERATIONS = 120_000


def _derive(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _ITERATIONS)


def hash_password(password: str) -> str:
    """Return ``base64(salt + pbkdf2)`` for storage in ``users.password_hash``."""

    salt = os.urandom(_SALT_BYTES)
    return base64.b64encode(salt + _derive(password, salt)).decode("ascii")


def verify_password(password: str, hashed: str) -> bool:
    try:
        decoded = base64.b64decode(hashed.encode("ascii"), validate=True)
    except (ValueError, TypeError):
        return False
    if len(decoded) <= _SALT_BYTES:
        return False
    salt, stored = decoded[:_SALT_BYTES], decoded[_SALT_BYTES:]
    return hmac.compare_digest(_derive(password, salt), stored)


class AuthenticationError(Exception):
    """The bearer token is missing, expired or signed with another key."""


class TokenPayload(BaseModel):
    sub: str
    exp: datetime
    role: str | None = None
    iat: datetime | None = None


def _signing_key() -> str:
    return settings.security.jwt_secret_key.get_secret_value()


def create_access_token(
    subject: str,
    role: str | None = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.security.access_token_expires_minutes)
    claims: dict[str, Any] = {"sub": subject, "iat": issued_at, "exp": issued_at + lifetime}
    if role is not None:
        claims["role"] = role
    return jwt.encode(claims, _signing_key(), algorithm=settings.security.jwt_algorithm)


def decode_access_token(token: str) -> TokenPayload:
    """Validate signature and expiry; raises ``AuthenticationError`` otherwise."""

    try:
        claims = jwt.decode(token, _signing_key(), algorithms=[settings.security.jwt_algorithm])
        return TokenPayload.model_validate(claims)
    except (JWTError, ValidationError) as exc:
        raise AuthenticationError("Invalid authentication token") from exc


__all__ = [
    "AuthenticationError",
    "TokenPayload",
    "create_access_token",
    "decode_access_token",
    "hash_password",
    "verify_password",
]
