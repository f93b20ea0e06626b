"""Utility helpers for the recording backend."""

from .retry import RetryPolicy, retry_async
from .security import (
    AuthenticationError,
    TokenPayload,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)

__all__ = [
    "hash_password",
    "verify_password",
    "create_access_token",
    "decode_access_token",
    "AuthenticationError",
    "TokenPayload",
    "RetryPolicy",
    "retry_async",
]
