"""Pydantic schemas related to authentication."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, EmailStr, Field

from app.domain.models import UserRole


class LoginRequest(BaseModel):
    """Credentials submitted to obtain an access token."""

    email: EmailStr
    password: str = Field(min_length=8, max_length=128)


class RegisterRequest(BaseModel):
    """New account; invited partners register with the invited email."""

    email: EmailStr
    password: str = Field(min_length=8, max_length=128)


class TokenResponse(BaseModel):
    """Standard access token response body."""

    access_token: str = Field(
        validation_alias=AliasChoices("accessToken", "access_token"),
        serialization_alias="accessToken",
    )
    token_type: str = Field(
        default="bearer",
        validation_alias=AliasChoices("tokenType", "token_type"),
        serialization_alias="tokenType",
    )
    expires_in: int = Field(
        default=0,
        validation_alias=AliasChoices("expiresIn", "expires_in"),
        serialization_alias="expiresIn",
        description="Seconds until the token expires",
    )
    user_id: str = Field(
        validation_alias=AliasChoices("userId", "user_id"),
        serialization_alias="userId",
    )
    role: UserRole
    approved: bool


__all__ = ["LoginRequest", "RegisterRequest", "TokenResponse"]
