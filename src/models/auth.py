"""Auth request and response models."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.models.user import UserPublic


class TokenKind(str, Enum):
    """Which signing key a token belongs to."""

    ACCESS = "access"
    REFRESH = "refresh"


class TokenPayload(BaseModel):
    """Fixed-shape claims decoded from a verified token."""

    user_id: UUID
    token_version: int = Field(ge=0)
    expires_at: datetime


# Request fields are optional so that missing and blank values both reach
# AuthService and are reported with the same 400 message.

class RegisterRequest(BaseModel):
    """Registration form."""

    username: Optional[str] = None
    password: Optional[str] = None
    email: Optional[str] = None


class LoginRequest(BaseModel):
    """Login credentials."""

    email: Optional[str] = None
    password: Optional[str] = None


class LogoutRequest(BaseModel):
    email: Optional[str] = None


class AuthResult(BaseModel):
    """Outcome of a successful register, login or refresh.

    Attributes:
        user: Public view of the authenticated user
        access_token: Short-lived bearer token
        refresh_token: Rotated refresh token; only ever sent as a cookie
    """

    user: UserPublic
    access_token: str
    refresh_token: Optional[str] = None


class AuthResponse(BaseModel):
    """Body returned by register, login and refresh-token."""

    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    user: UserPublic
    access_token: str = Field(alias="accessToken")


class CurrentUserResponse(BaseModel):
    user: UserPublic


class MessageResponse(BaseModel):
    message: str
