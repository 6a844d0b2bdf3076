"""Models package exports."""

from src.models.auth import (
    AuthResponse,
    AuthResult,
    CurrentUserResponse,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RegisterRequest,
    TokenKind,
    TokenPayload,
)
from src.models.user import User, UserPublic

__all__ = [
    "AuthResponse",
    "AuthResult",
    "CurrentUserResponse",
    "LoginRequest",
    "LogoutRequest",
    "MessageResponse",
    "RegisterRequest",
    "TokenKind",
    "TokenPayload",
    "User",
    "UserPublic",
]
