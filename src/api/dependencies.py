"""FastAPI dependencies for service wiring and request authentication."""

from typing import Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.config import Settings, get_settings
from src.models.auth import TokenKind
from src.models.user import UserPublic
from src.services.auth_service import AuthService
from src.services.errors import TokenError, UnauthorizedError
from src.services.token_service import TokenService, get_token_service
from src.services.user_service import UserService

logger = structlog.get_logger(__name__)

# auto_error=False so a missing header yields 401 rather than FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


def get_user_service() -> UserService:
    return UserService()


def get_auth_service(
    user_service: UserService = Depends(get_user_service),
    token_service: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(user_service=user_service, token_service=token_service)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    token_service: TokenService = Depends(get_token_service),
    user_service: UserService = Depends(get_user_service),
) -> UserPublic:
    """Authenticate the request from its Bearer access token.

    The token's tokenVersion must equal the user's current token_version,
    which is how logout and refresh token reuse revoke live access tokens.

    Args:
        request: Incoming request; the user is stored on request.state.user
        credentials: Bearer token from Authorization header

    Returns:
        Public view of the authenticated user

    Raises:
        UnauthorizedError: If the token is missing, invalid, expired or revoked
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Authorization token missing.")

    try:
        payload = token_service.verify(credentials.credentials, TokenKind.ACCESS)
    except TokenError as e:
        logger.info("access_token_rejected", reason=str(e))
        raise UnauthorizedError("Invalid or expired access token.")

    user = await user_service.get_by_id(payload.user_id)
    if user is None:
        raise UnauthorizedError("User not found.")

    if user.token_version != payload.token_version:
        logger.info(
            "access_token_revoked",
            user_id=str(user.id),
            token_version=payload.token_version,
            current_token_version=user.token_version,
        )
        raise UnauthorizedError("Access token has been revoked.")

    current_user = user.public()
    request.state.user = current_user
    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return current_user


def get_refresh_token_cookie(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Optional[str]:
    """Read the refresh token from its configured cookie, if present."""
    return request.cookies.get(settings.refresh_cookie_name) or None
