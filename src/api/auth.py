"""Authentication API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from src.api.dependencies import (
    get_auth_service,
    get_current_user,
    get_refresh_token_cookie,
)
from src.config import Settings, get_settings
from src.models.auth import (
    AuthResponse,
    AuthResult,
    CurrentUserResponse,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RegisterRequest,
)
from src.models.user import UserPublic
from src.services.auth_service import AuthService
from src.services.token_service import REFRESH_TOKEN_EXPIRE_DAYS

REFRESH_COOKIE_MAX_AGE = REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60

router = APIRouter(tags=["Auth"])


def set_refresh_cookie(response: Response, refresh_token: str, settings: Settings) -> None:
    """Attach the refresh token as an HTTP-only cross-site cookie."""
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=refresh_token,
        max_age=REFRESH_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        secure=settings.refresh_cookie_secure,
        samesite=settings.refresh_cookie_samesite,
    )


def clear_refresh_cookie(response: Response, settings: Settings) -> None:
    """Delete the refresh token cookie with the attributes it was set with."""
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        path="/",
        httponly=True,
        secure=settings.refresh_cookie_secure,
        samesite=settings.refresh_cookie_samesite,
    )


def _session_response(
    response: Response,
    result: AuthResult,
    settings: Settings,
    message: Optional[str] = None,
) -> AuthResponse:
    """Put the refresh token in the cookie and the rest in the body."""
    set_refresh_cookie(response, result.refresh_token, settings)
    return AuthResponse(message=message, user=result.user, access_token=result.access_token)


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=AuthResponse,
    response_model_exclude_none=True,
)
async def register(
    request: RegisterRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    """Register a new user and start a session.

    Raises:
        ValidationError 400: If a field is missing
        ConflictError 409: If the (username, email) pair already exists
    """
    result = await auth_service.register(
        username=request.username,
        password=request.password,
        email=request.email,
    )
    return _session_response(response, result, settings, "User registered successfully.")


@router.post("/login", response_model=AuthResponse, response_model_exclude_none=True)
async def login(
    request: LoginRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    """Login with email and password.

    Raises:
        400: If fields are missing, the user is unknown or the password is wrong
    """
    result = await auth_service.login(email=request.email, password=request.password)
    return _session_response(response, result, settings, "User logged in successfully.")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: LogoutRequest,
    response: Response,
    refresh_token: Optional[str] = Depends(get_refresh_token_cookie),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    """Revoke the session carried by the refresh token cookie.

    Raises:
        400: If email is missing or unknown
    """
    await auth_service.logout(email=request.email, refresh_token=refresh_token)
    clear_refresh_cookie(response, settings)
    return MessageResponse(message="User logged out successfully.")


@router.post("/refresh-token", response_model=AuthResponse, response_model_exclude_none=True)
async def refresh_token(
    response: Response,
    refresh_token: Optional[str] = Depends(get_refresh_token_cookie),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    """Rotate the refresh token cookie and issue a new access token.

    Raises:
        UnauthorizedError 401: If the cookie is missing, invalid, expired or reused
    """
    result = await auth_service.refresh(refresh_token)
    return _session_response(response, result, settings)


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(current_user: UserPublic = Depends(get_current_user)) -> CurrentUserResponse:
    """Get current authenticated user info."""
    return CurrentUserResponse(user=current_user)
