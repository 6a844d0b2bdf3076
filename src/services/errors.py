"""Error taxonomy for the authentication service.

Every error carries the HTTP status code it is rendered with, so route
handlers can raise them directly and the exception handler in
``src.main`` turns them into ``{"message": ...}`` responses.
"""

from fastapi import status


class AuthError(Exception):
    """Base class for errors surfaced to API clients.

    Attributes:
        message: Client-safe message placed in the response body
        status_code: HTTP status code of the response
        clear_cookie: Whether the response must delete the refresh cookie
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Bad request."

    def __init__(self, message: str | None = None, clear_cookie: bool = False):
        self.message = message or self.default_message
        self.clear_cookie = clear_cookie
        super().__init__(self.message)


class ValidationError(AuthError):
    """Required request fields are missing or blank."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "All fields are required."


class ConflictError(AuthError):
    """A user with the same identity already exists, or state changed concurrently."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Username or email already exists."


class NotFoundError(AuthError):
    # Reported as 400 rather than 404 so lookups do not reveal more than a login failure
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "User not found."


class InvalidCredentialsError(AuthError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid credentials."


class UnauthorizedError(AuthError):
    """Missing, invalid, expired or revoked token."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized."


class ServerConfigurationError(AuthError):
    """A signing secret is missing.

    The response message is always generic; the detail stays in the logs.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error."

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__()


class TokenError(Exception):
    """Base class for token verification failures."""


class InvalidTokenError(TokenError):
    """Bad signature, malformed token, or missing claims."""


class ExpiredTokenError(TokenError):
    """Token signature is valid but the token has expired."""
