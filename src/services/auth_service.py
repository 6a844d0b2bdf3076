"""Authentication session management: register, login, logout, refresh.

Each user has a single stored refresh token, kept as its SHA-256 digest, and
a token_version counter.
Logging out or presenting a refresh token that is no longer the stored one
bumps token_version, which the access guard compares against every access
token, so both actions take effect immediately.
"""

import hmac
from typing import Optional

import structlog

from src.models.auth import AuthResult, TokenKind
from src.models.user import User
from src.services.errors import (
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    TokenError,
    UnauthorizedError,
    ValidationError,
)
from src.services.password_service import PasswordService
from src.services.token_service import TokenService, hash_refresh_token
from src.services.user_service import UserService

logger = structlog.get_logger(__name__)


def normalize_email(email: str) -> str:
    """Lower-case and strip an email address for storage and lookup."""
    return email.strip().lower()


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


class AuthService:
    """Orchestrates the user store, token service and password hashing."""

    def __init__(
        self,
        user_service: UserService,
        token_service: TokenService,
        password_service: Optional[PasswordService] = None,
    ):
        self.user_service = user_service
        self.token_service = token_service
        self.password_service = password_service or PasswordService()

    async def _start_session(self, user: User) -> AuthResult:
        """Issue a token pair and store the refresh token, replacing any prior one.

        Raises:
            ConflictError: If the user record changed while the session was created
        """
        access_token = self.token_service.issue_access_token(user)
        refresh_token = self.token_service.issue_refresh_token(user)

        updated = await self.user_service.update_auth_state(
            user,
            token_version=user.token_version,
            refresh_token_hash=hash_refresh_token(refresh_token),
        )
        if updated is None:
            raise ConflictError("Session state changed, please try again.")

        return AuthResult(
            user=updated.public(),
            access_token=access_token,
            refresh_token=refresh_token,
        )

    async def _revoke(self, user: User) -> Optional[User]:
        """Clear the stored refresh token and bump token_version."""
        return await self.user_service.update_auth_state(
            user,
            token_version=user.token_version + 1,
            refresh_token_hash=None,
        )

    async def register(
        self,
        username: Optional[str],
        password: Optional[str],
        email: Optional[str],
    ) -> AuthResult:
        """Create a user and start its first session.

        Args:
            username: Desired username
            password: Plain-text password
            email: Email address, stored lower-cased

        Returns:
            AuthResult with the public user, access token and refresh token

        Raises:
            ValidationError: If any field is missing or blank
            ConflictError: If the (username, email) pair is already registered,
                or if the account was created but its first session could not
                be stored. In the latter case the account stays and login works.
        """
        if _is_blank(username) or _is_blank(password) or _is_blank(email):
            raise ValidationError("All fields are required.")

        email = normalize_email(email)

        existing = await self.user_service.get_by_identity(username, email)
        if existing is not None:
            logger.info("registration_conflict", username=username)
            raise ConflictError("Username or email already exists.")

        user = await self.user_service.create_user(
            username=username,
            email=email,
            password_hash=self.password_service.hash_password(password),
        )
        try:
            result = await self._start_session(user)
        except ConflictError:
            # The account exists; only the first session was lost to a concurrent login
            logger.warning("registration_session_conflict", user_id=str(user.id))
            raise ConflictError("Account created, please log in.")

        logger.info("user_registered", user_id=str(user.id), username=username)
        return result

    async def login(self, email: Optional[str], password: Optional[str]) -> AuthResult:
        """Authenticate with email and password and start a new session.

        The previously stored refresh token, if any, is replaced and therefore
        no longer accepted by refresh().

        Raises:
            ValidationError: If email or password is missing
            NotFoundError: If no user has this email
            InvalidCredentialsError: If the password does not match
        """
        if _is_blank(email) or _is_blank(password):
            raise ValidationError("Email and password are required.")

        user = await self.user_service.get_by_email(normalize_email(email))
        if user is None:
            raise NotFoundError("User not found.")

        if not self.password_service.verify_password(password, user.password_hash):
            logger.info("login_invalid_credentials", user_id=str(user.id))
            raise InvalidCredentialsError("Invalid credentials.")

        result = await self._start_session(user)

        logger.info("user_logged_in", user_id=str(user.id), username=user.username)
        return result

    async def logout(self, email: Optional[str], refresh_token: Optional[str]) -> None:
        """End the session identified by the refresh token cookie.

        The owner of the presented refresh token is the account that gets
        revoked. The email only has to belong to an existing user; when it
        names a different account than the cookie owner, the mismatch is
        logged and the cookie owner is still revoked.

        Raises:
            ValidationError: If email is missing
            NotFoundError: If no user has this email
        """
        if _is_blank(email):
            raise ValidationError("Email is required.")

        user = await self.user_service.get_by_email(normalize_email(email))
        if user is None:
            raise NotFoundError("User not found.")

        if not refresh_token:
            logger.info("logout_without_refresh_token", user_id=str(user.id))
            return

        owner = await self.user_service.get_by_refresh_token_hash(
            hash_refresh_token(refresh_token)
        )
        if owner is None:
            logger.info("logout_refresh_token_not_active", user_id=str(user.id))
            return

        if owner.id != user.id:
            logger.warning(
                "logout_email_mismatch",
                user_id=str(user.id),
                token_owner_id=str(owner.id),
            )

        revoked = await self._revoke(owner)
        if revoked is None:
            # Another request already rotated or revoked this session
            logger.info("logout_state_already_changed", user_id=str(owner.id))
            return

        logger.info(
            "user_logged_out",
            user_id=str(owner.id),
            token_version=revoked.token_version,
        )

    async def refresh(self, refresh_token: Optional[str]) -> AuthResult:
        """Exchange the current refresh token for a new token pair.

        A validly signed refresh token that is not the one stored for its user
        has already been rotated out or revoked. That is treated as possible
        theft: every token of the user is revoked.

        Raises:
            UnauthorizedError: If the token is missing, invalid, expired, unknown
                or reused. On reuse the error asks for the cookie to be cleared.
        """
        if not refresh_token:
            raise UnauthorizedError("Refresh token missing.")

        try:
            payload = self.token_service.verify(refresh_token, TokenKind.REFRESH)
        except TokenError as e:
            logger.info("refresh_token_rejected", reason=str(e))
            raise UnauthorizedError("Invalid or expired refresh token.")

        user = await self.user_service.get_by_id(payload.user_id)
        if user is None:
            raise UnauthorizedError("Invalid or expired refresh token.")

        presented_hash = hash_refresh_token(refresh_token)
        if user.refresh_token_hash is None or not hmac.compare_digest(
            user.refresh_token_hash, presented_hash
        ):
            logger.warning(
                "refresh_token_reuse_detected",
                user_id=str(user.id),
                token_version=user.token_version,
            )
            await self._revoke(user)
            raise UnauthorizedError("Refresh token reuse detected.", clear_cookie=True)

        try:
            result = await self._start_session(user)
        except ConflictError:
            # A concurrent refresh or logout consumed this token first
            raise UnauthorizedError("Refresh token already used.", clear_cookie=True)

        logger.info("refresh_token_rotated", user_id=str(user.id))
        return result
