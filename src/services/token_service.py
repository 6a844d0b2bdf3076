"""Access and refresh token issuance and verification (JWT, HS256).

Access and refresh tokens are signed with independent secrets so that a
leaked key of one kind cannot mint tokens of the other. Both carry the
user's ``token_version``; bumping it on the user record revokes every
token issued before.
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import jwt
import structlog
from pydantic import ValidationError as PydanticValidationError

from src.config import get_settings
from src.models.auth import TokenKind, TokenPayload
from src.models.user import User
from src.services.errors import (
    ExpiredTokenError,
    InvalidTokenError,
    ServerConfigurationError,
)

logger = structlog.get_logger(__name__)

# Constants
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 15
REFRESH_TOKEN_EXPIRE_DAYS = 7


class TokenService:
    """Mints and verifies access/refresh tokens."""

    def __init__(self, access_secret: Optional[str], refresh_secret: Optional[str]):
        if not access_secret:
            raise ServerConfigurationError("JWT_SECRET is not defined")
        if not refresh_secret:
            raise ServerConfigurationError("JWT_REFRESH_SECRET is not defined")
        self._secrets = {
            TokenKind.ACCESS: access_secret,
            TokenKind.REFRESH: refresh_secret,
        }
        self._lifetimes = {
            TokenKind.ACCESS: timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
            TokenKind.REFRESH: timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
        }

    def _issue(self, user: User, kind: TokenKind) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "id": str(user.id),
            "tokenVersion": user.token_version,
            "iat": now,
            "exp": now + self._lifetimes[kind],
            # Unique per issuance so two tokens minted in the same second differ
            "jti": secrets.token_hex(16),
        }
        token = jwt.encode(payload, self._secrets[kind], algorithm=JWT_ALGORITHM)
        logger.debug(
            "token_issued",
            kind=kind.value,
            user_id=str(user.id),
            token_version=user.token_version,
        )
        return token

    def issue_access_token(self, user: User) -> str:
        """Create an access token valid for ACCESS_TOKEN_EXPIRE_MINUTES."""
        return self._issue(user, TokenKind.ACCESS)

    def issue_refresh_token(self, user: User) -> str:
        """Create a refresh token valid for REFRESH_TOKEN_EXPIRE_DAYS."""
        return self._issue(user, TokenKind.REFRESH)

    def verify(self, token: str, kind: TokenKind) -> TokenPayload:
        """Decode and validate a token signed with the key for ``kind``.

        Args:
            token: Encoded JWT string
            kind: Which secret the token must be signed with

        Returns:
            Decoded TokenPayload

        Raises:
            ExpiredTokenError: If the token has expired
            InvalidTokenError: If the signature, structure or claims are invalid
        """
        try:
            claims = jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp", "id", "tokenVersion"]},
            )
        except jwt.ExpiredSignatureError:
            raise ExpiredTokenError(f"{kind.value} token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid {kind.value} token: {e}")

        token_version = claims["tokenVersion"]
        # bool is an int subclass; reject it explicitly
        if isinstance(token_version, bool) or not isinstance(token_version, int):
            raise InvalidTokenError(f"Invalid {kind.value} token: bad tokenVersion")

        try:
            return TokenPayload(
                user_id=claims["id"],
                token_version=token_version,
                expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
            )
        except PydanticValidationError as e:
            raise InvalidTokenError(f"Invalid {kind.value} token: {e}")


@lru_cache
def get_token_service() -> TokenService:
    """Get the process-wide TokenService built from settings.

    Raises:
        ServerConfigurationError: If a signing secret is not configured
    """
    settings = get_settings()
    return TokenService(settings.jwt_secret, settings.jwt_refresh_secret)


def hash_refresh_token(refresh_token: str) -> str:
    """SHA-256 digest under which a refresh token is stored and looked up."""
    return hashlib.sha256(refresh_token.encode("utf-8")).hexdigest()
