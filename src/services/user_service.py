"""User record persistence."""

from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from uuid import UUID, uuid4

import asyncpg
import structlog

from src.database import get_pool
from src.models.user import User
from src.services.errors import ConflictError

logger = structlog.get_logger(__name__)

_USER_COLUMNS = (
    "id, username, email, password_hash, token_version, refresh_token_hash, "
    "created_at, updated_at"
)


def _row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        password_hash=row["password_hash"],
        token_version=row["token_version"],
        refresh_token_hash=row["refresh_token_hash"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class UserService:
    """Service for user lookups and auth-state updates."""

    async def create_user(
        self,
        username: str,
        email: str,
        password_hash: str,
    ) -> User:
        """Insert a new user with token_version 0 and no refresh token.

        Args:
            username: Username
            email: Normalized (lower-case) email
            password_hash: Already hashed password

        Returns:
            Created User model

        Raises:
            ConflictError: If (username, email) is already taken
        """
        user_id = uuid4()
        now = datetime.now(timezone.utc)

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users (id, username, email, password_hash, token_version, refresh_token_hash, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, 0, NULL, $5, $6)
                    RETURNING {_USER_COLUMNS}
                    """,
                    user_id,
                    username,
                    email,
                    password_hash,
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError:
            logger.warning("user_create_conflict", username=username, email=email)
            raise ConflictError()

        logger.info("user_created", user_id=str(user_id), username=username)
        return _row_to_user(row)

    async def get_by_identity(self, username: str, email: str) -> Optional[User]:
        """Get a user by its (username, email) pair."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_USER_COLUMNS}
                FROM users
                WHERE username = $1 AND email = $2
                """,
                username,
                email,
            )

        return _row_to_user(row) if row is not None else None

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get a user by normalized email.

        Args:
            email: Lower-cased email address

        Returns:
            User model or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_USER_COLUMNS}
                FROM users
                WHERE email = $1
                ORDER BY created_at ASC
                LIMIT 1
                """,
                email,
            )

        return _row_to_user(row) if row is not None else None

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Get a user by UUID.

        Args:
            user_id: User UUID

        Returns:
            User model or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_USER_COLUMNS}
                FROM users
                WHERE id = $1
                """,
                user_id,
            )

        return _row_to_user(row) if row is not None else None

    async def get_by_refresh_token_hash(self, refresh_token_hash: str) -> Optional[User]:
        """Get the user whose stored refresh token digest equals ``refresh_token_hash``."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_USER_COLUMNS}
                FROM users
                WHERE refresh_token_hash = $1
                """,
                refresh_token_hash,
            )

        return _row_to_user(row) if row is not None else None

    async def update_auth_state(
        self,
        user: User,
        token_version: int,
        refresh_token_hash: Optional[str],
    ) -> Optional[User]:
        """Persist new auth state if the row still matches ``user``.

        The UPDATE is conditioned on the token_version and refresh_token_hash
        that were read into ``user``, so a concurrent login, refresh or logout on
        the same record makes this call a no-op instead of silently overwriting it.

        Args:
            user: User as previously read from the store
            token_version: New token version (must not be lower than the current one)
            refresh_token_hash: Digest of the new refresh token, or None to clear it

        Returns:
            Updated User model, or None if the record changed or no longer exists
        """
        if token_version < user.token_version:
            raise ValueError("token_version must never decrease")

        now = datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE users
                SET token_version = $1, refresh_token_hash = $2, updated_at = $3
                WHERE id = $4
                  AND token_version = $5
                  AND refresh_token_hash IS NOT DISTINCT FROM $6
                RETURNING {_USER_COLUMNS}
                """,
                token_version,
                refresh_token_hash,
                now,
                user.id,
                user.token_version,
                user.refresh_token_hash,
            )

        if row is None:
            logger.warning(
                "auth_state_update_conflict",
                user_id=str(user.id),
                expected_token_version=user.token_version,
            )
            return None

        return _row_to_user(row)
