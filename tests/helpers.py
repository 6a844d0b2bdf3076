"""Shared test helpers: in-memory user store, asyncpg mocks and cookie parsing."""

from datetime import datetime, timezone
from typing import Optional
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

from src.models.user import User
from src.services.errors import ConflictError

ACCESS_SECRET = "unit-test-access-secret"
REFRESH_SECRET = "unit-test-refresh-secret"
REFRESH_COOKIE = "refreshToken"


class InMemoryUserService:
    """Dict-backed stand-in for UserService with the same conditional-update rules."""

    def __init__(self):
        self.users: dict[UUID, User] = {}

    def _copy(self, user: Optional[User]) -> Optional[User]:
        return user.model_copy() if user is not None else None

    async def create_user(self, username: str, email: str, password_hash: str) -> User:
        if any(u.username == username and u.email == email for u in self.users.values()):
            raise ConflictError()
        now = datetime.now(timezone.utc)
        user = User(
            id=uuid4(),
            username=username,
            email=email,
            password_hash=password_hash,
            token_version=0,
            refresh_token_hash=None,
            created_at=now,
            updated_at=now,
        )
        self.users[user.id] = user
        return self._copy(user)

    async def get_by_identity(self, username: str, email: str) -> Optional[User]:
        for user in self.users.values():
            if user.username == username and user.email == email:
                return self._copy(user)
        return None

    async def get_by_email(self, email: str) -> Optional[User]:
        for user in sorted(self.users.values(), key=lambda u: u.created_at):
            if user.email == email:
                return self._copy(user)
        return None

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        return self._copy(self.users.get(user_id))

    async def get_by_refresh_token_hash(self, refresh_token_hash: str) -> Optional[User]:
        for user in self.users.values():
            if user.refresh_token_hash == refresh_token_hash:
                return self._copy(user)
        return None

    async def update_auth_state(
        self, user: User, token_version: int, refresh_token_hash: Optional[str]
    ) -> Optional[User]:
        if token_version < user.token_version:
            raise ValueError("token_version must never decrease")
        stored = self.users.get(user.id)
        if (
            stored is None
            or stored.token_version != user.token_version
            or stored.refresh_token_hash != user.refresh_token_hash
        ):
            return None
        updated = stored.model_copy(
            update={
                "token_version": token_version,
                "refresh_token_hash": refresh_token_hash,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        self.users[user.id] = updated
        return self._copy(updated)


def refresh_cookie_from(response) -> Optional[str]:
    """Return the refresh token set by a response, or None if it was not set."""
    for header in response.headers.get_list("set-cookie"):
        name, _, rest = header.partition("=")
        if name.strip() == REFRESH_COOKIE:
            value = rest.split(";", 1)[0].strip().strip('"')
            return value or None
    return None


def set_cookie_header(response) -> str:
    """Return the raw Set-Cookie header for the refresh cookie."""
    for header in response.headers.get_list("set-cookie"):
        if header.startswith(f"{REFRESH_COOKIE}="):
            return header
    raise AssertionError("refresh cookie not set")


def make_user(
    username="alice", email="alice@example.com", token_version=0, refresh_token_hash=None
):
    """Create a User model for tests that do not need a store."""
    now = datetime.now(timezone.utc)
    return User(
        id=uuid4(),
        username=username,
        email=email,
        password_hash="$2b$04$notarealhashnotarealhashnotarealhashnotarealhas",
        token_version=token_version,
        refresh_token_hash=refresh_token_hash,
        created_at=now,
        updated_at=now,
    )


class MockConnection:
    """Mock asyncpg connection with common query methods."""

    def __init__(self):
        self.execute = AsyncMock()
        self.fetchrow = AsyncMock()
        self.fetchval = AsyncMock()
        self.fetch = AsyncMock()


class MockPool:
    """Mock asyncpg pool with acquire() context manager."""

    def __init__(self, conn: MockConnection):
        self._conn = conn

    def acquire(self):
        return _MockPoolAcquire(self._conn)


class _MockPoolAcquire:
    def __init__(self, conn):
        self._conn = conn

    async def __aenter__(self):
        return self._conn

    async def __aexit__(self, *args):
        pass
