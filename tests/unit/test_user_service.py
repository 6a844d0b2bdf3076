"""Unit tests for UserService with a mocked asyncpg pool."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import asyncpg
import pytest

from src.services.errors import ConflictError
from src.services.user_service import UserService
from tests.helpers import MockConnection, MockPool, make_user


def _row(**overrides):
    now = datetime.now(timezone.utc)
    row = {
        "id": uuid4(),
        "username": "alice",
        "email": "a@x.com",
        "password_hash": "$2b$04$hash",
        "token_version": 0,
        "refresh_token_hash": None,
        "created_at": now,
        "updated_at": now,
    }
    row.update(overrides)
    return row

@pytest.fixture
def conn():
    connection = MockConnection()
    with patch(
        "src.services.user_service.get_pool",
        new_callable=AsyncMock,
        return_value=MockPool(connection),
    ):
        yield connection

class TestCreateUser:
    async def test_inserts_with_version_zero(self, conn):
        conn.fetchrow.return_value = _row()

        user = await UserService().create_user("alice", "a@x.com", "$2b$04$hash")

        sql, *params = conn.fetchrow.call_args[0]
        assert "INSERT INTO users" in sql
        assert "VALUES ($1, $2, $3, $4, 0, NULL, $5, $6)" in sql
        assert params[1:4] == ["alice", "a@x.com", "$2b$04$hash"]
        assert user.token_version == 0

    async def test_unique_violation_is_conflict(self, conn):
        conn.fetchrow.side_effect = asyncpg.UniqueViolationError("duplicate key")

        with pytest.raises(ConflictError):
            await UserService().create_user("alice", "a@x.com", "hash")

class TestLookups:
    async def test_get_by_email(self, conn):
        conn.fetchrow.return_value = _row(email="a@x.com")

        user = await UserService().get_by_email("a@x.com")

        sql, email = conn.fetchrow.call_args[0]
        assert "WHERE email = $1" in sql
        assert email == "a@x.com"
        assert user.email == "a@x.com"

    async def test_get_by_id_not_found(self, conn):
        conn.fetchrow.return_value = None
        assert await UserService().get_by_id(uuid4()) is None

    async def test_get_by_identity(self, conn):
        conn.fetchrow.return_value = _row()

        await UserService().get_by_identity("alice", "a@x.com")

        sql, username, email = conn.fetchrow.call_args[0]
        assert "WHERE username = $1 AND email = $2" in sql
        assert (username, email) == ("alice", "a@x.com")

    async def test_get_by_refresh_token_hash(self, conn):
        conn.fetchrow.return_value = _row(refresh_token_hash="a" * 64)

        user = await UserService().get_by_refresh_token_hash("a" * 64)

        assert "WHERE refresh_token_hash = $1" in conn.fetchrow.call_args[0][0]
        assert user.refresh_token_hash == "a" * 64


class TestUpdateAuthState:
    async def test_conditions_on_previous_state(self, conn):
        user = make_user(token_version=3, refresh_token_hash="b" * 64)
        conn.fetchrow.return_value = _row(id=user.id, token_version=4, refresh_token_hash=None)

        updated = await UserService().update_auth_state(
            user, token_version=4, refresh_token_hash=None
        )

        sql, *params = conn.fetchrow.call_args[0]
        assert "UPDATE users" in sql
        assert "AND token_version = $5" in sql
        assert "AND refresh_token_hash IS NOT DISTINCT FROM $6" in sql
        assert params[0] == 4
        assert params[1] is None
        assert params[3:] == [user.id, 3, "b" * 64]
        assert updated.token_version == 4

    async def test_returns_none_when_row_changed(self, conn):
        conn.fetchrow.return_value = None
        user = make_user()

        assert await UserService().update_auth_state(user, 0, "new") is None

    async def test_rejects_decreasing_version(self, conn):
        user = make_user(token_version=2)

        with pytest.raises(ValueError):
            await UserService().update_auth_state(user, 1, None)

        conn.fetchrow.assert_not_awaited()
