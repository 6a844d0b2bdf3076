"""User models."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class UserPublic(BaseModel):
    """User fields safe to return to clients."""

    id: UUID
    username: str
    email: str


class User(BaseModel):
    """A registered user with its authentication state.

    Attributes:
        token_version: Incremented on logout and on refresh token reuse;
            every token carrying an older version is rejected
        refresh_token_hash: SHA-256 of the single refresh token currently
            accepted for this user
    """

    id: UUID
    username: str
    email: str
    password_hash: str = Field(repr=False)
    token_version: int = Field(default=0, ge=0)
    refresh_token_hash: Optional[str] = Field(default=None, repr=False)
    created_at: datetime
    updated_at: datetime

    def public(self) -> UserPublic:
        """Return the client-facing view of this user."""
        return UserPublic(id=self.id, username=self.username, email=self.email)
