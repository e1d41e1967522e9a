"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these only own the shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered account.

    password is None until the first credential is set. password_token holds
    the latest password-reset or email-verification token and is cleared once
    consumed. Accounts are never hard-deleted by the service layer; is_deleted
    hides them from lookups instead.
    """

    name: str
    email: str
    id: int | None = None
    password: str | None = None  # bcrypt hash
    password_token: str | None = None
    is_active: bool = True
    is_email_verified: bool = False
    is_deleted: bool = False
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class UserSession:
    """The single live session row for a user: the most recently issued token."""

    user_id: int
    token: str
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class LoginResult:
    token: str
    email: str
    name: str
    user_id: int
    expires_in: int


@dataclass
class AuthContext:
    """Identity attached to a request once the gate admits it.

    session is None only for routes guarded by require_token(), which skips
    the session lookup.
    """

    token: str
    claims: dict
    session: UserSession | None = None

    @property
    def user_id(self) -> int | None:
        return self.claims.get("userId")

    @property
    def email(self) -> str | None:
        return self.claims.get("email")
