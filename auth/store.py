"""
auth/store.py -- SQLAlchemy Core persistence layer for users and sessions.

Pattern: Repository + Data Mapper. UserStore and SessionStore are the
repositories; _row_to_user / _row_to_session are the mappers. Route, gate and
service code never touches SQL directly.

Both stores share one Engine (created by create_db_engine) because
user_sessions.user_id is a foreign key into users with ON DELETE CASCADE.

Security:
  All queries use bound parameters. No f-strings in SQL.

SQLite notes:
  Foreign keys are off by default in SQLite. The connect listener turns them
  on per connection (PRAGMAs are not inherited from the pool) so the session
  cascade is enforced. WAL mode lets readers proceed during writes.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.models import User, UserSession

logger = logging.getLogger("authstarter.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("email", String(100), nullable=False, unique=True),
    Column("password", String(255)),  # NULL until first credential set
    Column("password_token", Text),  # latest reset / verification token
    Column("is_active", Boolean, nullable=False, default=True),
    Column("is_email_verified", Boolean, nullable=False, default=False),
    Column("is_deleted", Boolean, nullable=False, default=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_sessions = Table(
    "user_sessions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("token", Text, nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Columns update_user() may touch. Everything else goes through a dedicated
# method so invariants (token clearing, timestamps) stay in one place.
_MUTABLE_USER_FIELDS = {"name", "is_active", "is_email_verified", "is_deleted"}


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _sqlite_pragmas(dbapi_conn, connection_record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(db_url: str) -> Engine:
    """Create an Engine for db_url and make sure both tables exist."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _sqlite_pragmas)
    _metadata.create_all(engine)
    return engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        engine = create_db_engine("sqlite:///authstarter.db")
        users = UserStore(engine)
        uid = users.create_user(User(name="Alice", email="alice@example.com"))
        user = users.get_by_email("alice@example.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def check_connection(self, retries: int = 3, delay: float = 1.0) -> None:
        """Run SELECT 1, retrying on failure. Re-raises after the last attempt."""
        attempt = 0
        while True:
            try:
                with self.engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                logger.info("Database connected")
                return
            except SQLAlchemyError:
                if attempt >= retries:
                    logger.error("Unable to connect to the database")
                    raise
                attempt += 1
                logger.warning(
                    "Database connection failed, retrying... (%d attempts left)", retries - attempt + 1
                )
                time.sleep(delay)

    def ping(self) -> bool:
        """Return True if the database answers SELECT 1. Never raises."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("Database health check failed")
            return False

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists
        (including soft-deleted rows -- the UNIQUE constraint covers them).
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=user.email,
                    password=user.password,
                    password_token=user.password_token,
                    is_active=user.is_active,
                    is_email_verified=user.is_email_verified,
                    is_deleted=user.is_deleted,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str, include_deleted: bool = False) -> User | None:
        """Look up a user by exact email. Soft-deleted rows are hidden unless asked for."""
        query = _users.select().where(_users.c.email == email)
        if not include_deleted:
            query = query.where(_users.c.is_deleted.is_(False))
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def count(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT COUNT(*) FROM users")).scalar() or 0

    def set_password_token(self, email: str, token: str | None) -> bool:
        """Store (or clear, with None) the pending reset / verification token."""
        return self._update_by_email(email, password_token=token)

    def update_password(self, email: str, hashed_password: str) -> bool:
        """Set a new password hash, clear the pending token and mark the email verified.

        A successful reset proves control of the mailbox, which is what
        verification means.
        """
        return self._update_by_email(
            email,
            password=hashed_password,
            password_token=None,
            is_email_verified=True,
        )

    def mark_email_verified(self, email: str) -> bool:
        return self._update_by_email(email, is_email_verified=True, password_token=None)

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable profile flags. Unknown fields raise ValueError.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_USER_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if not fields:
            return False
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(updated_at=_now_iso(), **fields)
            )
            conn.commit()
        return result.rowcount > 0

    def soft_delete(self, user_id: int) -> bool:
        """Flag the user deleted and inactive. The row (and its email) stay."""
        return self.update_user(user_id, is_deleted=True, is_active=False)

    def _update_by_email(self, email: str, **values) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.email == email).values(updated_at=_now_iso(), **values)
            )
            conn.commit()
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SessionStore:
    """Repository for the one-row-per-user session table.

    upsert_by_user() is find-then-write without a transaction around it. Two
    concurrent logins for the same user can interleave; the last write wins.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def upsert_by_user(self, user_id: int, token: str) -> UserSession:
        """Overwrite the user's session token, or insert the first session row."""
        now = _now_iso()
        existing = self.get_by_user(user_id)
        with self.engine.connect() as conn:
            if existing is not None:
                conn.execute(
                    _sessions.update().where(_sessions.c.user_id == user_id).values(token=token, updated_at=now)
                )
            else:
                conn.execute(_sessions.insert().values(user_id=user_id, token=token, created_at=now, updated_at=now))
            conn.commit()
        return self.get_by_user(user_id)

    def get_by_token(self, token: str) -> UserSession | None:
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.token == token).limit(1)).fetchone()
        return _row_to_session(row) if row is not None else None

    def get_by_user(self, user_id: int) -> UserSession | None:
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.user_id == user_id).limit(1)).fetchone()
        return _row_to_session(row) if row is not None else None

    def exists(self, token: str | None = None, user_id: int | None = None) -> bool:
        """Return True if a session matches every filter given. No filters -> any session."""
        query = _sessions.select()
        if token is not None:
            query = query.where(_sessions.c.token == token)
        if user_id is not None:
            query = query.where(_sessions.c.user_id == user_id)
        with self.engine.connect() as conn:
            row = conn.execute(query.limit(1)).fetchone()
        return row is not None

    def delete_by_token(self, token: str) -> int:
        """Delete the session holding token. Returns rows removed (0 if none)."""
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.token == token))
            conn.commit()
        return result.rowcount

    def list_sessions(self) -> list[UserSession]:
        with self.engine.connect() as conn:
            rows = conn.execute(_sessions.select().order_by(_sessions.c.id)).fetchall()
        return [_row_to_session(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        password=row.password,
        password_token=row.password_token,
        is_active=bool(row.is_active),
        is_email_verified=bool(row.is_email_verified),
        is_deleted=bool(row.is_deleted),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_session(row) -> UserSession:
    return UserSession(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
