"""
tests/conftest.py -- Shared test fixtures for authstarter unit and integration tests.

This module provides:
  - RecordingMailer / FailingMailer: Mailer doubles (capture or refuse mail)
  - _make_test_engine(): isolated in-memory DB per test module / test
  - _patch_lifespan(): wires test stores and service into app.state
  - api_client: TestClient over the real app with a recording mailer
  - users / sessions / mailer / service: function-scoped unit fixtures

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment must be set before any auth/core import:
  DEBUG=true               -- get_settings() auto-generates the JWT secret
  BCRYPT_ROUNDS=4          -- keeps hashing fast
  RATE_LIMIT_ENABLED=false -- the suite fires many requests from one address
"""

from __future__ import annotations

import os
import re
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: set before any auth/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app
from auth.service import AuthService
from auth.store import SessionStore, UserStore, create_db_engine
from core.config import get_settings
from core.mailer import MailDeliveryError, Mailer

_TOKEN_RE = re.compile(r"token[^:]*: (\S+)")


# ---------------------------------------------------------------------------
# Mailer doubles
# ---------------------------------------------------------------------------


@dataclass
class SentMail:
    to: str
    subject: str
    text: str | None
    html: str | None


class RecordingMailer(Mailer):
    """Keeps every message in memory instead of sending it."""

    def __init__(self) -> None:
        self.sent: list[SentMail] = []

    def send(self, to: str, subject: str, text: str | None = None, html: str | None = None) -> None:
        self.sent.append(SentMail(to=to, subject=subject, text=text, html=html))

    def last_token(self, to: str) -> str:
        """Return the token embedded in the most recent message to `to`."""
        for mail in reversed(self.sent):
            if mail.to == to:
                match = _TOKEN_RE.search(mail.text or "")
                if match:
                    return match.group(1)
        raise AssertionError(f"No token-bearing email sent to {to}")


class FailingMailer(Mailer):
    """Refuses every message, like an unreachable SMTP relay."""

    def send(self, to: str, subject: str, text: str | None = None, html: str | None = None) -> None:
        raise MailDeliveryError("connection refused")


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_engine(db_suffix: str) -> Engine:
    """Create an isolated named shared-memory SQLite engine.

    Args:
        db_suffix: Unique string appended to the DB name so test modules (and
                   function-scoped fixtures) never share state.
    """
    return create_db_engine(f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built test stores and service into app.state so TestClient
    routes hit isolated in-memory DBs and never talk to SMTP or S3.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = service.users
        app.state.session_store = service.sessions
        app.state.auth_service = service
        app.state.storage = None
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, AuthService, RecordingMailer], None, None]:
    """Yield (client, service, mailer) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan, so tests
    exercise real middleware, gate and handlers against an in-memory DB.
    """
    engine = _make_test_engine(f"api_{uuid.uuid4().hex[:8]}")
    mailer = RecordingMailer()
    service = AuthService(UserStore(engine), SessionStore(engine), mailer, get_settings())

    app.router.lifespan_context = _patch_lifespan(service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, service, mailer

    engine.dispose()


# ---------------------------------------------------------------------------
# Function-scoped unit fixtures -- a fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = _make_test_engine(f"unit_{uuid.uuid4().hex[:8]}")
    yield eng
    eng.dispose()


@pytest.fixture
def users(engine: Engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def sessions(engine: Engine) -> SessionStore:
    return SessionStore(engine)


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def service(users: UserStore, sessions: SessionStore, mailer: RecordingMailer) -> AuthService:
    return AuthService(users, sessions, mailer, get_settings())


@pytest.fixture
def failing_mailer() -> FailingMailer:
    return FailingMailer()
