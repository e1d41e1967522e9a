"""
auth/dependencies.py -- FastAPI Depends() helpers for the auth gate.

Token sources are checked in priority order:
  1. Authorization header -- "Bearer <jwt>" (also "JWT" / "Token" schemes).
  2. Cookie "token"        -- set by POST /api/auth/user-login.
  3. Query parameter token -- last resort for links; logged as a warning
                              because URLs end up in proxy and server logs.

Gate states (require_session):
  no token                    -> 401 "Unauthorized, no token provided"
  token fails verification    -> 401 "Unauthorized, invalid jwt"
  not an access token         -> 401 "Unauthorized, invalid jwt"
                                 (has a "type" claim or no "userId")
  token valid, no session row -> 401 "Unauthorized, no valid session"
  valid                       -> AuthContext on request.state.auth

require_token() runs the first three states only. Logout uses it so that a
still-valid token whose session is already gone logs out cleanly (200)
instead of failing.

Both dependencies are plain functions: FastAPI runs them in the worker
thread pool, so the session lookup does not block the event loop.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from fastapi import Request

from auth.models import AuthContext
from auth.store import SessionStore
from auth.tokens import verify_token
from core.config import get_settings
from core.errors import UnauthorizedError

logger = logging.getLogger("authstarter.auth.gate")

TOKEN_COOKIE = "token"
_ALLOWED_SCHEMES = ("Bearer", "JWT", "Token")


def extract_token(request: Request) -> str | None:
    """Return the raw token from header, cookie or query (in that order), or None."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header:
        parts = auth_header.split(" ")
        if len(parts) == 2 and parts[0] in _ALLOWED_SCHEMES and parts[1]:
            logger.debug("extract auth from header")
            return parts[1]

    cookie = request.cookies.get(TOKEN_COOKIE)
    if cookie:
        logger.debug("extract auth from cookie")
        return cookie

    query = request.query_params.get("token")
    if query:
        logger.warning("extract auth from query (insecure) on %s", request.url.path)
        return query

    return None


def _verified_context(request: Request) -> AuthContext:
    token = extract_token(request)
    if not token:
        logger.info("unauthorized, no token provided: %s", request.url.path)
        raise UnauthorizedError("Unauthorized, no token provided", code="no_token")

    result = verify_token(token, get_settings().jwt_secret_access_token)
    if not result.valid:
        logger.info("unauthorized, invalid jwt (%s): %s", result.error.value, request.url.path)
        raise UnauthorizedError("Unauthorized, invalid jwt", code="invalid_token")

    # Reset and verification tokens share the secret; only access tokens pass.
    if "type" in result.claims or result.claims.get("userId") is None:
        logger.info("unauthorized, not an access token: %s", request.url.path)
        raise UnauthorizedError("Unauthorized, invalid jwt", code="invalid_token")

    return AuthContext(token=token, claims=result.claims)


def require_token(request: Request) -> AuthContext:
    """Admit any request carrying a verifiable token. No session lookup."""
    context = _verified_context(request)
    request.state.auth = context
    return context


def require_session(request: Request) -> AuthContext:
    """Admit only requests whose verified token still has a live session row.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(auth: AuthContext = Depends(require_session)): ...
    """
    context = _verified_context(request)
    sessions: SessionStore = request.app.state.session_store
    session = sessions.get_by_token(context.token)
    if session is None:
        logger.info("unauthorized, no valid session: %s", request.url.path)
        raise UnauthorizedError("Unauthorized, no valid session", code="no_session")

    context.session = session
    request.state.auth = context
    return context
