"""
api/routes/auth.py -- Authentication REST endpoints.

Routes (mounted under /api):
  POST /api/auth/user-login         -- password login; issues JWT, upserts session, sets cookie
  POST /api/auth/logout             -- deletes the session for the presented token; clears cookie
  POST /api/auth/user-registration  -- create an unverified account, email a verification token
  POST /api/auth/verify-email       -- consume the verification token
  POST /api/auth/forgot-password    -- email a short-lived reset token
  POST /api/auth/reset-password     -- consume the reset token, set a new password
  GET  /api/auth/me                 -- identity behind the current session

Auth policy:
  - logout: require_token -- a verifiable token is enough; a missing session row
    is a no-op, so logging out twice (or after a newer login) still returns 200.
  - me:     require_session -- the full gate, session row required.
  - everything else is public.

Handlers are plain `def`: FastAPI runs them in its thread pool, so the blocking
store and SMTP calls never stall the event loop.

Cache-Control: no-store on every response that carries a token.

Rate limits: every handler carries @limiter.limit (RATE_LIMIT); user-login and
forgot-password use the tighter AUTH_RATE_LIMIT. Handlers keep a `request`
parameter because the limiter keys on it. The route decorator must stay
outermost so FastAPI registers the limited wrapper.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    ApiResponse,
    EmailResponse,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from auth.dependencies import TOKEN_COOKIE, require_session, require_token
from auth.models import AuthContext
from auth.service import AuthService
from auth.store import SessionStore, UserStore
from core.config import get_settings
from core.errors import NotFoundError

router = APIRouter()
_settings = get_settings()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/user-login", response_model=LoginResponse)
@limiter.limit(_settings.auth_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; persist the session; set the token cookie."""
    result = _service(request).login(body.email, body.password)

    sessions: SessionStore = request.app.state.session_store
    sessions.upsert_by_user(result.user_id, result.token)

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=result.token,
            email=result.email,
            name=result.name,
            user_id=result.user_id,
            expires_in=result.expires_in,
        ).model_dump(),
    )
    resp.set_cookie(
        TOKEN_COOKIE,
        value=result.token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=result.expires_in,
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/user-registration", response_model=RegisterResponse, status_code=201)
@limiter.limit(_settings.rate_limit)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Register a new, unverified user and send the verification email."""
    result = _service(request).register(
        name=body.name,
        email=body.email,
        password=body.password,
        confirm_password=body.confirm_password,
    )
    return RegisterResponse(message=result["message"], user_id=result["user_id"])


@router.post("/auth/verify-email", response_model=EmailResponse)
@limiter.limit(_settings.rate_limit)
def verify_email(request: Request, body: VerifyEmailRequest) -> EmailResponse:
    result = _service(request).verify_email(body.email, body.token)
    return EmailResponse(message=result["message"], email=result["email"])


@router.post("/auth/forgot-password", response_model=ApiResponse)
@limiter.limit(_settings.auth_rate_limit)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> JSONResponse:
    """Email a password reset token. 404 if the account does not exist."""
    result = _service(request).request_password_reset(body.email)
    resp = JSONResponse(content=ApiResponse(message=result["message"]).model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/reset-password", response_model=EmailResponse)
@limiter.limit(_settings.rate_limit)
def reset_password(request: Request, body: ResetPasswordRequest) -> EmailResponse:
    """Set a new password using the emailed reset token. The token is single-use."""
    result = _service(request).reset_password(
        email=body.email,
        password=body.password,
        token=body.token,
        confirm_password=body.confirm_password,
    )
    return EmailResponse(message=result["message"], email=result["email"])


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=ApiResponse)
@limiter.limit(_settings.rate_limit)
def logout(request: Request, auth: AuthContext = Depends(require_token)) -> JSONResponse:
    """Delete the session holding the presented token and clear the cookie."""
    _service(request).logout(auth.token)
    resp = JSONResponse(content=ApiResponse(message="Logged out successfully").model_dump())
    resp.delete_cookie(TOKEN_COOKIE)
    return resp


@router.get("/auth/me", response_model=MeResponse)
@limiter.limit(_settings.rate_limit)
def me(request: Request, auth: AuthContext = Depends(require_session)) -> MeResponse:
    """Return identity information for the user behind the current session."""
    users: UserStore = request.app.state.user_store
    user = users.get_by_id(auth.session.user_id)
    if user is None or user.is_deleted:
        raise NotFoundError("User not found")
    return MeResponse(
        user_id=user.id,
        name=user.name,
        email=user.email,
        is_email_verified=user.is_email_verified,
    )
