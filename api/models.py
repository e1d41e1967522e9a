"""
API request and response models for authstarter REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Every response shares the envelope {code, message, ...data}; every error
{code, message, error?, errors?}. `code` always equals the HTTP status.
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# One "@", no whitespace, a dot in the domain.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# At least one lowercase, one uppercase, one digit; 8+ chars. Lookaheads are not
# supported by Field(pattern=...), so this runs in a field_validator with `re`.
_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)[a-zA-Z\d\W]{8,}$")
_PASSWORD_RULE = "Password must contain at least 1 uppercase letter, 1 lowercase letter, and 1 number"


def _check_strength(value: str) -> str:
    if not _PASSWORD_RE.match(value):
        raise ValueError(_PASSWORD_RULE)
    return value


def _strip(value: str) -> str:
    return value.strip() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/user-login."""

    email: str = Field(min_length=2, max_length=100, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: str) -> str:
        return _strip(value)


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth/user-registration.

    confirm_password is optional; when present it must equal password. The
    comparison happens in the service so a mismatch is a 400 like every other
    registration rule violation, not a 422.
    """

    name: str = Field(min_length=2, max_length=100)
    email: str = Field(min_length=5, max_length=100, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=255)
    confirm_password: Optional[str] = Field(default=None, max_length=255)

    @field_validator("name", "email", mode="before")
    @classmethod
    def strip_fields(cls, value: str) -> str:
        return _strip(value)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_strength(value)


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /api/auth/forgot-password."""

    email: str = Field(min_length=2, max_length=100, pattern=EMAIL_PATTERN)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: str) -> str:
        return _strip(value)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/auth/reset-password."""

    email: str = Field(min_length=2, max_length=100, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=255)
    confirm_password: Optional[str] = Field(default=None, max_length=255)
    token: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: str) -> str:
        return _strip(value)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_strength(value)


class VerifyEmailRequest(BaseModel):
    """Request body for POST /api/auth/verify-email."""

    email: str = Field(min_length=2, max_length=100, pattern=EMAIL_PATTERN)
    token: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: str) -> str:
        return _strip(value)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ApiResponse(BaseModel):
    """Success envelope. Subclasses add the payload fields at the top level."""

    model_config = ConfigDict(frozen=True)

    code: int = 200
    message: str = "data has been received"


class LoginResponse(ApiResponse):
    token: str
    email: str
    name: str
    user_id: int
    expires_in: int


class RegisterResponse(ApiResponse):
    code: int = 201
    user_id: int


class EmailResponse(ApiResponse):
    email: str


class MeResponse(ApiResponse):
    user_id: int
    name: str
    email: str
    is_email_verified: bool


class HealthStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    database: str
    timezone: str
    date: str
    uptime: float


class HealthResponse(ApiResponse):
    data: HealthStatus


class FieldError(BaseModel):
    """One failed validation rule."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    code: int
    message: str
    error: Optional[str] = None
    errors: Optional[list[FieldError]] = None
