"""
auth/service.py -- Login, registration, email verification and password reset.

AuthService orchestrates the stores, the token codec, the password hasher and
the mailer. Every flow is a straight line: look up, check, write, notify. No
retries, no compensation -- if the email step fails after the write, the
request reports a 500 and the write stands (the user can ask again).

Errors are raised as core.errors.ServiceError subclasses; api/main.py maps
them to HTTP responses. Nothing in here imports FastAPI.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from auth.models import LoginResult, User
from auth.passwords import hash_password, verify_password
from auth.store import SessionStore, UserStore
from auth.tokens import generate_token, verify_token
from core.config import Settings, get_settings
from core.errors import BadRequestError, InternalServerError, NotFoundError
from core.mailer import MailDeliveryError, Mailer

logger = logging.getLogger("authstarter.auth")

_RESET_TYPE = "password-reset"
_VERIFY_TYPE = "email-verification"
_INVALID_TOKEN = "Invalid or expired token"


class AuthService:
    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        mailer: Mailer,
        settings: Settings | None = None,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.mailer = mailer
        self.settings = settings or get_settings()

    @property
    def _secret(self) -> str:
        return self.settings.jwt_secret_access_token

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> LoginResult:
        """Check credentials and issue an access token.

        The caller persists the session (SessionStore.upsert_by_user) so the
        token and the row are written by the same request handler.
        """
        user = self.users.get_by_email(email)
        if user is None:
            raise NotFoundError("Account not found or not registered")
        if not user.is_active:
            raise BadRequestError("Your account is not active", code="forbidden")
        if not verify_password(password, user.password):
            logger.warning("Failed login attempt for user: %s", user.email)
            raise BadRequestError("Invalid username or password", code="bad_credentials")

        issued = generate_token(
            {"email": user.email, "userId": user.id, "role": "user"},
            self._secret,
            self.settings.access_token_expires,
        )
        logger.info("User logged in: %s", user.email)
        return LoginResult(
            token=issued.token,
            email=user.email,
            name=user.name,
            user_id=user.id,
            expires_in=issued.expires_in,
        )

    def logout(self, token: str) -> int:
        """Drop the session holding token. Already-gone sessions are not an error."""
        removed = self.sessions.delete_by_token(token)
        if removed:
            logger.info("Session closed (%d row)", removed)
        return removed

    # ------------------------------------------------------------------
    # Registration / verification
    # ------------------------------------------------------------------

    def register(
        self,
        name: str,
        email: str,
        password: str,
        confirm_password: str | None = None,
    ) -> dict:
        """Create an unverified account and send the verification email."""
        if confirm_password is not None and confirm_password != password:
            raise BadRequestError("Passwords do not match", code="password_mismatch")
        if self.users.get_by_email(email, include_deleted=True) is not None:
            raise BadRequestError("User already exists", code="user_exists")

        new_user = User(
            name=name,
            email=email,
            password=hash_password(password),
            is_email_verified=False,
        )
        try:
            user_id = self.users.create_user(new_user)
        except IntegrityError as exc:
            # Lost a race with a concurrent registration for the same email.
            raise BadRequestError("User already exists", code="user_exists") from exc
        logger.info("Registered user %s (%s)", email, user_id)

        self.send_verification_email(email)
        return {
            "message": "User registered successfully. Please check your email to verify your account.",
            "user_id": user_id,
        }

    def send_verification_email(self, email: str) -> dict:
        user = self.users.get_by_email(email)
        if user is None:
            raise NotFoundError("User not found")

        issued = generate_token(
            {"email": email, "type": _VERIFY_TYPE},
            self._secret,
            self.settings.verification_token_expires,
        )
        self.users.set_password_token(email, issued.token)
        self._send(
            email,
            "Verify Your Email",
            f"Please verify your email using the following token: {issued.token}\n\n"
            "This token will expire in 24 hours.",
            failure="Failed to send verification email.",
        )
        return {"message": "Verification email sent"}

    def verify_email(self, email: str, token: str) -> dict:
        claims = self._check_stored_token(email, token)
        if claims.get("type") != _VERIFY_TYPE:
            raise BadRequestError(_INVALID_TOKEN, code="invalid_token")
        self.users.mark_email_verified(email)
        logger.info("Email verified: %s", email)
        return {"message": "Email verified successfully", "email": email}

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def request_password_reset(self, email: str) -> dict:
        user = self.users.get_by_email(email)
        if user is None:
            raise NotFoundError("Account not found")

        issued = generate_token(
            {"email": user.email, "type": _RESET_TYPE},
            self._secret,
            self.settings.reset_token_expires,
        )
        self.users.set_password_token(email, issued.token)
        self._send(
            email,
            "Password Reset Request",
            "You requested a password reset. Please use the following token to reset your password: "
            f"{issued.token}\n\nIf you did not request this, please ignore this email.",
            failure="Failed to send password reset email.",
        )
        return {"message": "Password reset instructions sent to your email"}

    def reset_password(
        self,
        email: str,
        password: str,
        token: str,
        confirm_password: str | None = None,
    ) -> dict:
        """Consume the stored reset token and set a new password.

        The provided token must byte-match the stored one AND pass signature
        and expiry checks on its own. The stored token is cleared on success,
        so the same token cannot be replayed.
        """
        if confirm_password is not None and confirm_password != password:
            raise BadRequestError("Passwords do not match", code="password_mismatch")
        self._check_stored_token(email, token)

        self.users.update_password(email, hash_password(password))
        logger.info(
            "Password reset for user with email: %s at %s", email, datetime.now(timezone.utc).isoformat()
        )

        self._send(
            email,
            "Password reset successfully",
            "Your password has been reset successfully. "
            "If you did not request this change, please contact us immediately.",
            failure="Failed to send confirmation email.",
        )
        return {"message": "Password reset successfully", "email": email}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_stored_token(self, email: str, token: str) -> dict:
        """Return the token's claims if it matches the stored one and verifies."""
        user = self.users.get_by_email(email)
        if user is None or not user.password_token or user.password_token != token:
            raise BadRequestError(_INVALID_TOKEN, code="invalid_token")
        result = verify_token(token, self._secret)
        if not result.valid:
            raise BadRequestError(_INVALID_TOKEN, code="invalid_token")
        return result.claims

    def _send(self, to: str, subject: str, text: str, failure: str) -> None:
        try:
            self.mailer.send(to=to, subject=subject, text=text)
        except MailDeliveryError as exc:
            logger.error("%s (%s): %s", failure, to, exc)
            raise InternalServerError(failure, code="email_failed") from exc
