"""
auth/tokens.py -- JWT issue and verification.

Design decisions:
  JWT: python-jose with HS256. A single symmetric secret signs access tokens,
       password-reset tokens and email-verification tokens; the claim set
       distinguishes them ("type" on reset/verification tokens).

  Expiry: callers pass a coarse duration string ("1h", "1d", ...). The
       returned expires_in (seconds) lets the route set cookie max_age to the
       same lifetime as the token.

  Verification never raises. It returns a TokenVerification whose error field
       says why the token was refused (expired, malformed, not_yet_valid,
       unknown). The gate turns any error into a 401; the service uses the
       claims only when error is None. There is no state lookup in here --
       session checks belong to the gate.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from core.duration import parse_duration

logger = logging.getLogger("authstarter.auth.tokens")

_ALGORITHM = "HS256"

# Claims every token we issue carries. A token without them was not minted by
# generate_token() and is refused even when the signature checks out.
_REQUIRED_CLAIMS = ("iat", "exp")


class TokenError(str, Enum):
    missing = "missing"
    expired = "expired"
    malformed = "malformed"
    not_yet_valid = "not_yet_valid"
    unknown = "unknown"


@dataclass(frozen=True)
class GeneratedToken:
    token: str
    expires_in: int


@dataclass(frozen=True)
class TokenVerification:
    claims: dict | None
    error: TokenError | None = None
    message: str = "token is verified"

    @property
    def valid(self) -> bool:
        return self.error is None and self.claims is not None


def generate_token(value: dict, secret_key: str, expires: str, not_before: int = 0) -> GeneratedToken:
    """Sign value as a JWT that expires after the given duration.

    Args:
        value:      Claim payload, e.g. {"email": ..., "userId": ..., "role": "user"}.
                    Copied, never mutated.
        secret_key: HS256 signing secret.
        expires:    Duration string accepted by parse_duration ("1h", "1d", ...).
        not_before: Optional delay in seconds before the token becomes valid.
                    0 (default) omits the nbf claim.
    """
    expires_in = parse_duration(expires)
    now = int(time.time())
    payload = dict(value)
    payload["iat"] = now
    payload["exp"] = now + expires_in
    if not_before > 0:
        payload["nbf"] = now + not_before
    token = jwt.encode(payload, secret_key, algorithm=_ALGORITHM)
    return GeneratedToken(token=token, expires_in=expires_in)


def verify_token(token: str | None, secret_key: str) -> TokenVerification:
    """Check signature and time claims. Returns claims or a typed failure."""
    if not token:
        return TokenVerification(claims=None, error=TokenError.missing, message="unauthorized")
    try:
        claims = jwt.decode(token, secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        logger.info("jwt expired error: %s", exc)
        return TokenVerification(claims=None, error=TokenError.expired, message=f"jwt expired error : {exc}")
    except JWTClaimsError as exc:
        if "nbf" in str(exc):
            logger.info("jwt not before error: %s", exc)
            return TokenVerification(
                claims=None, error=TokenError.not_yet_valid, message=f"jwt not before error : {exc}"
            )
        logger.info("jwt claims error: %s", exc)
        return TokenVerification(claims=None, error=TokenError.malformed, message=f"jwt token error : {exc}")
    except JWTError as exc:
        logger.info("jwt token error: %s", exc)
        return TokenVerification(claims=None, error=TokenError.malformed, message=f"jwt token error : {exc}")
    except Exception as exc:  # noqa: BLE001 -- any decoder failure is a refusal, never a 500
        logger.error("unknown token error: %s", exc)
        return TokenVerification(claims=None, error=TokenError.unknown, message=f"unknown error: {exc}")

    missing = [claim for claim in _REQUIRED_CLAIMS if claim not in claims]
    if missing:
        logger.info("token missing required claims: %s", missing)
        return TokenVerification(claims=None, error=TokenError.malformed, message="Invalid token payload")
    return TokenVerification(claims=claims)
