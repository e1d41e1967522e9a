"""
auth/passwords.py -- Password hashing, verification and generation.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection feeds bcrypt a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

The cost factor comes from BCRYPT_ROUNDS (default 12). Tests lower it to keep
the suite fast; production should leave it alone.
"""

from __future__ import annotations

import secrets
import string

import bcrypt

from core.config import get_settings

_SPECIAL_CHARS = "!@#$%^&*()_+-=[]{}|;:,.<>?"


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the plaintext password.

    bcrypt silently truncates input beyond 72 bytes. The API layer caps
    passwords at 255 characters, so very long inputs share a hash prefix --
    a known bcrypt limitation, not something this module works around.
    """
    rounds = get_settings().bcrypt_rounds
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str | None) -> bool:
    """Return True if the plaintext matches the hash. False on mismatch or bad input."""
    if not hashed or plain is None:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def generate_random_password(length: int = 12) -> str:
    """Return a random password with at least one upper, lower, digit and special char."""
    if length < 4:
        raise ValueError("length must be at least 4")
    alphabet = string.ascii_letters + string.digits + _SPECIAL_CHARS
    chars = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice(_SPECIAL_CHARS),
    ]
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(chars)))
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
