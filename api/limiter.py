"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (registered on app.state for SlowAPIMiddleware) and
by api/routes/auth.py, whose handlers each carry @limiter.limit():

  RATE_LIMIT       -- every /api route (default 100/minute per address)
  AUTH_RATE_LIMIT  -- user-login and forgot-password (default 10/minute)

A single shared instance keeps one in-memory counter store. If each module
built its own Limiter, counters would be isolated and limits would never
trigger. RATE_LIMIT_ENABLED=false turns every limit off.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[_settings.rate_limit],
    storage_uri="memory://",
    enabled=_settings.rate_limit_enabled,
)
