"""Rate limiting for the Tarana API.

Only ``POST /referrals/validate`` is reachable without a session, so it
carries its own tighter limit (``VALIDATE_RATE_LIMIT``) to slow down
referral code enumeration. Everything else shares the default ceiling.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from tarana.settings import settings

DEFAULT_LIMITS = ["200/minute"]

# Per-process counters; enforced in production only so tests and local runs are not throttled
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=DEFAULT_LIMITS,
    storage_uri="memory://",
    enabled=settings.env == "production",
)
