"""Per-IP rate limiting for the auth endpoints (slowapi).

OTP issuance has its own per-account quotas; this only caps how hard a single
client address can hit /auth.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from safecircle.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

AUTH = settings.auth_rate_limit
