"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (mounted as middleware) and by api/routes/v1/auth.py,
which applies the login limit with @limiter.limit(). One shared instance means
one counter store; separate instances per module would never trip.

Keyed by client address. Tests switch it off with limiter.enabled = False.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings


def login_limit() -> str:
    """Current login rate limit, e.g. "10/minute" (LOGIN_RATE_LIMIT)."""
    return get_settings().login_rate_limit


limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
