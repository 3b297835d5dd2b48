"""
core/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (to mount SlowAPIMiddleware and the 429 handler) and
by the login/registration routes in both api/ and web/ (to apply per-route
limits with @limiter.limit()). It lives in core/ because api/ and web/ must
not import each other.

All routes share this one instance and therefore one in-memory counter store.

@limiter.limit() must sit BELOW @router.post(): the router registers whatever
function it is given, and only the slowapi wrapper performs the check.
"""

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=get_settings().rate_limit_enabled,
)

# Used when the exceeded limit does not say how long its window is.
_DEFAULT_RETRY_AFTER = 60


def login_rate_limit() -> str:
    """Limit for login and registration, e.g. "10/minute".

    Passed to @limiter.limit() as a callable so slowapi reads LOGIN_RATE_LIMIT
    on each request rather than once at import.
    """
    return get_settings().login_rate_limit


def retry_after_seconds(exc: RateLimitExceeded) -> int:
    """Length of the exceeded limit's window, for the Retry-After header."""
    item = getattr(getattr(exc, "limit", None), "limit", None)
    if item is None:
        return _DEFAULT_RETRY_AFTER
    return int(item.get_expiry())
