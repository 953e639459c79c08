"""Global rate limiter instance for SlowAPI."""

from slowapi import Limiter
from slowapi.util import get_remote_address
from common.core.config import settings

# Multiple limits: both must be satisfied (whichever is hit first applies)
# memory:// is per-pod; point rate_limit_storage_uri at redis:// when scaled out
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=settings.rate_limit_defaults,
    storage_uri=settings.rate_limit_storage_uri,
)
