"""
Shared rate limiting configuration.

The SlowAPI limiter lives here so routers can decorate endpoints without
importing the FastAPI app.
"""
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)

rate_limit_handler = _rate_limit_exceeded_handler
rate_limit_exception = RateLimitExceeded
