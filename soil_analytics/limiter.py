from slowapi import Limiter
from slowapi.util import get_remote_address
from soil_analytics.config import settings

limiter = Limiter(
    key_func=get_remote_address, 
    default_limits=[settings.DEFAULT_RATELIMIT],
    enabled=settings.RATELIMIT_ENABLED
)
