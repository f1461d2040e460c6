from slowapi import Limiter
from slowapi.util import get_remote_address

from idsync.config import settings

# Shared by main.py (middleware, exempt probes) and the routers that opt out
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
