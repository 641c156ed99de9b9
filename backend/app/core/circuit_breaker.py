# app/core/circuit_breaker.py

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

# Keyed by client address; anon codes are never part of the key
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

SEND_LIMIT = settings.SEND_RATE_LIMIT
FETCH_LIMIT = settings.FETCH_RATE_LIMIT
