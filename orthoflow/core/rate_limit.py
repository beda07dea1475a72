"""Rate limiting configuration for the workflow API."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from orthoflow.core.config import settings

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)

# Single-process deployment: the document store already serializes writers,
# so limiter counters live in memory alongside it.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    default_limits=DEFAULT_LIMITS,
)
