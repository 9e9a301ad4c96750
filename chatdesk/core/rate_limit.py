"""
Request throttling for the public and credential endpoints.

Login, refresh and company registration are decorated with AUTH_LIMIT;
every other route gets the RATE_LIMIT_API default. Counters live in the
presence Redis when it answers at import time, so all workers share them;
otherwise each process counts on its own. Throttling is off under TESTING.
"""

import logging
import os

import redis
from slowapi import Limiter
from slowapi.util import get_remote_address

from chatdesk.core.config import settings
from chatdesk.core.redis_client import get_redis_url

logger = logging.getLogger(__name__)

MEMORY_STORAGE = "memory://"

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
AUTH_LIMIT = f"{settings.RATE_LIMIT_AUTH}/minute"


def _default_limits() -> list[str]:
    if IS_TESTING or settings.RATE_LIMIT_API <= 0:
        return []
    return [f"{settings.RATE_LIMIT_API}/minute"]


def _storage_uri(redis_url: str | None) -> str:
    """Shared Redis counters when reachable, per-process memory otherwise."""
    if IS_TESTING or not redis_url:
        return MEMORY_STORAGE
    try:
        redis.from_url(redis_url, socket_connect_timeout=1).ping()
    except (redis.RedisError, ValueError) as exc:
        logger.warning("Rate limit counters are per-process; Redis unreachable: %s", exc)
        return MEMORY_STORAGE
    return redis_url


def build_limiter(redis_url: str | None = None) -> Limiter:
    return Limiter(
        key_func=get_remote_address,
        storage_uri=_storage_uri(redis_url),
        default_limits=_default_limits(),
        enabled=not IS_TESTING,
    )


limiter = build_limiter(get_redis_url())
