from __future__ import annotations

import redis

from app.core.config import settings


def get_redis() -> redis.Redis:
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


def try_acquire_lock(key: str, *, ttl_seconds: int) -> bool:
    """SET NX EX lock; the key simply expires, there is no explicit release."""
    r = get_redis()
    return bool(r.set(f"locks:{key}", "1", nx=True, ex=max(1, int(ttl_seconds))))
