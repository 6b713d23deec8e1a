from dataclasses import dataclass
import logging
import threading
import time

import redis

from wordswap.services.redis_client import get_redis_client

logger = logging.getLogger(__name__)

REDIS_KEY_PREFIX = "wordswap:ratelimit"


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int
    reset_after_seconds: int

    @classmethod
    def from_count(cls, count: int, limit: int, reset_seconds: int) -> "RateLimitDecision":
        allowed = count <= limit
        return cls(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - count),
            retry_after_seconds=0 if allowed else reset_seconds,
            reset_after_seconds=reset_seconds,
        )


class RateLimitService:
    """Fixed-window counters keyed by caller-supplied strings.

    Counts live in Redis when a URL is configured and in process memory
    otherwise; a Redis error falls back to the memory window for that call.
    """

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        self._redis = redis_client if redis_client is not None else get_redis_client()
        self._memory_counters: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def check(self, key: str, *, limit: int, window_seconds: int) -> RateLimitDecision:
        safe_limit = max(1, int(limit))
        safe_window = max(1, int(window_seconds))
        if self._redis is not None:
            try:
                return self._check_redis(key, safe_limit, safe_window)
            except redis.RedisError as exc:
                logger.warning("Rate limit store unavailable, using memory window: %s", exc)
        return self._check_memory(key, safe_limit, safe_window)

    def clear(self) -> None:
        with self._lock:
            self._memory_counters.clear()

    def _check_redis(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        bucket = int(time.time() // window_seconds)
        redis_key = f"{REDIS_KEY_PREFIX}:{key}:{bucket}"
        pipe = self._redis.pipeline()
        pipe.incr(redis_key, 1)
        pipe.ttl(redis_key)
        count_value, ttl_value = pipe.execute()
        ttl = int(ttl_value) if isinstance(ttl_value, int) else -1
        if ttl < 0:
            self._redis.expire(redis_key, window_seconds + 1)
            ttl = window_seconds
        return RateLimitDecision.from_count(int(count_value), limit, max(1, ttl))

    def _prune_memory_locked(self, now_epoch: float) -> None:
        stale_keys = [
            bucket_key
            for bucket_key, (_, reset_epoch) in self._memory_counters.items()
            if now_epoch > reset_epoch + 1
        ]
        for stale_key in stale_keys:
            self._memory_counters.pop(stale_key, None)

    def _check_memory(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        now_epoch = time.time()
        bucket = int(now_epoch // window_seconds)
        bucket_key = f"{key}:{bucket}"
        with self._lock:
            self._prune_memory_locked(now_epoch)
            count, reset_epoch = self._memory_counters.get(
                bucket_key,
                (0, float((bucket + 1) * window_seconds)),
            )
            count += 1
            self._memory_counters[bucket_key] = (count, reset_epoch)
        return RateLimitDecision.from_count(count, limit, max(1, int(reset_epoch - now_epoch)))


rate_limit_service = RateLimitService()
