import redis

from wordswap.core.config import get_settings


def get_redis_client() -> redis.Redis | None:
    settings = get_settings()
    if not settings.redis_url:
        return None
    try:
        return redis.Redis.from_url(settings.redis_url, decode_responses=True)
    except (redis.RedisError, ValueError):
        return None
