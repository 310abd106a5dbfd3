import logging
from functools import lru_cache
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError

from .config import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def get_redis_client() -> Optional[Redis]:
    """Return a connected Redis client, or None when Redis is not configured or unreachable."""

    settings = get_settings()
    if not settings.REDIS_URL:
        logger.info("REDIS_URL not set; using process-local OTP locks.")
        return None
    try:
        client = Redis.from_url(settings.REDIS_URL)
        client.ping()
    except (RedisError, OSError) as exc:
        logger.warning("Redis unavailable (%s). Falling back to process-local OTP locks.", exc)
        return None
    logger.info("Using Redis for cross-process OTP locks.")
    return client
