import logging
from fastapi import HTTPException
from redis.exceptions import RedisError
from app.core.redis import get_redis
from app.core.config import settings
from app.core.metrics import rate_limit_exceeded

logger = logging.getLogger(__name__)


async def check_rate_limit(user_id: int):
    redis = get_redis()
    if redis is None:
        logger.warning("Rate limiting skipped: Redis not connected")
        return
    key = f"rl:{user_id}"
    try:
        count = await redis.incr(key)
        if count == 1:
            await redis.expire(key, settings.RATE_LIMIT_WINDOW)
    except RedisError as e:
        logger.warning(f"Rate limiting skipped: {e}")
        return
    if count > settings.RATE_LIMIT:
        rate_limit_exceeded.labels(user_id=str(user_id)).inc()
        raise HTTPException(status_code=429, detail="Rate limit exceeded")
