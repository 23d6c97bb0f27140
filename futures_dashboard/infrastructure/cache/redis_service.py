import redis
import json
import logging
from typing import Optional, Any

logger = logging.getLogger(__name__)


class RedisService:
    """
    Optional shared cache level. Every operation degrades to a miss / no-op
    when Redis is not configured or not reachable.
    """

    def __init__(self, redis_url: Optional[str] = None, prefix: str = "futures_dashboard:"):
        self.redis_url = redis_url
        self.prefix = prefix
        self.client = None
        if self.redis_url:
            try:
                self.client = redis.from_url(self.redis_url, decode_responses=True)
                # Test connection
                self.client.ping()
                logger.info("Connected to Redis for caching.")
            except (redis.RedisError, ValueError) as e:
                logger.warning(f"Failed to connect to Redis: {e}. Shared caching disabled.")
                self.client = None
        else:
            logger.info("REDIS_URL not set. Shared caching disabled.")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def get(self, key: str) -> Optional[Any]:
        if not self.client:
            return None
        try:
            data = self.client.get(self.prefix + key)
            if data:
                return json.loads(data)
            return None
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Redis get error: {e}")
            return None

    def set(self, key: str, value: Any, ttl_seconds: int = 300):
        if not self.client:
            return
        try:
            self.client.setex(self.prefix + key, ttl_seconds, json.dumps(value))
        except (redis.RedisError, TypeError) as e:
            logger.warning(f"Redis set error: {e}")

    def delete(self, key: str):
        if not self.client:
            return
        try:
            self.client.delete(self.prefix + key)
        except redis.RedisError as e:
            logger.warning(f"Redis delete error: {e}")
