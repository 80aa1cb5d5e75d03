# product_discovery/services/cache_service.py
import json
import logging
from typing import Optional, Any, Dict
from datetime import datetime, timedelta
import redis.asyncio as redis

from product_discovery.config.settings import settings as default_settings

logger = logging.getLogger(__name__)


class CacheService:
    """JSON key/value cache: Redis when reachable, bounded in-process memory always."""

    def __init__(self, redis_url: str = None, max_memory_size: int = None):
        self.redis_url = default_settings.REDIS_URL if redis_url is None else redis_url
        self.max_memory_cache_size = max_memory_size or default_settings.MEMORY_CACHE_SIZE
        self.redis_client: Optional[redis.Redis] = None
        self.memory_cache: Dict[str, Dict[str, Any]] = {}
        self.redis_enabled = self.redis_url.startswith(("redis://", "rediss://"))
        if not self.redis_enabled:
            logger.info(f"Cache URL {self.redis_url!r} is not a Redis URL, using memory cache only")

    async def _get_redis_client(self) -> Optional[redis.Redis]:
        if not self.redis_enabled:
            return None

        if self.redis_client is None:
            try:
                self.redis_client = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_timeout=5,
                    socket_connect_timeout=5
                )
                await self.redis_client.ping()
                logger.info("✅ Redis connection established")
            except (redis.RedisError, OSError) as e:
                logger.warning(f"⚠️ Redis connection failed: {e}. Using memory cache only.")
                self.redis_client = None
                self.redis_enabled = False
                return None

        return self.redis_client

    def _build_key(self, key: str, namespace: Optional[str]) -> str:
        return f"{namespace}:{key}" if namespace else key

    async def get(self, key: str, namespace: Optional[str] = None) -> Optional[Any]:
        full_key = self._build_key(key, namespace)

        redis_client = await self._get_redis_client()
        if redis_client:
            try:
                value = await redis_client.get(full_key)
                if value:
                    return json.loads(value)
            except (redis.RedisError, ValueError) as e:
                logger.warning(f"Redis get error: {e}")

        entry = self.memory_cache.get(full_key)
        if entry is not None:
            if datetime.now() < entry["expires"]:
                return entry["value"]
            del self.memory_cache[full_key]
        return None

    async def set(self, key: str, value: Any, ttl: int = 3600, namespace: Optional[str] = None) -> bool:
        """False when the value could not be stored anywhere."""
        full_key = self._build_key(key, namespace)
        try:
            payload = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.error(f"Cache value for {full_key} is not serializable: {e}")
            return False

        redis_client = await self._get_redis_client()
        if redis_client:
            try:
                await redis_client.setex(full_key, ttl, payload)
            except redis.RedisError as e:
                logger.warning(f"Redis set error: {e}")

        # FIFO eviction
        if full_key not in self.memory_cache and len(self.memory_cache) >= self.max_memory_cache_size:
            self.memory_cache.pop(next(iter(self.memory_cache)))

        self.memory_cache[full_key] = {
            "value": json.loads(payload),
            "expires": datetime.now() + timedelta(seconds=ttl)
        }
        return True

    async def delete(self, key: str, namespace: Optional[str] = None) -> bool:
        full_key = self._build_key(key, namespace)
        deleted = self.memory_cache.pop(full_key, None) is not None

        redis_client = await self._get_redis_client()
        if redis_client:
            try:
                deleted = bool(await redis_client.delete(full_key)) or deleted
            except redis.RedisError as e:
                logger.warning(f"Redis delete error: {e}")
        return deleted

    async def health_check(self) -> str:
        test_key = "health_check"
        await self.set(test_key, "test", 5)
        value = await self.get(test_key)
        await self.delete(test_key)
        if value != "test":
            return "unhealthy"
        return "healthy" if self.redis_enabled else "degraded"

    async def close(self):
        if self.redis_client:
            try:
                await self.redis_client.aclose()
            except redis.RedisError as e:
                logger.warning(f"Redis close error: {e}")
            self.redis_client = None
        self.memory_cache.clear()
