import json
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Optional, Dict
import time
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

class CacheBackend(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        pass

    @abstractmethod
    async def clear(self) -> bool:
        pass

class MemoryCacheBackend(CacheBackend):
    def __init__(self):
        self._cache: Dict[str, Dict] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            item = self._cache.get(key)
            if item is None:
                return None
            if item["expiry"] and time.time() >= item["expiry"]:
                del self._cache[key]
                return None
            return item["value"]

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        async with self._lock:
            ttl = settings.CACHE_TTL if ttl is None else ttl
            self._cache[key] = {
                "value": value,
                "expiry": time.time() + ttl if ttl else 0,
            }
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._cache.pop(key, None) is not None

    async def clear(self) -> bool:
        async with self._lock:
            self._cache.clear()
            return True

class RedisCacheBackend(CacheBackend):
    def __init__(self, redis_url: str):
        import redis.asyncio as redis
        self.redis = redis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> Optional[Any]:
        try:
            value = await self.redis.get(key)
            return json.loads(value) if value else None
        except Exception as e:
            logger.error(f"Redis GET error for key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            serialized = json.dumps(value, default=str)
            ttl = settings.CACHE_TTL if ttl is None else ttl
            if ttl:
                await self.redis.setex(key, ttl, serialized)
            else:
                await self.redis.set(key, serialized)
            return True
        except Exception as e:
            logger.error(f"Redis SET error for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            return await self.redis.delete(key) > 0
        except Exception as e:
            logger.error(f"Redis DELETE error for key {key}: {e}")
            return False

    async def clear(self) -> bool:
        try:
            await self.redis.flushdb()
            return True
        except Exception as e:
            logger.error(f"Redis CLEAR error: {e}")
            return False

def create_cache_backend() -> CacheBackend:
    if settings.REDIS_URL:
        try:
            logger.info("Initializing Redis cache backend")
            return RedisCacheBackend(settings.REDIS_URL)
        except Exception as e:
            logger.error(f"Redis connection failed: {e}, falling back to memory cache")

    logger.info("Using in-memory cache backend")
    return MemoryCacheBackend()

class CacheManager:
    def __init__(self, backend: CacheBackend, namespace: str = "perf"):
        self.backend = backend
        self.namespace = namespace

    def key(self, prefix: str, *parts: Any) -> str:
        return ":".join([self.namespace, prefix, *map(str, parts)])

    async def get(self, key: str) -> Optional[Any]:
        return await self.backend.get(key)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return await self.backend.set(key, value, ttl)

    async def delete(self, key: str) -> bool:
        return await self.backend.delete(key)

    async def clear(self) -> bool:
        return await self.backend.clear()

cache = CacheManager(create_cache_backend())
