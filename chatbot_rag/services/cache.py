"""Redis cache for question embeddings."""

import hashlib
import json
import logging
from typing import List, Optional

import redis.asyncio as redis

from chatbot_rag.core.config import settings
from chatbot_rag.core.exceptions import CacheError

logger = logging.getLogger(__name__)


class CacheService:
    """Best-effort cache; lookups never fail a request."""

    def __init__(self, client: Optional[redis.Redis] = None, ttl: Optional[int] = None) -> None:
        """
        Initialize the cache service.

        Args:
            client: Redis client; created by ``connect`` when omitted.
            ttl: Default time to live in seconds.
        """
        self.client = client
        self.ttl = ttl or settings.cache_ttl

    async def connect(self) -> None:
        """Connect to Redis."""
        try:
            self.client = redis.from_url(
                settings.redis_url,
                decode_responses=True,
                max_connections=settings.redis_pool_size,
                socket_connect_timeout=5.0,
            )
            await self.client.ping()
        except Exception as e:
            raise CacheError(f"Failed to connect to Redis: {str(e)}") from e

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self.client:
            await self.client.aclose()

    @staticmethod
    def embedding_key(model: str, dimensions: int, text: str) -> str:
        """
        Build the cache key for an embedding.

        Args:
            model: Embedding model name.
            dimensions: Vector length the model was asked for.
            text: Embedded text.

        Returns:
            Cache key string.
        """
        digest = hashlib.md5(text.encode()).hexdigest()
        return f"embedding:v1:{model}:{dimensions}:{digest}"

    async def get_vector(self, key: str) -> Optional[List[float]]:
        """
        Get a cached vector.

        Args:
            key: Cache key.

        Returns:
            Cached vector or None on a miss or any cache failure.
        """
        if not self.client:
            return None
        try:
            value = await self.client.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {str(e)}")
            return None
        if not value:
            return None
        try:
            vector = json.loads(value)
        except json.JSONDecodeError:
            return None
        return vector if isinstance(vector, list) else None

    async def set_vector(self, key: str, vector: List[float], ttl: Optional[int] = None) -> None:
        """
        Cache a vector.

        Args:
            key: Cache key.
            vector: Vector to store.
            ttl: Time to live in seconds.
        """
        if not self.client:
            return
        try:
            await self.client.setex(key, ttl or self.ttl, json.dumps(vector))
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {str(e)}")
