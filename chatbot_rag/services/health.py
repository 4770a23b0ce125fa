"""Health checks for external dependencies."""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict

from chatbot_rag.core.config import settings
from chatbot_rag.services.blob_store import BlobStoreService
from chatbot_rag.services.cache import CacheService
from chatbot_rag.services.database import DatabaseService
from chatbot_rag.services.vector_db import VectorDBService


async def _timed(probe: Callable[[], Awaitable[Any]]) -> Dict[str, Any]:
    """Run a probe and report its status and latency."""
    try:
        start_time = time.time()
        await probe()
        latency_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(latency_ms, 2)}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e), "latency_ms": 0}


async def check_qdrant(vector_db: VectorDBService) -> Dict[str, Any]:
    """
    Check Qdrant connectivity.

    Args:
        vector_db: VectorDBService instance.

    Returns:
        Health status dictionary.
    """
    if not vector_db.client:
        return {"status": "unhealthy", "error": "Not connected", "latency_ms": 0}
    return await _timed(vector_db.client.get_collections)


async def check_redis(cache_service: CacheService) -> Dict[str, Any]:
    """
    Check Redis connectivity.

    Args:
        cache_service: CacheService instance.

    Returns:
        Health status dictionary.
    """
    if not cache_service.client:
        return {"status": "unhealthy", "error": "Not connected", "latency_ms": 0}
    return await _timed(cache_service.client.ping)


async def check_postgres(database: DatabaseService) -> Dict[str, Any]:
    """
    Check PostgreSQL connectivity.

    Args:
        database: DatabaseService instance.

    Returns:
        Health status dictionary.
    """
    if not database.pool:
        return {"status": "unhealthy", "error": "Not connected", "latency_ms": 0}

    async def probe() -> None:
        async with database.pool.acquire() as conn:
            await conn.execute("SELECT 1")

    return await _timed(probe)


async def check_blob_store(blob_store: BlobStoreService) -> Dict[str, Any]:
    """
    Check that the document bucket is reachable.

    Args:
        blob_store: BlobStoreService instance.

    Returns:
        Health status dictionary.
    """
    return await _timed(blob_store.ping)


async def check_openai() -> Dict[str, Any]:
    """
    Check OpenAI API connectivity.

    Returns:
        Health status dictionary.
    """
    if not settings.openai_api_key:
        return {"status": "not_configured", "error": "API key not set"}

    from openai import AsyncOpenAI
    client = AsyncOpenAI(api_key=settings.openai_api_key)

    result = await _timed(client.models.list)
    error_msg = result.get("error", "").lower()
    if "api key" in error_msg or "authentication" in error_msg:
        return {"status": "unhealthy", "error": "Invalid API key"}
    return result


async def check_kafka() -> Dict[str, Any]:
    """
    Check Kafka connectivity.

    Returns:
        Health status dictionary.
    """
    from aiokafka import AIOKafkaConsumer

    consumer = AIOKafkaConsumer(
        bootstrap_servers=settings.kafka_bootstrap_servers,
        enable_auto_commit=False,
    )
    result = await _timed(consumer.start)
    try:
        await asyncio.wait_for(consumer.stop(), timeout=1.0)
    except (asyncio.CancelledError, asyncio.TimeoutError):
        pass
    return result
