"""Health check utilities."""

from typing import Dict

from chatbot_rag.core.dependencies import ServiceContainer
from chatbot_rag.services.health import (
    check_blob_store,
    check_kafka,
    check_openai,
    check_postgres,
    check_qdrant,
    check_redis,
)


async def check_all_dependencies(
    services: ServiceContainer, include_kafka: bool = False
) -> Dict:
    """
    Check all service dependencies.

    Args:
        services: Service container.
        include_kafka: Whether to check Kafka.

    Returns:
        Dictionary with overall status and individual service statuses.
    """
    statuses = {
        "qdrant": await check_qdrant(services.vector_db),
        "redis": await check_redis(services.cache_service),
        "postgres": await check_postgres(services.database),
        "storage": await check_blob_store(services.blob_store),
        "openai": await check_openai(),
    }
    if include_kafka:
        statuses["kafka"] = await check_kafka()

    overall_status = "healthy"
    for name, status in statuses.items():
        # An unconfigured OpenAI key is reported, not fatal for the probe
        if name == "openai" and status.get("status") != "unhealthy":
            continue
        if status.get("status") != "healthy":
            overall_status = "unhealthy"

    return {"status": overall_status, "services": statuses}


async def check_readiness(
    services: ServiceContainer, include_kafka: bool = False
) -> Dict:
    """
    Check service readiness.

    Args:
        services: Service container.
        include_kafka: Whether Kafka is required.

    Returns:
        Readiness status dictionary.
    """
    result = {
        "qdrant": (await check_qdrant(services.vector_db)).get("status") == "healthy",
        "postgres": (await check_postgres(services.database)).get("status") == "healthy",
    }
    if include_kafka:
        result["kafka"] = (await check_kafka()).get("status") == "healthy"

    result["ready"] = all(result.values())
    return result
