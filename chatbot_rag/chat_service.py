"""Chat Service: grounded answers for the chat widget."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from chatbot_rag.api.health import check_all_dependencies, check_readiness
from chatbot_rag.core.config import settings
from chatbot_rag.core.dependencies import services
from chatbot_rag.core.exceptions import DatabaseError
from chatbot_rag.models.chat import ChatRequest, ChatResponse
from chatbot_rag.monitoring.metrics import chat_latency_seconds, chat_requests_total

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    await services.initialize()
    logger.info("Chat Service started")
    yield
    await services.shutdown()
    logger.info("Chat Service stopped")


app = FastAPI(title="Chat Service", lifespan=lifespan)

# The widget is embedded on customer sites; access control lives in the gateway
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=["*"],
)


@app.post("/chatbots/{chatbot_id}/chat", response_model=ChatResponse)
async def chat(chatbot_id: str, request: ChatRequest) -> ChatResponse:
    """
    Answer a chat message with the chatbot's knowledge base.

    Args:
        chatbot_id: Chatbot identifier.
        request: Chat request.

    Returns:
        Chat response; provider failures yield the fallback message.
    """
    start_time = time.time()
    chat_requests_total.inc()

    try:
        chatbot = await services.database.get_chatbot(chatbot_id)
    except DatabaseError as e:
        logger.error(f"Failed to load chatbot {chatbot_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")

    if not chatbot or not chatbot.is_active:
        raise HTTPException(status_code=404, detail="Chatbot not found or inactive")

    response = await services.chat_processor.process(
        chatbot, request.message, session_id=request.session_id
    )

    latency = time.time() - start_time
    chat_latency_seconds.observe(latency)
    logger.info(f"Chat turn for chatbot {chatbot_id} answered in {latency * 1000:.2f}ms")
    return response


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health() -> dict:
    """
    Health check endpoint with dependency verification.

    Returns:
        Health status with service dependencies.
    """
    result = await check_all_dependencies(services)
    return {"service": "chat-service", **result}


@app.get("/ready")
async def readiness() -> dict:
    """
    Readiness check endpoint.

    Returns:
        Readiness status.
    """
    result = await check_readiness(services)
    return {"service": "chat-service", **result}
