"""Ingestion Service: consumes upload events and indexes documents."""

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from chatbot_rag.api.health import check_all_dependencies, check_readiness
from chatbot_rag.core.config import settings
from chatbot_rag.core.dependencies import services
from chatbot_rag.core.exceptions import ChatbotRAGError
from chatbot_rag.models.document import DocumentRecord, StorageRef
from chatbot_rag.models.document_api import (
    DocumentCreate,
    DocumentListResponse,
    DocumentResponse,
)
from chatbot_rag.models.event import StorageObjectEvent
from chatbot_rag.services.ingestion import IngestionResult

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    await services.initialize(with_dlq=True)
    consumer_task = asyncio.create_task(consume_upload_events())
    logger.info("Ingestion Service started")
    yield
    consumer_task.cancel()
    try:
        await consumer_task
    except asyncio.CancelledError:
        pass
    await services.shutdown()
    logger.info("Ingestion Service stopped")


app = FastAPI(title="Ingestion Service", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def handle_payload(payload: dict) -> List[IngestionResult]:
    """
    Ingest every object referenced by an event payload.

    Args:
        payload: Storage notification payload.

    Returns:
        Results of the documents that were ingested.
    """
    results = []
    for event in StorageObjectEvent.from_payload(payload):
        result = await services.ingestion_pipeline.process_event(event)
        if result is not None:
            results.append(result)
    return results


async def consume_upload_events() -> None:
    """Consume upload events from Kafka."""
    from aiokafka import AIOKafkaConsumer

    consumer = AIOKafkaConsumer(
        settings.kafka_topic_uploads,
        bootstrap_servers=settings.kafka_bootstrap_servers,
        value_deserializer=lambda m: json.loads(m.decode("utf-8")),
        auto_offset_reset="earliest",
        enable_auto_commit=True,
        group_id=settings.kafka_consumer_group,
    )

    await consumer.start()
    logger.info(f"Started consuming from topic: {settings.kafka_topic_uploads}")

    try:
        async for message in consumer:
            payload = message.value
            if not isinstance(payload, dict):
                logger.warning(
                    f"Message at offset {message.offset} is not an object, skipping")
                continue

            try:
                await handle_payload(payload)
            except Exception as e:
                logger.error(
                    f"Error processing message at offset {message.offset}: {str(e)}")
                try:
                    await services.dlq_service.send_failed_event(
                        event_data=payload,
                        error=str(e),
                        offset=message.offset,
                        partition=message.partition,
                    )
                except ChatbotRAGError as dlq_error:
                    logger.error(f"Failed to send event to DLQ: {str(dlq_error)}")
    finally:
        await consumer.stop()


@app.post("/process-event")
async def process_event_manual(payload: dict) -> dict:
    """
    Manually process an upload event.

    Args:
        payload: Storage notification payload.

    Returns:
        Ingestion results.
    """
    try:
        results = await handle_payload(payload)
    except ChatbotRAGError as e:
        logger.error(f"Manual event processing failed: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "results": [
            {
                "chatbot_id": r.chatbot_id,
                "document_id": r.document_id,
                "status": r.status.value,
                "chunk_count": r.chunk_count,
                "error": r.error,
            }
            for r in results
        ]
    }


async def _get_record(chatbot_id: str, document_id: str) -> DocumentRecord:
    try:
        record: Optional[DocumentRecord] = await services.database.get_document(
            chatbot_id, document_id)
    except ChatbotRAGError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not record:
        raise HTTPException(status_code=404, detail="Document not found")
    return record


@app.post(
    "/chatbots/{chatbot_id}/documents",
    response_model=DocumentResponse,
    status_code=201,
)
async def create_document(chatbot_id: str, document: DocumentCreate) -> DocumentResponse:
    """
    Register an upload and return the storage key to write it to.

    Args:
        chatbot_id: Owning chatbot.
        document: Upload details.

    Returns:
        Pending document record.
    """
    document_id = str(uuid.uuid4())
    record = DocumentRecord(
        tenant_id=document.tenant_id,
        chatbot_id=chatbot_id,
        document_id=document_id,
        storage_key=StorageRef.build_key(
            document.tenant_id, chatbot_id, document_id, document.filename),
        content_type=document.content_type,
        filename=document.filename,
    )
    try:
        await services.database.put_document_record(record)
    except ChatbotRAGError as e:
        logger.error(f"Failed to register document: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
    return DocumentResponse.from_record(record)


@app.get("/chatbots/{chatbot_id}/documents", response_model=DocumentListResponse)
async def list_documents(chatbot_id: str) -> DocumentListResponse:
    """
    List the documents of a chatbot.

    Args:
        chatbot_id: Owning chatbot.

    Returns:
        List of documents.
    """
    try:
        records = await services.database.list_documents(chatbot_id)
    except ChatbotRAGError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return DocumentListResponse(
        documents=[DocumentResponse.from_record(r) for r in records],
        total=len(records),
    )


@app.get(
    "/chatbots/{chatbot_id}/documents/{document_id}",
    response_model=DocumentResponse,
)
async def get_document(chatbot_id: str, document_id: str) -> DocumentResponse:
    """
    Get a document with its ingestion status.

    Args:
        chatbot_id: Owning chatbot.
        document_id: Document identifier.

    Returns:
        Document details.
    """
    return DocumentResponse.from_record(await _get_record(chatbot_id, document_id))


@app.delete("/chatbots/{chatbot_id}/documents/{document_id}", status_code=204)
async def delete_document(chatbot_id: str, document_id: str) -> None:
    """
    Delete a document, its indexed chunks and its stored bytes.

    Args:
        chatbot_id: Owning chatbot.
        document_id: Document identifier.
    """
    record = await _get_record(chatbot_id, document_id)
    try:
        await services.ingestion_pipeline.remove_document(record)
    except ChatbotRAGError as e:
        logger.error(f"Failed to delete document {document_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/health")
async def health() -> dict:
    """
    Health check endpoint with dependency verification.

    Returns:
        Health status with service dependencies.
    """
    result = await check_all_dependencies(services, include_kafka=True)
    return {"service": "ingestion-service", **result}


@app.get("/ready")
async def readiness() -> dict:
    """
    Readiness check endpoint.

    Returns:
        Readiness status.
    """
    result = await check_readiness(services, include_kafka=True)
    return {"service": "ingestion-service", **result}


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
