"""Document ingestion pipeline: download, extract, chunk, embed and index."""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from chatbot_rag.core.config import settings
from chatbot_rag.core.exceptions import (
    BlobNotFoundError,
    ChatbotRAGError,
    EmbeddingProviderError,
    IndexProviderError,
    IngestionError,
)
from chatbot_rag.models.document import (
    Chunk,
    DocumentRecord,
    DocumentStatus,
    StorageRef,
    utcnow,
)
from chatbot_rag.models.event import StorageObjectEvent
from chatbot_rag.monitoring.metrics import (
    chunks_indexed_total,
    document_failures_total,
    documents_ingested_total,
    ingestion_duration_seconds,
)
from chatbot_rag.services.blob_store import BlobStoreService
from chatbot_rag.services.chunking import ChunkingService
from chatbot_rag.services.database import DatabaseService
from chatbot_rag.services.embedding import EmbeddingService
from chatbot_rag.services.extraction import TextExtractor
from chatbot_rag.services.retry import retry_with_backoff
from chatbot_rag.services.vector_db import VectorDBService

logger = logging.getLogger(__name__)


class IngestionStage(str, Enum):
    """Stages a document passes through during ingestion."""

    RECEIVED = "received"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    INDEXING = "indexing"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class ChunkOutcome:
    """Result of embedding and indexing one chunk."""

    chunk_index: int
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class IngestionResult:
    """Terminal outcome of one document's ingestion."""

    chatbot_id: str
    document_id: str
    status: DocumentStatus
    stage: IngestionStage
    chunk_count: int = 0
    error: Optional[str] = None


class IngestionPipeline:
    """Turns an uploaded file into indexed chunks and records the outcome."""

    def __init__(
        self,
        blob_store: BlobStoreService,
        database: DatabaseService,
        embedding_service: EmbeddingService,
        vector_db: VectorDBService,
        chunking_service: Optional[ChunkingService] = None,
        extractor: Optional[TextExtractor] = None,
        dimension: Optional[int] = None,
        concurrency: Optional[int] = None,
        download_attempts: Optional[int] = None,
        download_delay: Optional[float] = None,
        chunk_attempts: Optional[int] = None,
        chunk_delay: Optional[float] = None,
    ) -> None:
        """
        Initialize the ingestion pipeline.

        Args:
            blob_store: Source of uploaded bytes.
            database: Metadata store for document records.
            embedding_service: Embedding generation service.
            vector_db: Vector index service.
            chunking_service: Document chunking service.
            extractor: Text extractor.
            dimension: Vector dimensionality of the index.
            concurrency: Chunks embedded and indexed in parallel.
            download_attempts: Attempts when the object is not yet readable.
            download_delay: Fixed delay between download attempts.
            chunk_attempts: Attempts per chunk on transient provider errors.
            chunk_delay: Fixed delay between chunk attempts.
        """
        self.blob_store = blob_store
        self.database = database
        self.embedding_service = embedding_service
        self.vector_db = vector_db
        self.chunking_service = chunking_service or ChunkingService()
        self.extractor = extractor or TextExtractor()
        self.dimension = dimension or embedding_service.dimensions
        self.concurrency = concurrency or settings.indexing_concurrency
        self.download_attempts = download_attempts or settings.download_max_attempts
        self.download_delay = (
            settings.download_retry_delay_seconds if download_delay is None else download_delay
        )
        self.chunk_attempts = chunk_attempts or settings.chunk_max_attempts
        self.chunk_delay = (
            settings.chunk_retry_delay_seconds if chunk_delay is None else chunk_delay
        )

    async def process_event(self, event: StorageObjectEvent) -> Optional[IngestionResult]:
        """
        Ingest the object referenced by a storage notification.

        Args:
            event: Storage object event.

        Returns:
            Ingestion result, or None if the event does not concern a chatbot document.
        """
        if not event.is_created:
            logger.debug(f"Ignoring {event.event_name} for {event.key}")
            return None

        ref = StorageRef.parse(event.key)
        if not ref:
            logger.info(f"Skipping non-chatbot object: {event.key}")
            return None

        return await self.ingest(ref, content_type=event.content_type)

    async def ingest(
        self, ref: StorageRef, content_type: Optional[str] = None
    ) -> Optional[IngestionResult]:
        """
        Ingest one document from scratch.

        Re-running on the same key overwrites the chunks written before.

        Args:
            ref: Parsed storage reference of the uploaded file.
            content_type: Declared content type, overrides the stored one.

        Returns:
            Terminal result, or None if the owning chatbot is unknown.
        """
        record = await self._load_record(ref, content_type)
        if record is None:
            return None

        start_time = time.time()
        stage = IngestionStage.RECEIVED
        record.status = DocumentStatus.PROCESSING
        record.error = None
        record.updated_at = utcnow()
        await self.database.put_document_record(record)
        logger.info(f"Ingesting {ref.key} for chatbot {ref.chatbot_id}")

        try:
            stage = IngestionStage.DOWNLOADING
            data = await self._download(ref.key)

            stage = IngestionStage.EXTRACTING
            text = await asyncio.to_thread(
                self.extractor.extract, data, record.content_type, record.filename
            )

            stage = IngestionStage.CHUNKING
            chunks = self.chunking_service.build_chunks(
                text,
                document_id=record.document_id,
                chatbot_id=record.chatbot_id,
                source_ref=ref.key,
                tenant_id=record.tenant_id,
            )
            logger.info(f"Produced {len(chunks)} chunks for {ref.key}")

            stage = IngestionStage.INDEXING
            await self._index_chunks(record, chunks)
        except ChatbotRAGError as e:
            return await self._fail(record, stage, e)
        except Exception as e:
            await self._fail(record, stage, e)
            raise

        record.status = DocumentStatus.COMPLETE
        record.chunk_count = len(chunks)
        record.updated_at = utcnow()
        await self.database.put_document_record(record)

        processing_time = time.time() - start_time
        ingestion_duration_seconds.observe(processing_time)
        documents_ingested_total.inc()
        logger.info(
            f"Indexed document {record.document_id} ({len(chunks)} chunks) "
            f"in {processing_time:.2f}s"
        )
        return IngestionResult(
            chatbot_id=record.chatbot_id,
            document_id=record.document_id,
            status=DocumentStatus.COMPLETE,
            stage=IngestionStage.COMPLETE,
            chunk_count=len(chunks),
        )

    async def remove_document(self, record: DocumentRecord) -> None:
        """
        Delete a document with its indexed chunks and stored bytes.

        Args:
            record: Document to remove.
        """
        await self.vector_db.delete_document_chunks(record.chatbot_id, record.document_id)
        try:
            await self.blob_store.delete(record.storage_key)
        except BlobNotFoundError:
            logger.info(f"Stored object {record.storage_key} already gone")
        await self.database.delete_document(record)
        logger.info(f"Removed document {record.document_id} of chatbot {record.chatbot_id}")

    async def _load_record(
        self, ref: StorageRef, content_type: Optional[str]
    ) -> Optional[DocumentRecord]:
        existing = await self.database.get_document(ref.chatbot_id, ref.document_id)
        if existing:
            existing.storage_key = ref.key
            existing.content_type = content_type or existing.content_type
            return existing

        tenant_id = ref.tenant_id
        if not tenant_id:
            chatbot = await self.database.get_chatbot(ref.chatbot_id)
            if chatbot is None:
                logger.warning(f"No chatbot {ref.chatbot_id} for {ref.key}, skipping")
                return None
            tenant_id = chatbot.tenant_id

        return DocumentRecord(
            tenant_id=tenant_id,
            chatbot_id=ref.chatbot_id,
            document_id=ref.document_id,
            storage_key=ref.key,
            content_type=content_type,
            filename=ref.filename,
        )

    async def _download(self, key: str) -> bytes:
        return await retry_with_backoff(
            lambda: self.blob_store.get_bytes(key),
            max_attempts=self.download_attempts,
            delay=self.download_delay,
            backoff_multiplier=1.0,
            exceptions=(BlobNotFoundError,),
            description=f"download {key}",
        )

    async def _index_chunks(self, record: DocumentRecord, chunks: List[Chunk]) -> None:
        if chunks:
            await self.vector_db.ensure_index(record.chatbot_id, self.dimension)

            semaphore = asyncio.Semaphore(self.concurrency)

            async def bounded(chunk: Chunk) -> ChunkOutcome:
                async with semaphore:
                    return await self._index_chunk(chunk)

            outcomes = await asyncio.gather(*(bounded(chunk) for chunk in chunks))
            failures = [outcome for outcome in outcomes if not outcome.succeeded]
            if failures:
                await self._rollback(record)
                first = failures[0]
                raise IngestionError(
                    f"{len(failures)} of {len(chunks)} chunks failed; "
                    f"chunk {first.chunk_index}: {first.error}"
                ) from first.error

        # A previous, longer version of the document may have left higher-numbered chunks
        await self.vector_db.delete_document_chunks(
            record.chatbot_id, record.document_id, from_index=len(chunks)
        )

    async def _index_chunk(self, chunk: Chunk) -> ChunkOutcome:
        async def write() -> None:
            vector = await self.embedding_service.embed(chunk.content)
            await self.vector_db.upsert_chunk(chunk.chatbot_id, chunk, vector)

        try:
            await retry_with_backoff(
                write,
                max_attempts=self.chunk_attempts,
                delay=self.chunk_delay,
                backoff_multiplier=1.0,
                exceptions=(EmbeddingProviderError, IndexProviderError),
                description=f"index chunk {chunk.upsert_key}",
            )
        except ChatbotRAGError as e:
            return ChunkOutcome(chunk_index=chunk.chunk_index, error=e)

        chunks_indexed_total.inc()
        return ChunkOutcome(chunk_index=chunk.chunk_index)

    async def _rollback(self, record: DocumentRecord) -> None:
        try:
            await self.vector_db.delete_document_chunks(record.chatbot_id, record.document_id)
        except ChatbotRAGError as e:
            logger.error(
                f"Failed to roll back chunks of document {record.document_id}: {str(e)}")

    async def _fail(
        self, record: DocumentRecord, stage: IngestionStage, error: Exception
    ) -> IngestionResult:
        reason = f"{stage.value}: {str(error)}"
        logger.error(f"Ingestion of {record.storage_key} failed during {reason}")

        record.status = DocumentStatus.FAILED
        record.chunk_count = 0
        record.error = reason
        record.updated_at = utcnow()
        await self.database.put_document_record(record)
        document_failures_total.inc()

        return IngestionResult(
            chatbot_id=record.chatbot_id,
            document_id=record.document_id,
            status=DocumentStatus.FAILED,
            stage=stage,
            error=reason,
        )
