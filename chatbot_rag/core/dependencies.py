"""Dependency injection for services."""

import logging

from chatbot_rag.core.exceptions import CacheError
from chatbot_rag.services.blob_store import BlobStoreService
from chatbot_rag.services.cache import CacheService
from chatbot_rag.services.chat_processor import ChatProcessor
from chatbot_rag.services.chunking import ChunkingService
from chatbot_rag.services.database import DatabaseService
from chatbot_rag.services.dlq import DLQService
from chatbot_rag.services.embedding import EmbeddingService
from chatbot_rag.services.extraction import TextExtractor
from chatbot_rag.services.ingestion import IngestionPipeline
from chatbot_rag.services.llm import LLMService
from chatbot_rag.services.retrieval import RetrievalService
from chatbot_rag.services.vector_db import VectorDBService

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Container for service instances of one process."""

    def __init__(self) -> None:
        """Initialize service container."""
        self.vector_db = VectorDBService()
        self.embedding_service = EmbeddingService()
        self.cache_service = CacheService()
        self.llm_service = LLMService()
        self.blob_store = BlobStoreService()
        self.dlq_service = DLQService()
        self.database = DatabaseService()

        self.retrieval_service = RetrievalService(
            vector_db=self.vector_db,
            embedding_service=self.embedding_service,
            cache_service=self.cache_service,
        )
        self.chat_processor = ChatProcessor(
            retrieval_service=self.retrieval_service,
            llm_service=self.llm_service,
        )
        self.ingestion_pipeline = IngestionPipeline(
            blob_store=self.blob_store,
            database=self.database,
            embedding_service=self.embedding_service,
            vector_db=self.vector_db,
            chunking_service=ChunkingService(),
            extractor=TextExtractor(),
        )

    async def initialize(self, with_dlq: bool = False) -> None:
        """
        Initialize all services.

        Args:
            with_dlq: Whether this process publishes to the dead letter queue.
        """
        await self.vector_db.connect()
        await self.database.connect()
        try:
            await self.cache_service.connect()
        except CacheError as e:
            # Embedding cache is optional
            logger.warning(f"Continuing without cache: {str(e)}")
            self.cache_service.client = None
        if with_dlq and self.dlq_service.enabled:
            await self.dlq_service.connect()

    async def shutdown(self) -> None:
        """Shutdown all services."""
        await self.dlq_service.disconnect()
        await self.database.disconnect()
        await self.vector_db.disconnect()
        await self.cache_service.disconnect()


services = ServiceContainer()
