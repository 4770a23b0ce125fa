"""Retrieval of knowledge base context for a question."""

import logging
from typing import List, Optional

from chatbot_rag.core.config import settings
from chatbot_rag.core.exceptions import ChatbotRAGError, RetrievalError
from chatbot_rag.services.cache import CacheService
from chatbot_rag.services.embedding import EmbeddingService
from chatbot_rag.services.vector_db import VectorDBService

logger = logging.getLogger(__name__)


class RetrievalService:
    """Embeds a question and returns the nearest chunks of a chatbot's index."""

    def __init__(
        self,
        vector_db: VectorDBService,
        embedding_service: EmbeddingService,
        cache_service: Optional[CacheService] = None,
    ) -> None:
        """
        Initialize retrieval service.

        Args:
            vector_db: Vector database service.
            embedding_service: Embedding generation service.
            cache_service: Optional cache for question embeddings.
        """
        self.vector_db = vector_db
        self.embedding_service = embedding_service
        self.cache_service = cache_service

    async def _embed_question(self, question: str) -> List[float]:
        cache_key = None
        dimensions = self.embedding_service.dimensions
        if self.cache_service:
            cache_key = CacheService.embedding_key(
                self.embedding_service.model, dimensions, question)
            cached = await self.cache_service.get_vector(cache_key)
            if cached and len(cached) == dimensions:
                return cached

        vector = await self.embedding_service.embed(question)

        if cache_key:
            await self.cache_service.set_vector(cache_key, vector)
        return vector

    async def retrieve_matches(
        self, chatbot_id: str, question: str, k: Optional[int] = None
    ) -> List[dict]:
        """
        Retrieve the matches nearest to a question, with scores and metadata.

        Args:
            chatbot_id: Chatbot whose index is searched.
            question: User question.
            k: Maximum number of matches.

        Returns:
            Matches, most similar first; empty if the chatbot has no index.

        Raises:
            RetrievalError: If embedding or searching fails.
        """
        k = k or settings.top_k
        try:
            query_embedding = await self._embed_question(question)
            matches = await self.vector_db.search(chatbot_id, query_embedding, top_k=k)
        except ChatbotRAGError as e:
            raise RetrievalError(
                f"Retrieval failed for chatbot {chatbot_id}: {str(e)}") from e

        # sorted() is stable, so equal scores keep the index's order
        return sorted(matches, key=lambda m: m.get("score", 0), reverse=True)[:k]

    async def retrieve(
        self, chatbot_id: str, question: str, k: Optional[int] = None
    ) -> List[str]:
        """
        Retrieve the chunk texts most relevant to a question.

        Args:
            chatbot_id: Chatbot whose index is searched.
            question: User question.
            k: Maximum number of chunks.

        Returns:
            Chunk texts, most relevant first.

        Raises:
            RetrievalError: If embedding or searching fails.
        """
        matches = await self.retrieve_matches(chatbot_id, question, k)
        texts = [m["content"] for m in matches if m.get("content")]
        logger.info(f"Retrieved {len(texts)} chunks for chatbot {chatbot_id}")
        return texts
