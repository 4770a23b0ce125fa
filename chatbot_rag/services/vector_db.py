"""Qdrant vector index service, one collection per chatbot."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    NearestQuery,
    PayloadSchemaType,
    PointStruct,
    Range,
    VectorParams,
)

from chatbot_rag.core.config import settings
from chatbot_rag.core.exceptions import DimensionMismatchError, IndexProviderError
from chatbot_rag.models.document import Chunk

logger = logging.getLogger(__name__)

PAYLOAD_INDEXES = {
    "chatbot_id": PayloadSchemaType.KEYWORD,
    "document_id": PayloadSchemaType.KEYWORD,
    "chunk_index": PayloadSchemaType.INTEGER,
    "source_ref": PayloadSchemaType.KEYWORD,
    "indexed_at": PayloadSchemaType.DATETIME,
}


def _match(key: str, value) -> FieldCondition:
    return FieldCondition(key=key, match=MatchValue(value=value))


def _is_already_exists(error: Exception) -> bool:
    if isinstance(error, UnexpectedResponse) and error.status_code == 409:
        return True
    return "already exists" in str(error).lower()


class VectorDBService:
    """Service for managing per-chatbot vector indexes in Qdrant."""

    def __init__(
        self, client: Optional[AsyncQdrantClient] = None, index_prefix: Optional[str] = None
    ) -> None:
        """
        Initialize the vector database service.

        Args:
            client: Connected Qdrant client; created by ``connect`` when omitted.
            index_prefix: Prefix prepended to the chatbot id to name its index.
        """
        self.client = client
        self.index_prefix = (
            settings.qdrant_index_prefix if index_prefix is None else index_prefix
        )

    async def connect(self) -> None:
        """Connect to Qdrant."""
        try:
            self.client = AsyncQdrantClient(
                url=settings.qdrant_url,
                timeout=30.0,
            )
        except Exception as e:
            raise IndexProviderError(
                f"Failed to connect to Qdrant: {str(e)}") from e

    async def disconnect(self) -> None:
        """Disconnect from Qdrant."""
        if self.client:
            await self.client.close()

    def _require_client(self) -> AsyncQdrantClient:
        if not self.client:
            raise IndexProviderError("Client not connected")
        return self.client

    def index_name(self, namespace: str) -> str:
        """
        Map a chatbot namespace to its collection name.

        Args:
            namespace: Chatbot identifier.

        Returns:
            Collection name.
        """
        return f"{self.index_prefix}{namespace}"

    async def index_exists(self, namespace: str) -> bool:
        """
        Check whether the index for a namespace exists.

        Args:
            namespace: Chatbot identifier.

        Returns:
            True if the collection exists.
        """
        client = self._require_client()
        try:
            return await client.collection_exists(self.index_name(namespace))
        except Exception as e:
            raise IndexProviderError(
                f"Failed to check index {self.index_name(namespace)}: {str(e)}") from e

    async def ensure_index(self, namespace: str, dimension: int) -> None:
        """
        Create the index for a namespace if it does not exist.

        Safe to call concurrently: a create that loses the race to another
        caller is treated as success.

        Args:
            namespace: Chatbot identifier.
            dimension: Vector dimensionality of the embedding model.

        Raises:
            DimensionMismatchError: If the existing index has another dimension.
            IndexProviderError: For any other provider failure.
        """
        client = self._require_client()
        name = self.index_name(namespace)

        if not await self.index_exists(namespace):
            try:
                await client.create_collection(
                    collection_name=name,
                    vectors_config=VectorParams(
                        size=dimension,
                        distance=Distance.COSINE,
                    ),
                )
                logger.info(f"Created index {name} with dimension {dimension}")
            except Exception as e:
                if not _is_already_exists(e):
                    raise IndexProviderError(
                        f"Failed to create index {name}: {str(e)}") from e
                logger.info(f"Index {name} was created concurrently")

            try:
                for field_name, schema in PAYLOAD_INDEXES.items():
                    await client.create_payload_index(
                        collection_name=name,
                        field_name=field_name,
                        field_schema=schema,
                    )
            except Exception as e:
                raise IndexProviderError(
                    f"Failed to create payload indexes for {name}: {str(e)}") from e

        existing = await self.get_dimension(namespace)
        if existing is not None and existing != dimension:
            raise DimensionMismatchError(
                f"Index {name} has dimension {existing}, embedding model produces {dimension}"
            )

    async def get_dimension(self, namespace: str) -> Optional[int]:
        """
        Read the vector dimension an index was created with.

        Args:
            namespace: Chatbot identifier.

        Returns:
            Vector size, or None if it cannot be determined.
        """
        client = self._require_client()
        try:
            info = await client.get_collection(self.index_name(namespace))
        except Exception as e:
            raise IndexProviderError(
                f"Failed to read index {self.index_name(namespace)}: {str(e)}") from e

        vectors = info.config.params.vectors
        return getattr(vectors, "size", None)

    async def upsert_chunk(self, namespace: str, chunk: Chunk, vector: List[float]) -> None:
        """
        Write one chunk, keyed by its document id and sequence index.

        Args:
            namespace: Chatbot identifier.
            chunk: Chunk to write.
            vector: Embedding of the chunk text.
        """
        client = self._require_client()
        point = PointStruct(
            id=chunk.point_id,
            vector=vector,
            payload={
                "chatbot_id": chunk.chatbot_id,
                "tenant_id": chunk.tenant_id,
                "document_id": chunk.document_id,
                "chunk_index": chunk.chunk_index,
                "chunk_key": chunk.upsert_key,
                "source_ref": chunk.source_ref,
                "content": chunk.content,
                "indexed_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        try:
            await client.upsert(
                collection_name=self.index_name(namespace), points=[point], wait=True)
        except Exception as e:
            raise IndexProviderError(
                f"Failed to index chunk {chunk.upsert_key}: {str(e)}") from e

    async def delete_document_chunks(
        self, namespace: str, document_id: str, from_index: int = 0
    ) -> None:
        """
        Delete a document's chunks from an index.

        Args:
            namespace: Chatbot identifier.
            document_id: ID of the document.
            from_index: Only delete chunks with ``chunk_index >= from_index``.
        """
        client = self._require_client()
        if not await self.index_exists(namespace):
            return

        must = [_match("document_id", document_id)]
        if from_index > 0:
            must.append(FieldCondition(key="chunk_index", range=Range(gte=from_index)))

        try:
            await client.delete(
                collection_name=self.index_name(namespace),
                points_selector=FilterSelector(filter=Filter(must=must)),
                wait=True,
            )
        except Exception as e:
            raise IndexProviderError(
                f"Failed to delete chunks of document {document_id}: {str(e)}") from e

    async def count_document_chunks(self, namespace: str, document_id: str) -> int:
        """
        Count the chunks stored for a document.

        Args:
            namespace: Chatbot identifier.
            document_id: ID of the document.

        Returns:
            Number of indexed chunks, 0 if the index does not exist.
        """
        client = self._require_client()
        if not await self.index_exists(namespace):
            return 0

        try:
            result = await client.count(
                collection_name=self.index_name(namespace),
                count_filter=Filter(must=[_match("document_id", document_id)]),
                exact=True,
            )
        except Exception as e:
            raise IndexProviderError(
                f"Failed to count chunks of document {document_id}: {str(e)}") from e
        return result.count

    async def get_chunk(
        self, namespace: str, source_ref: str, chunk_index: int
    ) -> Optional[dict]:
        """
        Look up a stored chunk by its source reference and sequence index.

        Args:
            namespace: Chatbot identifier.
            source_ref: Storage key the chunk was extracted from.
            chunk_index: Sequence index of the chunk.

        Returns:
            Chunk payload, or None if no such chunk exists.
        """
        client = self._require_client()
        if not await self.index_exists(namespace):
            return None

        try:
            points, _ = await client.scroll(
                collection_name=self.index_name(namespace),
                scroll_filter=Filter(
                    must=[
                        _match("source_ref", source_ref),
                        _match("chunk_index", chunk_index),
                    ]
                ),
                limit=1,
                with_payload=True,
                with_vectors=False,
            )
        except Exception as e:
            raise IndexProviderError(
                f"Failed to look up chunk {source_ref}#{chunk_index}: {str(e)}") from e

        if not points:
            return None
        return dict(points[0].payload)

    async def search(
        self, namespace: str, query_embedding: List[float], top_k: int = 5
    ) -> List[dict]:
        """
        Search a chatbot's index for the chunks nearest to a query vector.

        Args:
            namespace: Chatbot identifier.
            query_embedding: Query embedding vector.
            top_k: Number of results to return.

        Returns:
            Matches ordered by descending similarity; empty if the index does not exist.
        """
        client = self._require_client()
        if not await self.index_exists(namespace):
            return []

        try:
            results = await client.query_points(
                collection_name=self.index_name(namespace),
                query=NearestQuery(nearest=query_embedding),
                limit=top_k,
                query_filter=Filter(must=[_match("chatbot_id", namespace)]),
                with_payload=True,
            )
        except UnexpectedResponse as e:
            if e.status_code == 404:
                return []
            raise IndexProviderError(f"Search failed: {str(e)}") from e
        except Exception as e:
            raise IndexProviderError(f"Search failed: {str(e)}") from e

        matches = []
        for point in results.points:
            payload = point.payload or {}
            matches.append(
                {
                    "id": str(point.id),
                    "content": payload.get("content", ""),
                    "document_id": payload.get("document_id"),
                    "chunk_index": payload.get("chunk_index"),
                    "source_ref": payload.get("source_ref"),
                    "score": point.score,
                }
            )

        return matches
