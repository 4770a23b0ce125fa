"""OpenAI embedding generation service."""

from typing import List, Optional

from openai import AsyncOpenAI

from chatbot_rag.core.config import settings
from chatbot_rag.core.exceptions import DimensionMismatchError, EmbeddingProviderError


class EmbeddingService:
    """Service for generating embeddings using OpenAI."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        dimensions: Optional[int] = None,
    ) -> None:
        """
        Initialize the embedding service.

        Args:
            client: OpenAI client, built from settings when omitted.
            model: Embedding model name.
            dimensions: Expected vector length.
        """
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model or settings.embedding_model
        self.dimensions = dimensions or settings.embedding_dimensions

    async def embed(self, text: str) -> List[float]:
        """
        Generate the embedding for a single text.

        Args:
            text: Text string to embed.

        Returns:
            Embedding vector.

        Raises:
            EmbeddingProviderError: If the call fails or the payload is malformed.
            DimensionMismatchError: If the vector length differs from the configured one.
        """
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=text,
                dimensions=self.dimensions,
            )
        except Exception as e:
            raise EmbeddingProviderError(
                f"Failed to generate embedding: {str(e)}") from e

        vector = self._parse_vector(response)
        if len(vector) != self.dimensions:
            raise DimensionMismatchError(
                f"Embedding model {self.model} returned {len(vector)} dimensions, "
                f"expected {self.dimensions}"
            )
        return vector

    def _parse_vector(self, response) -> List[float]:
        data = getattr(response, "data", None)
        if not data:
            raise EmbeddingProviderError("Embedding response contained no data")

        embedding = getattr(data[0], "embedding", None)
        if not isinstance(embedding, list) or not embedding:
            raise EmbeddingProviderError("Embedding response is missing the vector")

        try:
            return [float(value) for value in embedding]
        except (TypeError, ValueError) as e:
            raise EmbeddingProviderError(
                f"Embedding vector contains non-numeric values: {str(e)}") from e
