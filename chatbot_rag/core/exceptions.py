"""Custom exceptions for the application."""


class ChatbotRAGError(Exception):
    """Base class for all knowledge pipeline errors."""

    pass


class UnsupportedFormatError(ChatbotRAGError):
    """Raised when a document's content type cannot be extracted."""

    pass


class ExtractionError(ChatbotRAGError):
    """Raised when parsing a supported document fails."""

    pass


class EmbeddingProviderError(ChatbotRAGError):
    """Raised when the embedding provider fails or returns a malformed payload."""

    pass


class DimensionMismatchError(ChatbotRAGError):
    """Raised when vector dimensionality disagrees with the configured model."""

    pass


class IndexProviderError(ChatbotRAGError):
    """Raised when vector index operations fail."""

    pass


class RetrievalError(ChatbotRAGError):
    """Raised when context retrieval for a question fails."""

    pass


class GenerationError(ChatbotRAGError):
    """Raised when answer generation fails."""

    pass


class BlobStoreError(ChatbotRAGError):
    """Raised when reading or deleting a stored object fails."""

    pass


class BlobNotFoundError(BlobStoreError):
    """Raised when a storage key does not (yet) exist."""

    pass


class CacheError(ChatbotRAGError):
    """Raised when cache operations fail."""

    pass


class DLQError(ChatbotRAGError):
    """Raised when Dead Letter Queue operations fail."""

    pass


class DatabaseError(ChatbotRAGError):
    """Raised when database operations fail."""

    pass


class IngestionError(ChatbotRAGError):
    """Raised when some chunks of a document could not be indexed."""

    pass
