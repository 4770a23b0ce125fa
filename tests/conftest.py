"""Shared pytest fixtures for chatbot-rag tests."""
import os

# Settings are read at import time; set required values BEFORE importing the package.
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

import re
from typing import Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from qdrant_client import AsyncQdrantClient

from chatbot_rag.core.exceptions import (
    BlobNotFoundError,
    BlobStoreError,
    EmbeddingProviderError,
)
from chatbot_rag.models.chat import ChatbotConfig
from chatbot_rag.models.document import DocumentRecord, DocumentStatus
from chatbot_rag.services.chunking import ChunkingService
from chatbot_rag.services.ingestion import IngestionPipeline
from chatbot_rag.services.vector_db import VectorDBService

DIMENSION = 8

KEYWORDS = ["shipping", "return", "refund", "support", "price", "hours", "widget", "warranty"]


def keyword_vector(text: str) -> List[float]:
    """Deterministic embedding: one axis per keyword, plus a small constant."""
    lowered = text.lower()
    return [float(len(re.findall(word, lowered))) + 0.01 for word in KEYWORDS]


# =============================================================================
# Fakes for external collaborators
# =============================================================================

class FakeEmbeddingService:
    """Keyword-count embeddings with optional scripted failures."""

    model = "fake-embedding"
    dimensions = DIMENSION

    def __init__(self, fail_containing: Optional[str] = None, failures_per_text: int = 10**6):
        self.fail_containing = fail_containing
        self.failures_per_text = failures_per_text
        self.calls: List[str] = []
        self._failures: Dict[str, int] = {}

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail_containing and self.fail_containing in text:
            seen = self._failures.get(text, 0)
            if seen < self.failures_per_text:
                self._failures[text] = seen + 1
                raise EmbeddingProviderError("provider returned 503")
        return keyword_vector(text)


class FakeBlobStore:
    """In-memory blob store that can report "not found" a few times first."""

    def __init__(self, objects: Optional[Dict[str, bytes]] = None, not_found_times: int = 0,
                 error: Optional[Exception] = None):
        self.objects = dict(objects or {})
        self.not_found_times = not_found_times
        self.error = error
        self.reads: List[str] = []
        self.deleted: List[str] = []

    async def get_bytes(self, key: str) -> bytes:
        self.reads.append(key)
        if self.error:
            raise self.error
        if self.not_found_times > 0:
            self.not_found_times -= 1
            raise BlobNotFoundError(f"Object not found: {key}")
        if key not in self.objects:
            raise BlobNotFoundError(f"Object not found: {key}")
        return self.objects[key]

    async def delete(self, key: str) -> None:
        self.deleted.append(key)
        if key not in self.objects:
            raise BlobNotFoundError(f"Object not found: {key}")
        del self.objects[key]


class FakeDatabase:
    """In-memory metadata store recording every status written."""

    def __init__(self, chatbots: Optional[List[ChatbotConfig]] = None):
        self.documents: Dict[Tuple[str, str], DocumentRecord] = {}
        self.chatbots = {c.chatbot_id: c for c in (chatbots or [])}
        self.status_history: List[DocumentStatus] = []

    async def put_document_record(self, record: DocumentRecord) -> None:
        self.status_history.append(record.status)
        self.documents[(record.chatbot_id, record.document_id)] = record.model_copy()

    async def get_document(self, chatbot_id: str, document_id: str) -> Optional[DocumentRecord]:
        record = self.documents.get((chatbot_id, document_id))
        return record.model_copy() if record else None

    async def list_documents(self, chatbot_id: str) -> List[DocumentRecord]:
        return [r for (c, _), r in self.documents.items() if c == chatbot_id]

    async def delete_document(self, record: DocumentRecord) -> bool:
        return self.documents.pop((record.chatbot_id, record.document_id), None) is not None

    async def get_chatbot(self, chatbot_id: str) -> Optional[ChatbotConfig]:
        return self.chatbots.get(chatbot_id)


# =============================================================================
# Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def qdrant_client():
    """In-memory Qdrant, discarded after each test."""
    client = AsyncQdrantClient(location=":memory:")
    yield client
    await client.close()


@pytest.fixture
def vector_db(qdrant_client):
    return VectorDBService(client=qdrant_client, index_prefix="chatbot-")


@pytest.fixture
def embedding_service():
    return FakeEmbeddingService()


@pytest.fixture
def chatbot():
    return ChatbotConfig(
        chatbot_id="bot-1",
        tenant_id="tenant-1",
        name="Support",
        system_prompt="You are a helpful support assistant.",
        model="gpt-4o-mini",
        temperature=0.2,
        max_tokens=256,
    )


@pytest.fixture
def database(chatbot):
    return FakeDatabase(chatbots=[chatbot])


@pytest.fixture
def make_pipeline(vector_db, embedding_service, database):
    """Build a pipeline over fakes with zero retry delays."""

    def _make(blob_store, embedder=None, max_chunk_chars=500, **kwargs):
        return IngestionPipeline(
            blob_store=blob_store,
            database=database,
            embedding_service=embedder or embedding_service,
            vector_db=vector_db,
            chunking_service=ChunkingService(max_chunk_chars=max_chunk_chars, overlap_chars=0),
            dimension=DIMENSION,
            download_delay=0,
            chunk_delay=0,
            **kwargs,
        )

    return _make
