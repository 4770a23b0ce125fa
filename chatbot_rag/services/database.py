"""Metadata store for document records and chatbot settings, backed by PostgreSQL."""

import asyncpg
from typing import List, Optional

from chatbot_rag.core.config import settings
from chatbot_rag.core.exceptions import DatabaseError
from chatbot_rag.models.chat import ChatbotConfig
from chatbot_rag.models.document import DocumentRecord, DocumentStatus

SCHEMA = """
CREATE TABLE IF NOT EXISTS chatbots (
    chatbot_id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    name TEXT NOT NULL DEFAULT '',
    system_prompt TEXT NOT NULL DEFAULT '',
    model TEXT NOT NULL,
    temperature DOUBLE PRECISION NOT NULL DEFAULT 0.7,
    max_tokens INTEGER NOT NULL DEFAULT 1024,
    status TEXT NOT NULL DEFAULT 'active'
);

CREATE TABLE IF NOT EXISTS documents (
    tenant_id TEXT NOT NULL,
    chatbot_id TEXT NOT NULL,
    document_id TEXT NOT NULL,
    storage_key TEXT NOT NULL,
    content_type TEXT,
    filename TEXT NOT NULL,
    status TEXT NOT NULL,
    chunk_count INTEGER NOT NULL DEFAULT 0,
    error TEXT,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL,
    PRIMARY KEY (tenant_id, chatbot_id, document_id)
);

CREATE INDEX IF NOT EXISTS documents_chatbot_idx ON documents (chatbot_id, document_id);
"""

DOCUMENT_COLUMNS = (
    "tenant_id, chatbot_id, document_id, storage_key, content_type, filename, "
    "status, chunk_count, error, created_at, updated_at"
)


def _to_record(row) -> DocumentRecord:
    data = dict(row)
    data["status"] = DocumentStatus(data["status"])
    return DocumentRecord(**data)


class DatabaseService:
    """Service for PostgreSQL database operations."""

    def __init__(self) -> None:
        """Initialize database service."""
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        """Create connection pool and make sure the schema exists."""
        try:
            self.pool = await asyncpg.create_pool(
                settings.postgres_url,
                min_size=settings.postgres_pool_min_size,
                max_size=settings.postgres_pool_max_size,
            )
            async with self.pool.acquire() as conn:
                await conn.execute(SCHEMA)
        except Exception as e:
            raise DatabaseError(
                f"Failed to connect to database: {str(e)}") from e

    async def disconnect(self) -> None:
        """Close connection pool."""
        if self.pool:
            await self.pool.close()

    def _require_pool(self) -> asyncpg.Pool:
        if not self.pool:
            raise DatabaseError("Database not connected")
        return self.pool

    async def put_document_record(self, record: DocumentRecord) -> None:
        """
        Insert or update a document record.

        The creation timestamp of an existing record is preserved.

        Args:
            record: Record keyed by tenant, chatbot and document id.
        """
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO documents ({DOCUMENT_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                    ON CONFLICT (tenant_id, chatbot_id, document_id) DO UPDATE SET
                        storage_key = EXCLUDED.storage_key,
                        content_type = EXCLUDED.content_type,
                        filename = EXCLUDED.filename,
                        status = EXCLUDED.status,
                        chunk_count = EXCLUDED.chunk_count,
                        error = EXCLUDED.error,
                        updated_at = EXCLUDED.updated_at
                    """,
                    record.tenant_id,
                    record.chatbot_id,
                    record.document_id,
                    record.storage_key,
                    record.content_type,
                    record.filename,
                    record.status.value,
                    record.chunk_count,
                    record.error,
                    record.created_at,
                    record.updated_at,
                )
        except Exception as e:
            raise DatabaseError(
                f"Failed to store document {record.document_id}: {str(e)}") from e

    async def get_document(
        self, chatbot_id: str, document_id: str
    ) -> Optional[DocumentRecord]:
        """
        Get a single document record.

        Args:
            chatbot_id: Owning chatbot.
            document_id: Document identifier.

        Returns:
            Document record or None if not found.
        """
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    SELECT {DOCUMENT_COLUMNS}
                    FROM documents
                    WHERE chatbot_id = $1 AND document_id = $2
                    LIMIT 1
                    """,
                    chatbot_id,
                    document_id,
                )
        except Exception as e:
            raise DatabaseError(f"Failed to fetch document: {str(e)}") from e
        return _to_record(row) if row else None

    async def list_documents(self, chatbot_id: str) -> List[DocumentRecord]:
        """
        List the documents of a chatbot, newest first.

        Args:
            chatbot_id: Owning chatbot.

        Returns:
            List of document records.
        """
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {DOCUMENT_COLUMNS}
                    FROM documents
                    WHERE chatbot_id = $1
                    ORDER BY created_at DESC
                    """,
                    chatbot_id,
                )
        except Exception as e:
            raise DatabaseError(f"Failed to fetch documents: {str(e)}") from e
        return [_to_record(row) for row in rows]

    async def delete_document(self, record: DocumentRecord) -> bool:
        """
        Delete a document record.

        Args:
            record: Record to delete.

        Returns:
            True if deleted, False if not found.
        """
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                result = await conn.execute(
                    """
                    DELETE FROM documents
                    WHERE tenant_id = $1 AND chatbot_id = $2 AND document_id = $3
                    """,
                    record.tenant_id,
                    record.chatbot_id,
                    record.document_id,
                )
        except Exception as e:
            raise DatabaseError(f"Failed to delete document: {str(e)}") from e
        return result == "DELETE 1"

    async def get_chatbot(self, chatbot_id: str) -> Optional[ChatbotConfig]:
        """
        Get the generation settings of a chatbot.

        Args:
            chatbot_id: Chatbot identifier.

        Returns:
            Chatbot settings or None if not found.
        """
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT chatbot_id, tenant_id, name, system_prompt, model,
                           temperature, max_tokens, status
                    FROM chatbots
                    WHERE chatbot_id = $1
                    """,
                    chatbot_id,
                )
        except Exception as e:
            raise DatabaseError(f"Failed to fetch chatbot: {str(e)}") from e
        return ChatbotConfig(**dict(row)) if row else None
