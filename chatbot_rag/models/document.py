"""Document models for the knowledge pipeline."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from urllib.parse import unquote_plus

from pydantic import BaseModel, Field

CHUNK_NAMESPACE = uuid.UUID("00000000-0000-0000-0000-000000000000")


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    """Ingestion status of an uploaded document."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


class DocumentRecord(BaseModel):
    """Metadata record for one uploaded source file."""

    tenant_id: str
    chatbot_id: str
    document_id: str
    storage_key: str
    content_type: Optional[str] = None
    filename: str
    status: DocumentStatus = DocumentStatus.PENDING
    chunk_count: int = Field(default=0, ge=0)
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Config:
        """Pydantic config."""

        from_attributes = True


class StorageRef(BaseModel):
    """Identity segments encoded in a blob storage key."""

    key: str
    chatbot_id: str
    document_id: str
    filename: str
    tenant_id: Optional[str] = None

    @classmethod
    def build_key(
        cls, tenant_id: str, chatbot_id: str, document_id: str, filename: str
    ) -> str:
        """
        Build the canonical storage key for a document.

        Args:
            tenant_id: Owning tenant.
            chatbot_id: Owning chatbot.
            document_id: Document identifier.
            filename: Original filename.

        Returns:
            Storage key string.
        """
        return f"tenants/{tenant_id}/chatbots/{chatbot_id}/documents/{document_id}/{filename}"

    @classmethod
    def parse(cls, raw_key: str) -> Optional["StorageRef"]:
        """
        Parse a storage key into its identity segments.

        Accepts the canonical layout
        ``tenants/{tenant}/chatbots/{chatbot}/documents/{document}/{filename}``
        and the older ``chatbots/{chatbot}/context/{document}/{filename}`` and
        ``chatbots/{chatbot}/{document}/{filename}`` layouts. Keys arrive
        URL-encoded from storage notifications.

        Args:
            raw_key: Storage key, possibly URL-encoded.

        Returns:
            Parsed reference or None if the key is not a chatbot document.
        """
        key = unquote_plus(raw_key)
        parts = key.split("/")

        if (
            len(parts) >= 7
            and parts[0] == "tenants"
            and parts[2] == "chatbots"
            and parts[4] == "documents"
        ):
            tenant_id, chatbot_id, document_id = parts[1], parts[3], parts[5]
            filename = "/".join(parts[6:])
        elif len(parts) >= 5 and parts[0] == "chatbots" and parts[2] == "context":
            tenant_id, chatbot_id, document_id = None, parts[1], parts[3]
            filename = "/".join(parts[4:])
        elif len(parts) >= 4 and parts[0] == "chatbots":
            tenant_id, chatbot_id, document_id = None, parts[1], parts[2]
            filename = "/".join(parts[3:])
        else:
            return None

        if not chatbot_id or not document_id or not filename:
            return None

        return cls(
            key=key,
            tenant_id=tenant_id,
            chatbot_id=chatbot_id,
            document_id=document_id,
            filename=filename,
        )


class Chunk(BaseModel):
    """A bounded slice of a document's text, the unit of embedding and retrieval."""

    document_id: str
    chatbot_id: str
    tenant_id: Optional[str] = None
    chunk_index: int = Field(ge=0)
    content: str
    source_ref: str

    @property
    def upsert_key(self) -> str:
        """Deterministic write key, so re-ingestion overwrites instead of duplicating."""
        return f"{self.document_id}#{self.chunk_index}"

    @property
    def point_id(self) -> str:
        """UUID form of the upsert key accepted by the vector index."""
        return str(uuid.uuid5(CHUNK_NAMESPACE, self.upsert_key))
