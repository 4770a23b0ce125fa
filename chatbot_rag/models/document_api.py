"""Pydantic models for document API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from chatbot_rag.models.document import DocumentRecord, DocumentStatus


class DocumentCreate(BaseModel):
    """Model for registering an upload."""

    tenant_id: str = Field(..., min_length=1)
    filename: str = Field(..., min_length=1, max_length=500)
    content_type: Optional[str] = None


class DocumentResponse(BaseModel):
    """Model for document response."""

    tenant_id: str
    chatbot_id: str
    document_id: str
    storage_key: str
    content_type: Optional[str] = None
    filename: str
    status: DocumentStatus
    chunk_count: int
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: DocumentRecord) -> "DocumentResponse":
        """Build a response from a stored record."""
        return cls(**record.model_dump())


class DocumentListResponse(BaseModel):
    """Model for document list response."""

    documents: list[DocumentResponse]
    total: int
