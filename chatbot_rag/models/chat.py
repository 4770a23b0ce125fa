"""Chat turn and chatbot configuration models."""

from typing import Optional

from pydantic import BaseModel, Field


class ChatbotConfig(BaseModel):
    """Per-chatbot generation settings, owned by the dashboard."""

    chatbot_id: str
    tenant_id: str
    name: str = ""
    system_prompt: str = ""
    model: str
    temperature: float = 0.7
    max_tokens: int = 1024
    status: str = "active"

    @property
    def is_active(self) -> bool:
        """Whether the chatbot accepts chat turns."""
        return self.status == "active"


class ChatRequest(BaseModel):
    """Chat request from the widget."""

    message: str = Field(..., min_length=1)
    session_id: Optional[str] = None


class ChatResponse(BaseModel):
    """Chat response returned to the widget."""

    response: str
    session_id: str
