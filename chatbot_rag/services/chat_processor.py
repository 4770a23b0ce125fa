"""Chat turn processing: retrieval followed by grounded generation."""

import asyncio
import logging
import uuid
from typing import List, Optional

from chatbot_rag.core.config import settings
from chatbot_rag.core.exceptions import RetrievalError
from chatbot_rag.models.chat import ChatbotConfig, ChatResponse
from chatbot_rag.monitoring.metrics import (
    chat_degraded_retrievals_total,
    chat_fallbacks_total,
)
from chatbot_rag.services.llm import LLMService
from chatbot_rag.services.retrieval import RetrievalService

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Sorry, I encountered an error. Please try again."


class ChatProcessor:
    """Answers one chat turn; failures become the fallback message."""

    def __init__(
        self,
        retrieval_service: RetrievalService,
        llm_service: LLMService,
        timeout_seconds: Optional[float] = None,
        top_k: Optional[int] = None,
    ) -> None:
        """
        Initialize chat processor.

        Args:
            retrieval_service: Context retrieval service.
            llm_service: Answer generation service.
            timeout_seconds: Ceiling for retrieval and generation combined.
            top_k: Number of chunks to retrieve.
        """
        self.retrieval_service = retrieval_service
        self.llm_service = llm_service
        self.timeout_seconds = timeout_seconds or settings.chat_timeout_seconds
        self.top_k = top_k or settings.top_k

    async def _retrieve_context(self, chatbot: ChatbotConfig, message: str) -> List[str]:
        try:
            return await self.retrieval_service.retrieve(
                chatbot.chatbot_id, message, k=self.top_k)
        except RetrievalError as e:
            logger.warning(
                f"Answering chatbot {chatbot.chatbot_id} without context: {str(e)}")
            chat_degraded_retrievals_total.inc()
            return []

    async def answer(self, chatbot: ChatbotConfig, message: str) -> str:
        """
        Retrieve context and generate an answer.

        Args:
            chatbot: Chatbot settings.
            message: The user's message.

        Returns:
            Answer text.

        Raises:
            GenerationError: If the model fails.
        """
        context_chunks = await self._retrieve_context(chatbot, message)
        return await self.llm_service.generate(
            system_prompt=chatbot.system_prompt,
            context_chunks=context_chunks,
            user_message=message,
            temperature=chatbot.temperature,
            max_tokens=chatbot.max_tokens,
            model=chatbot.model,
        )

    async def process(
        self, chatbot: ChatbotConfig, message: str, session_id: Optional[str] = None
    ) -> ChatResponse:
        """
        Process a chat turn. Never raises for provider failures.

        Args:
            chatbot: Chatbot settings.
            message: The user's message.
            session_id: Widget session, minted when absent.

        Returns:
            Chat response carrying the answer or the fallback message.
        """
        session_id = session_id or str(uuid.uuid4())
        try:
            response = await asyncio.wait_for(
                self.answer(chatbot, message), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Chat turn for chatbot {chatbot.chatbot_id} exceeded {self.timeout_seconds}s")
            chat_fallbacks_total.inc()
            response = FALLBACK_MESSAGE
        except Exception as e:
            logger.error(f"Chat turn for chatbot {chatbot.chatbot_id} failed: {str(e)}")
            chat_fallbacks_total.inc()
            response = FALLBACK_MESSAGE

        return ChatResponse(response=response, session_id=session_id)
