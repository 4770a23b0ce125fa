"""Grounded answer generation over OpenAI chat and text-completion models."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from openai import AsyncOpenAI

from chatbot_rag.core.config import settings
from chatbot_rag.core.exceptions import GenerationError

logger = logging.getLogger(__name__)


class ModelFamily(str, Enum):
    """Response-shape family of a generation model."""

    CHAT = "chat"
    COMPLETION = "completion"


@dataclass(frozen=True)
class ModelSpec:
    """A configurable generation model."""

    key: str
    model_id: str
    family: ModelFamily


MODEL_REGISTRY: Dict[str, ModelSpec] = {
    spec.key: spec
    for spec in (
        ModelSpec("gpt-4o-mini", "gpt-4o-mini", ModelFamily.CHAT),
        ModelSpec("gpt-4o", "gpt-4o", ModelFamily.CHAT),
        ModelSpec("gpt-4.1-mini", "gpt-4.1-mini", ModelFamily.CHAT),
        ModelSpec("gpt-3.5-turbo-instruct", "gpt-3.5-turbo-instruct", ModelFamily.COMPLETION),
        ModelSpec("davinci-002", "davinci-002", ModelFamily.COMPLETION),
    )
}


class ChatCompletionAdapter:
    """Chat-message-style models: the prompt is sent as one user message."""

    def __init__(self, client: AsyncOpenAI) -> None:
        self.client = client

    async def complete(
        self, model_id: str, prompt: str, temperature: float, max_tokens: int
    ) -> str:
        response = await self.client.chat.completions.create(
            model=model_id,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        choices = getattr(response, "choices", None)
        if not choices:
            raise GenerationError("Chat completion returned no choices")
        return choices[0].message.content or ""


class TextCompletionAdapter:
    """Single-string completion models."""

    def __init__(self, client: AsyncOpenAI) -> None:
        self.client = client

    async def complete(
        self, model_id: str, prompt: str, temperature: float, max_tokens: int
    ) -> str:
        response = await self.client.completions.create(
            model=model_id,
            prompt=prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        choices = getattr(response, "choices", None)
        if not choices:
            raise GenerationError("Text completion returned no choices")
        return choices[0].text or ""


class LLMService:
    """Assembles grounded prompts and dispatches them to the configured model family."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        default_model: Optional[str] = None,
        registry: Optional[Dict[str, ModelSpec]] = None,
    ) -> None:
        """
        Initialize the generation service.

        Args:
            client: OpenAI client, built from settings when omitted.
            default_model: Model key used when a chatbot's model is unknown.
            registry: Model keys available to chatbots.
        """
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.default_model = default_model or settings.default_chat_model
        self.registry = registry or MODEL_REGISTRY
        if self.default_model not in self.registry:
            raise ValueError(
                f"Default model {self.default_model!r} is not a registered model: "
                f"{sorted(self.registry)}"
            )
        self.adapters = {
            ModelFamily.CHAT: ChatCompletionAdapter(self.client),
            ModelFamily.COMPLETION: TextCompletionAdapter(self.client),
        }

    def resolve_model(self, model: Optional[str]) -> ModelSpec:
        """
        Resolve a configured model key.

        Args:
            model: Model key from the chatbot settings.

        Returns:
            Registered model, falling back to the default model.
        """
        if model and model in self.registry:
            return self.registry[model]
        if model:
            logger.warning(
                f"Unknown model {model!r}, falling back to {self.default_model}")
        return self.registry[self.default_model]

    @staticmethod
    def build_prompt(
        system_prompt: str, context_chunks: List[str], user_message: str
    ) -> str:
        """
        Assemble the grounded prompt.

        Args:
            system_prompt: Chatbot instructions.
            context_chunks: Retrieved knowledge base chunks, most relevant first.
            user_message: The user's message.

        Returns:
            Prompt with the context section, if any, before the user message.
        """
        sections = [system_prompt.strip()] if system_prompt.strip() else []
        if context_chunks:
            context = "\n\n".join(context_chunks)
            sections.append(
                "Context from knowledge base:\n"
                "<<<CONTEXT\n"
                f"{context}\n"
                "CONTEXT>>>"
            )
        sections.append(f"User: {user_message}")
        sections.append("Assistant:")
        return "\n\n".join(sections)

    async def generate(
        self,
        system_prompt: str,
        context_chunks: List[str],
        user_message: str,
        temperature: float,
        max_tokens: int,
        model: Optional[str] = None,
    ) -> str:
        """
        Generate an answer grounded in the given context.

        Args:
            system_prompt: Chatbot instructions.
            context_chunks: Retrieved knowledge base chunks.
            user_message: The user's message.
            temperature: Sampling temperature, passed through unchanged.
            max_tokens: Completion token limit, passed through unchanged.
            model: Configured model key.

        Returns:
            Answer text.

        Raises:
            GenerationError: On provider failure or an empty completion.
        """
        spec = self.resolve_model(model)
        prompt = self.build_prompt(system_prompt, context_chunks, user_message)
        adapter = self.adapters[spec.family]

        try:
            answer = await adapter.complete(spec.model_id, prompt, temperature, max_tokens)
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"Failed to generate response: {str(e)}") from e

        answer = answer.strip()
        if not answer:
            raise GenerationError(f"Empty response from {spec.model_id}")
        return answer
