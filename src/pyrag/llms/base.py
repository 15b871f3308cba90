"""
Base LLM interface.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, AsyncIterator

from pydantic import BaseModel, Field


class MessageRole(str, Enum):
    """Message role in a conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ChatMessage(BaseModel):
    """A single chat message."""
    role: MessageRole = MessageRole.USER
    content: str = ""
    additional_kwargs: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.ASSISTANT, content=content)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the provider message format."""
        return {"role": self.role.value, "content": self.content}


class ChatStreamChunk(BaseModel):
    """A streamed chat delta."""
    delta: str = ""
    finish_reason: str | None = None


class LLM(ABC):
    """
    Abstract base class for language models.

    Only ``complete`` and ``chat`` are required; the streaming variants
    default to a single chunk holding the full answer.
    """

    @abstractmethod
    async def complete(self, prompt: str, **kwargs: Any) -> str:
        """
        Complete a prompt.

        Args:
            prompt: Prompt text
            **kwargs: Provider-specific options

        Returns:
            The generated text
        """
        pass

    @abstractmethod
    async def chat(self, messages: list[ChatMessage], **kwargs: Any) -> str:
        """
        Answer a conversation.

        Args:
            messages: Conversation so far
            **kwargs: Provider-specific options

        Returns:
            The assistant reply text
        """
        pass

    async def stream(self, prompt: str, **kwargs: Any) -> AsyncIterator[str]:
        """Stream a completion as text deltas."""
        yield await self.complete(prompt, **kwargs)

    async def stream_chat(
        self, messages: list[ChatMessage], **kwargs: Any
    ) -> AsyncIterator[ChatStreamChunk]:
        """Stream a chat reply as deltas, the last one carrying the finish reason."""
        text = await self.chat(messages, **kwargs)
        yield ChatStreamChunk(delta=text, finish_reason="stop")

    def count_tokens(self, text: str) -> int:
        """Estimate token count for text (simple implementation)."""
        # ~4 characters per token
        return len(text) // 4
