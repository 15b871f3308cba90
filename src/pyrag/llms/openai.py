"""
OpenAI chat-completion LLM.
"""

import logging
from typing import Any, AsyncIterator

from pyrag.exceptions import wrap_upstream
from pyrag.llms.base import LLM, ChatMessage, ChatStreamChunk

logger = logging.getLogger(__name__)


class OpenAILLM(LLM):
    """
    LLM backed by the OpenAI chat completions API.

    The ``openai`` package is imported on first use, so constructing this
    class never requires it.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.1,
        max_tokens: int | None = None,
    ):
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = None

    def _get_client(self):
        """Get or create OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError:
                raise ImportError(
                    "openai package not installed. "
                    "Install with: pip install openai"
                )

            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    def _params(self, messages: list[ChatMessage], **kwargs: Any) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": self.temperature,
        }
        if self.max_tokens is not None:
            params["max_tokens"] = self.max_tokens
        params.update(kwargs)
        return params

    async def complete(self, prompt: str, **kwargs: Any) -> str:
        return await self.chat([ChatMessage.user(prompt)], **kwargs)

    async def chat(self, messages: list[ChatMessage], **kwargs: Any) -> str:
        client = self._get_client()
        response = await wrap_upstream(
            client.chat.completions.create(**self._params(messages, **kwargs)),
            "openai",
        )

        choice = response.choices[0]
        if response.usage:
            logger.debug(f"OpenAI usage: {response.usage.total_tokens} tokens")
        return choice.message.content or ""

    async def stream(self, prompt: str, **kwargs: Any) -> AsyncIterator[str]:
        async for chunk in self.stream_chat([ChatMessage.user(prompt)], **kwargs):
            if chunk.delta:
                yield chunk.delta

    async def stream_chat(
        self, messages: list[ChatMessage], **kwargs: Any
    ) -> AsyncIterator[ChatStreamChunk]:
        client = self._get_client()
        stream = await wrap_upstream(
            client.chat.completions.create(
                **self._params(messages, stream=True, **kwargs)
            ),
            "openai",
        )

        async for chunk in stream:
            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            delta = choice.delta.content if choice.delta else None
            yield ChatStreamChunk(delta=delta or "", finish_reason=choice.finish_reason)
