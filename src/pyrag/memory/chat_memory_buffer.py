"""
Token-bounded conversation memory.
"""

from __future__ import annotations

from typing import Callable

from pyrag.exceptions import InvalidArgumentError
from pyrag.llms.base import ChatMessage, MessageRole
from pyrag.storage.chat_store import SimpleChatStore

DEFAULT_TOKEN_LIMIT = 3000
DEFAULT_CHAT_STORE_KEY = "chat_history"


def default_tokenizer(text: str) -> int:
    """Approximate token count (~4 characters per token)."""
    return len(text) // 4


class ChatMemoryBuffer:
    """
    Conversation memory that returns the most recent messages fitting a
    token limit.

    Messages live in a chat store under ``chat_store_key``. When trimming,
    the window never starts on an assistant or tool message, so a reply is
    never returned without the message it answers.
    """

    def __init__(
        self,
        token_limit: int = DEFAULT_TOKEN_LIMIT,
        chat_store: SimpleChatStore | None = None,
        chat_store_key: str = DEFAULT_CHAT_STORE_KEY,
        tokenizer_fn: Callable[[str], int] = default_tokenizer,
    ):
        self.token_limit = token_limit
        self.chat_store = chat_store or SimpleChatStore()
        self.chat_store_key = chat_store_key
        self.tokenizer_fn = tokenizer_fn

    @classmethod
    async def from_defaults(
        cls,
        chat_history: list[ChatMessage] | None = None,
        token_limit: int = DEFAULT_TOKEN_LIMIT,
        **kwargs,
    ) -> ChatMemoryBuffer:
        memory = cls(token_limit=token_limit, **kwargs)
        if chat_history:
            await memory.set(chat_history)
        return memory

    async def get_all(self) -> list[ChatMessage]:
        return await self.chat_store.get_messages(self.chat_store_key)

    async def get(self, initial_token_count: int = 0) -> list[ChatMessage]:
        """
        Get the most recent messages within the token limit.

        Args:
            initial_token_count: Tokens already spent elsewhere in the prompt

        Returns:
            A suffix of the history, possibly empty
        """
        if initial_token_count > self.token_limit:
            raise InvalidArgumentError(
                f"Initial token count {initial_token_count} exceeds token limit {self.token_limit}"
            )

        history = await self.get_all()
        if not history:
            return history

        count = len(history)
        tokens = self._count(history[-count:]) + initial_token_count

        while tokens > self.token_limit and count > 1:
            count -= 1
            while count > 0 and history[-count].role in (MessageRole.ASSISTANT, MessageRole.TOOL):
                count -= 1
            if count <= 0:
                break
            tokens = self._count(history[-count:]) + initial_token_count

        if tokens > self.token_limit or count <= 0:
            return []
        return history[-count:]

    def _count(self, messages: list[ChatMessage]) -> int:
        return self.tokenizer_fn("".join(" " + m.content for m in messages))

    async def put(self, message: ChatMessage) -> None:
        await self.chat_store.add_message(self.chat_store_key, message)

    async def set(self, messages: list[ChatMessage]) -> None:
        await self.chat_store.set_messages(self.chat_store_key, messages)

    async def reset(self) -> None:
        await self.chat_store.delete_messages(self.chat_store_key)
