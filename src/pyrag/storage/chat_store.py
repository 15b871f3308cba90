"""
Chat store: conversation histories keyed by conversation ID.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional, Union

from pyrag.exceptions import DecodeError
from pyrag.llms.base import ChatMessage
from pyrag.utils.io import load_json_file, write_json_file

logger = logging.getLogger(__name__)

DEFAULT_CHAT_STORE_FILENAME = "chat_store.json"


class SimpleChatStore:
    """
    In-memory chat store.

    Each key holds an ordered list of messages. Messages handed out are
    copies.
    """

    def __init__(self, store: Optional[dict[str, list[ChatMessage]]] = None):
        self._lock = threading.Lock()
        self._store: dict[str, list[ChatMessage]] = {
            key: [m.model_copy(deep=True) for m in messages]
            for key, messages in (store or {}).items()
        }

    async def set_messages(self, key: str, messages: list[ChatMessage]) -> None:
        with self._lock:
            self._store[key] = [m.model_copy(deep=True) for m in messages]

    async def get_messages(self, key: str) -> list[ChatMessage]:
        with self._lock:
            return [m.model_copy(deep=True) for m in self._store.get(key, [])]

    async def add_message(self, key: str, message: ChatMessage, idx: int | None = None) -> None:
        """Append a message, or insert it at ``idx`` when that is a valid position."""
        with self._lock:
            messages = self._store.setdefault(key, [])
            if idx is None or idx < 0 or idx >= len(messages):
                messages.append(message.model_copy(deep=True))
            else:
                messages.insert(idx, message.model_copy(deep=True))

    async def delete_messages(self, key: str) -> list[ChatMessage] | None:
        with self._lock:
            return self._store.pop(key, None)

    async def delete_message(self, key: str, idx: int) -> ChatMessage | None:
        with self._lock:
            messages = self._store.get(key)
            if messages is None or idx < 0 or idx >= len(messages):
                return None
            return messages.pop(idx)

    async def delete_last_message(self, key: str) -> ChatMessage | None:
        with self._lock:
            messages = self._store.get(key)
            if not messages:
                return None
            return messages.pop()

    async def get_keys(self) -> list[str]:
        with self._lock:
            return list(self._store)

    def to_dict(self) -> dict[str, list[dict]]:
        with self._lock:
            return {
                key: [m.model_dump(mode="json") for m in messages]
                for key, messages in self._store.items()
            }

    @classmethod
    def from_dict(cls, data: dict[str, list[dict]]) -> SimpleChatStore:
        try:
            store = {
                key: [ChatMessage.model_validate(m) for m in messages]
                for key, messages in data.items()
            }
        except (ValueError, AttributeError, TypeError) as e:
            raise DecodeError(f"Invalid chat store data: {e}") from e
        return cls(store)

    def persist(self, persist_path: Union[str, Path] = DEFAULT_CHAT_STORE_FILENAME) -> None:
        write_json_file(persist_path, self.to_dict())
        logger.debug(f"Persisted chat store to {persist_path}")

    @classmethod
    def from_persist_path(
        cls, persist_path: Union[str, Path] = DEFAULT_CHAT_STORE_FILENAME
    ) -> SimpleChatStore:
        """Load a chat store; a missing file gives an empty store."""
        if not Path(persist_path).exists():
            return cls()
        data = load_json_file(persist_path)
        if not isinstance(data, dict):
            raise DecodeError(f"Chat store file {persist_path} must hold a JSON object")
        return cls.from_dict(data)
