"""Conversation memory."""

from pyrag.memory.chat_memory_buffer import ChatMemoryBuffer, default_tokenizer

__all__ = ["ChatMemoryBuffer", "default_tokenizer"]
