"""LLM interfaces and implementations."""

from pyrag.llms.base import LLM, ChatMessage, ChatStreamChunk, MessageRole
from pyrag.llms.mock import MockLLM
from pyrag.llms.openai import OpenAILLM

__all__ = [
    "LLM",
    "ChatMessage",
    "ChatStreamChunk",
    "MessageRole",
    "MockLLM",
    "OpenAILLM",
]
