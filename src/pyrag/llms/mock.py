"""Deterministic LLM for tests and offline runs."""

from typing import Any, Callable, Optional, Union

from pyrag.llms.base import LLM, ChatMessage


class MockLLM(LLM):
    """LLM that replays scripted responses.

    ``responses`` is either a list consumed in order (the default response
    is returned once it runs out) or a callable mapping the prompt to a
    reply. Every prompt received is recorded in ``prompts``.
    """

    def __init__(
        self,
        responses: Optional[Union[list[str], Callable[[str], str]]] = None,
        default_response: str = "",
    ):
        self.default_response = default_response
        self.prompts: list[str] = []

        self._fn: Optional[Callable[[str], str]] = None
        self._queue: list[str] = []
        if callable(responses):
            self._fn = responses
        elif responses:
            self._queue = list(responses)

    async def complete(self, prompt: str, **kwargs: Any) -> str:
        self.prompts.append(prompt)
        if self._fn is not None:
            return self._fn(prompt)
        if self._queue:
            return self._queue.pop(0)
        return self.default_response

    async def chat(self, messages: list[ChatMessage], **kwargs: Any) -> str:
        prompt = "\n".join(f"{m.role.value}: {m.content}" for m in messages)
        return await self.complete(prompt, **kwargs)
