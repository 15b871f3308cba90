"""LLM-backed selectors answering in JSON."""

import json
import logging
from typing import Any, Optional, Sequence

from pyrag.exceptions import DecodeError, wrap_upstream
from pyrag.llms.base import LLM
from pyrag.prompts import DEFAULT_MULTI_SELECT_PROMPT, DEFAULT_SINGLE_SELECT_PROMPT
from pyrag.selectors.types import (
    BaseSelector,
    Choice,
    SelectorResult,
    SingleSelection,
    build_choices_text,
)

logger = logging.getLogger(__name__)


def _extract_span(text: str, open_char: str, close_char: str) -> Optional[str]:
    start = text.find(open_char)
    end = text.rfind(close_char)
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def parse_selection_output(output: str) -> list[SingleSelection]:
    """
    Parse ``[{"choice": N, "reason": "..."}]`` out of an LLM answer.

    The outermost JSON array is tried first, then the outermost object.
    Choices are converted from 1-based to 0-based indices.

    Raises:
        DecodeError: Neither an array nor an object could be parsed
    """
    answers: Optional[list[Any]] = None
    for open_char, close_char in (("[", "]"), ("{", "}")):
        span = _extract_span(output, open_char, close_char)
        if span is None:
            continue
        try:
            parsed = json.loads(span)
        except json.JSONDecodeError:
            continue
        answers = parsed if isinstance(parsed, list) else [parsed]
        break

    if answers is None:
        raise DecodeError(f"No JSON selection found in output: {output!r}")

    selections = []
    for answer in answers:
        if not isinstance(answer, dict) or "choice" not in answer:
            raise DecodeError(f"Selection without a choice: {answer!r}")
        try:
            choice = int(answer["choice"])
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Invalid choice {answer['choice']!r}") from e
        selections.append(SingleSelection(index=choice - 1, reason=str(answer.get("reason", ""))))
    return selections


class LLMSingleSelector(BaseSelector):
    """Ask an LLM for the single most relevant choice."""

    def __init__(self, llm: LLM, prompt_template: str = DEFAULT_SINGLE_SELECT_PROMPT):
        self.llm = llm
        self.prompt_template = prompt_template

    async def select(self, choices: Sequence[Choice], query: str) -> SelectorResult:
        prompt = self.prompt_template.format(
            num_choices=len(choices),
            context_list=build_choices_text(choices),
            query_str=query,
        )
        response = await wrap_upstream(self.llm.complete(prompt), "llm")
        selections = parse_selection_output(response)
        logger.debug(f"Selected {[s.index for s in selections]} of {len(choices)} choices")
        return SelectorResult(selections=selections)


class LLMMultiSelector(BaseSelector):
    """
    Ask an LLM for the relevant choices.

    ``max_outputs`` caps the number of selections requested (all choices
    when None) and returned.
    """

    def __init__(
        self,
        llm: LLM,
        prompt_template: str = DEFAULT_MULTI_SELECT_PROMPT,
        max_outputs: Optional[int] = None,
    ):
        self.llm = llm
        self.prompt_template = prompt_template
        self.max_outputs = max_outputs

    async def select(self, choices: Sequence[Choice], query: str) -> SelectorResult:
        max_outputs = self.max_outputs or len(choices)
        prompt = self.prompt_template.format(
            num_choices=len(choices),
            context_list=build_choices_text(choices),
            max_outputs=max_outputs,
            query_str=query,
        )
        response = await wrap_upstream(self.llm.complete(prompt), "llm")
        selections = parse_selection_output(response)[:max_outputs]
        logger.debug(f"Selected {[s.index for s in selections]} of {len(choices)} choices")
        return SelectorResult(selections=selections)
