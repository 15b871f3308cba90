"""Selectors choosing among labeled choices."""

from pyrag.selectors.llm_selectors import (
    LLMMultiSelector,
    LLMSingleSelector,
    parse_selection_output,
)
from pyrag.selectors.types import (
    BaseSelector,
    SelectorResult,
    SimpleSelector,
    SingleSelection,
    SingleSelector,
    build_choices_text,
)

__all__ = [
    "BaseSelector",
    "SelectorResult",
    "SingleSelection",
    "SimpleSelector",
    "SingleSelector",
    "LLMSingleSelector",
    "LLMMultiSelector",
    "build_choices_text",
    "parse_selection_output",
]
