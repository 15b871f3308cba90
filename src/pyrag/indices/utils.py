"""Helpers shared by the index implementations."""

import logging
import re
from typing import Optional

from pyrag.schema import BaseNode, MetadataMode

logger = logging.getLogger(__name__)

SUMMARY_FALLBACK_CHARS = 500


def extract_numbers_given_response(response: str, n: int = 1) -> Optional[list[int]]:
    """Pull the first ``n`` distinct positive integers out of an LLM answer.

    Returns None when the answer holds no such number.
    """
    numbers: list[int] = []
    for match in re.findall(r"\d+", response):
        value = int(match)
        if value > 0 and value not in numbers:
            numbers.append(value)
        if len(numbers) >= n:
            break
    return numbers or None


def get_numbered_text_from_nodes(nodes: list[BaseNode]) -> str:
    """Render nodes as ``(1) text`` lines for choice prompts."""
    lines = []
    for i, node in enumerate(nodes, start=1):
        text = " ".join(node.get_content(metadata_mode=MetadataMode.LLM).splitlines())
        lines.append(f"({i}) {text}")
    return "\n\n".join(lines)


def truncate_text(text: str, max_chars: int = SUMMARY_FALLBACK_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def default_format_node_batch(nodes: list[BaseNode]) -> str:
    """Render a batch as ``Document N:`` blocks for the choice-select prompt."""
    blocks = []
    for i, node in enumerate(nodes, start=1):
        blocks.append(f"Document {i}:\n{node.get_content(metadata_mode=MetadataMode.LLM)}")
    return "\n\n".join(blocks)


def default_parse_choice_select_answer(
    answer: str, num_choices: int
) -> tuple[list[int], list[float]]:
    """
    Parse ``Doc: N, Relevance: M`` lines.

    Args:
        answer: Raw LLM output
        num_choices: Number of documents offered, used to drop bogus picks

    Returns:
        1-based choice numbers and their relevance scores, in answer order
    """
    choices: list[int] = []
    relevances: list[float] = []
    for line in answer.splitlines():
        match = re.search(r"Doc:\s*(\d+)\s*,\s*Relevance:\s*(\d+(?:\.\d+)?)", line, re.IGNORECASE)
        if match is None:
            continue
        choice = int(match.group(1))
        if choice < 1 or choice > num_choices:
            logger.warning(f"Ignoring out-of-range choice {choice} (have {num_choices})")
            continue
        if choice in choices:
            continue
        choices.append(choice)
        relevances.append(float(match.group(2)))
    return choices, relevances
