"""Keyword extraction for the keyword table and knowledge graph indices."""

import logging
from abc import ABC, abstractmethod
from collections import Counter
from typing import Optional

from pyrag.exceptions import wrap_upstream
from pyrag.llms.base import LLM
from pyrag.prompts import DEFAULT_KEYWORD_EXTRACT_PROMPT

logger = logging.getLogger(__name__)

MIN_KEYWORD_LENGTH = 3
KEYWORD_STRIP_CHARS = ".,!?;:\"'()[]{}#@$%^&*-_=+<>/\\|`~"

KEYWORD_STOPWORDS = frozenset([
    "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could", "should",
    "may", "might", "must", "shall",
    "to", "of", "in", "for", "on", "with", "at", "by", "from", "as",
    "into", "through", "during", "before", "after",
    "above", "below", "between", "under", "again",
    "and", "but", "or", "nor", "so", "yet", "both", "either", "neither",
    "not", "only", "own", "same", "than", "too", "very", "just", "also",
    "this", "that", "these", "those",
    "i", "me", "my", "myself", "we", "our", "ours", "ourselves",
    "you", "your", "yours", "yourself", "yourselves",
    "he", "him", "his", "himself", "she", "her", "hers", "herself",
    "it", "its", "itself", "they", "them", "their", "theirs", "themselves",
    "what", "which", "who", "whom", "whose", "when", "where", "why", "how",
])


def simple_extract_keywords(
    text: str,
    max_keywords: Optional[int] = 10,
    stopwords: frozenset[str] = KEYWORD_STOPWORDS,
) -> list[str]:
    """
    Extract the most frequent non-stopword words of a text.

    Words are lowercased, split on whitespace and stripped of surrounding
    punctuation; words shorter than three characters are ignored. Ties keep
    first-occurrence order.
    """
    counts: Counter = Counter()
    for word in text.lower().split():
        word = word.strip(KEYWORD_STRIP_CHARS)
        if len(word) < MIN_KEYWORD_LENGTH or word in stopwords:
            continue
        counts[word] += 1

    return [word for word, _ in counts.most_common(max_keywords)]


def extract_keywords_given_response(
    response: str,
    start_token: str = "KEYWORDS:",
    lowercase: bool = True,
) -> list[str]:
    """Parse ``KEYWORDS: a, b, c`` out of an LLM answer."""
    text = response.strip()
    position = text.find(start_token)
    if position != -1:
        text = text[position + len(start_token):]
    text = text.strip().splitlines()[0] if text.strip() else ""

    keywords = []
    for keyword in text.split(","):
        keyword = keyword.strip().strip(KEYWORD_STRIP_CHARS).strip()
        if lowercase:
            keyword = keyword.lower()
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    return keywords


class BaseKeywordExtractor(ABC):
    """Abstract base class for keyword extractors."""

    @abstractmethod
    async def extract_keywords(self, text: str, max_keywords: int) -> list[str]:
        """Extract keywords from text.

        Args:
            text: Text to extract from
            max_keywords: Upper bound on the number of keywords

        Returns:
            Keywords, most relevant first
        """
        pass


class SimpleKeywordExtractor(BaseKeywordExtractor):
    """Frequency-based extractor over stopword-filtered words."""

    def __init__(self, stopwords: frozenset[str] = KEYWORD_STOPWORDS):
        self.stopwords = stopwords

    async def extract_keywords(self, text: str, max_keywords: int) -> list[str]:
        return simple_extract_keywords(text, max_keywords, self.stopwords)


class LLMKeywordExtractor(BaseKeywordExtractor):
    """Ask an LLM for keywords in the ``KEYWORDS: a, b`` format."""

    def __init__(self, llm: LLM, prompt: str = DEFAULT_KEYWORD_EXTRACT_PROMPT):
        self.llm = llm
        self.prompt = prompt

    async def extract_keywords(self, text: str, max_keywords: int) -> list[str]:
        response = await wrap_upstream(
            self.llm.complete(self.prompt.format(max_keywords=max_keywords, text=text)),
            "llm",
        )
        keywords = extract_keywords_given_response(response)
        if not keywords:
            logger.warning(f"LLM returned no keywords: {response!r}")
        return keywords[:max_keywords]
