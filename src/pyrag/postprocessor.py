"""Node postprocessors applied between retrieval and synthesis."""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Union

from pyrag.exceptions import InvalidArgumentError, wrap_upstream
from pyrag.llms.base import LLM
from pyrag.prompts import DEFAULT_RERANK_PROMPT
from pyrag.schema import MetadataMode, NodeWithScore, QueryBundle, to_query_bundle
from pyrag.utils.aio import gather_cancel_on_error

logger = logging.getLogger(__name__)

RERANK_DOCUMENT_CHARS = 500


class BaseNodePostprocessor(ABC):
    """Abstract base class for node postprocessors."""

    @abstractmethod
    async def postprocess_nodes(
        self,
        nodes: list[NodeWithScore],
        query: Optional[Union[str, QueryBundle]] = None,
    ) -> list[NodeWithScore]:
        """Transform retrieved nodes.

        Args:
            nodes: Retrieved nodes
            query: Query the nodes were retrieved for

        Returns:
            Processed nodes
        """
        pass


class SimilarityPostprocessor(BaseNodePostprocessor):
    """Drop nodes scoring below a cutoff. Unscored nodes are dropped too."""

    def __init__(self, similarity_cutoff: Optional[float] = None):
        self.similarity_cutoff = similarity_cutoff

    async def postprocess_nodes(
        self,
        nodes: list[NodeWithScore],
        query: Optional[Union[str, QueryBundle]] = None,
    ) -> list[NodeWithScore]:
        if self.similarity_cutoff is None:
            return list(nodes)
        return [
            n for n in nodes
            if n.score is not None and n.score >= self.similarity_cutoff
        ]


class LLMRerank(BaseNodePostprocessor):
    """Reranker using an LLM to evaluate relevance.

    Each node is scored 0-10 by the LLM and the score normalized to 0-1.
    More accurate but slower than similarity scores.
    """

    def __init__(
        self,
        llm: Optional[LLM] = None,
        top_n: int = 10,
        batch_size: int = 5,
        rerank_prompt: str = DEFAULT_RERANK_PROMPT,
    ):
        """Initialize the LLM reranker.

        Args:
            llm: LLM for scoring (defaults to Settings.llm)
            top_n: Number of nodes to keep
            batch_size: Number of nodes to score concurrently
            rerank_prompt: Template with ``{query}`` and ``{document}``
        """
        if batch_size < 1:
            raise InvalidArgumentError("batch_size must be at least 1")
        if llm is None:
            from pyrag.settings import Settings

            llm = Settings.llm
        self.llm = llm
        self.top_n = top_n
        self.batch_size = batch_size
        self.rerank_prompt = rerank_prompt

    async def postprocess_nodes(
        self,
        nodes: list[NodeWithScore],
        query: Optional[Union[str, QueryBundle]] = None,
    ) -> list[NodeWithScore]:
        """Rerank nodes using LLM scoring."""
        if query is None:
            raise InvalidArgumentError("LLMRerank needs a query")
        if not nodes:
            return []

        query_str = to_query_bundle(query).query_str
        scored: list[NodeWithScore] = []

        for i in range(0, len(nodes), self.batch_size):
            batch = nodes[i:i + self.batch_size]
            tasks = [self._score_node(query_str, node) for node in batch]
            scores = await gather_cancel_on_error(tasks)

            for node, score in zip(batch, scores):
                scored.append(NodeWithScore(node=node.node, score=score))

        scored.sort(key=lambda x: x.get_score(), reverse=True)
        return scored[:self.top_n]

    async def _score_node(self, query_str: str, node: NodeWithScore) -> float:
        """Score a single node using the LLM."""
        prompt = self.rerank_prompt.format(
            query=query_str,
            document=node.get_content(metadata_mode=MetadataMode.LLM)[:RERANK_DOCUMENT_CHARS],
        )
        response = await wrap_upstream(self.llm.complete(prompt), "llm")

        try:
            score = float(response.strip().split()[0])
            return max(0.0, min(10.0, score)) / 10.0
        except (ValueError, IndexError):
            logger.warning(f"Could not parse rerank score from {response!r}")

        return node.get_score()
