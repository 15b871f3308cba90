"""Fusion of several retrievers' results."""

import logging
import math
from enum import Enum
from typing import Any, Optional

from pyrag.exceptions import InvalidArgumentError, wrap_upstream
from pyrag.llms.base import LLM
from pyrag.prompts import DEFAULT_QUERY_GEN_PROMPT
from pyrag.retrievers.base import BaseRetriever
from pyrag.schema import NodeWithScore, QueryBundle
from pyrag.utils.aio import gather_cancel_on_error

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_TOP_K = 10
RRF_K = 60.0


class FusionMode(str, Enum):
    SIMPLE = "simple"
    RECIPROCAL_RANK = "reciprocal_rerank"
    RELATIVE_SCORE = "relative_score"
    DIST_BASED_SCORE = "dist_based_score"


def normalize_weights(weights: list[float], num_retrievers: int) -> list[float]:
    """
    Scale retriever weights to sum to one.

    Raises:
        InvalidArgumentError: Wrong length, a negative weight, or all zero
    """
    if len(weights) != num_retrievers:
        raise InvalidArgumentError(
            f"Got {len(weights)} weights for {num_retrievers} retrievers"
        )
    if any(w < 0 for w in weights):
        raise InvalidArgumentError("Retriever weights must not be negative")

    total = sum(weights)
    if total == 0:
        raise InvalidArgumentError("Retriever weights must not all be zero")
    return [w / total for w in weights]


class FusionRetriever(BaseRetriever):
    """
    Run several retrievers and merge their results.

    Modes:
        simple: keep the highest score seen for each node
        reciprocal_rerank: sum ``1 / (60 + rank)`` over the result lists
        relative_score: min-max normalize each list, weight, then sum
        dist_based_score: normalize each list over mean +/- 3 std, weight, then sum

    With ``num_queries > 1`` and an LLM, extra search queries are generated
    from the original and every retriever runs on each of them.
    """

    def __init__(
        self,
        retrievers: list[BaseRetriever],
        mode: FusionMode | str = FusionMode.SIMPLE,
        similarity_top_k: int = DEFAULT_SIMILARITY_TOP_K,
        retriever_weights: Optional[list[float]] = None,
        num_queries: int = 1,
        llm: Optional[LLM] = None,
        query_gen_prompt: str = DEFAULT_QUERY_GEN_PROMPT,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        if not retrievers:
            raise InvalidArgumentError("FusionRetriever needs at least one retriever")
        try:
            self.mode = FusionMode(mode)
        except ValueError:
            raise InvalidArgumentError(f"Unknown fusion mode: {mode}")

        self.retrievers = list(retrievers)
        self.similarity_top_k = similarity_top_k
        if retriever_weights is None:
            retriever_weights = [1.0] * len(retrievers)
        self.retriever_weights = normalize_weights(retriever_weights, len(retrievers))
        self.num_queries = num_queries
        self._llm = llm
        self.query_gen_prompt = query_gen_prompt

    async def _get_queries(self, query_bundle: QueryBundle) -> list[QueryBundle]:
        queries = [query_bundle]
        if self.num_queries <= 1 or self._llm is None:
            return queries

        prompt = self.query_gen_prompt.format(
            num_queries=self.num_queries - 1, query=query_bundle.query_str
        )
        response = await wrap_upstream(self._llm.complete(prompt), "llm")
        generated = [line.strip() for line in response.splitlines() if line.strip()]
        if self.verbose:
            logger.info(f"Generated queries: {generated}")

        for query_str in generated[:self.num_queries - 1]:
            queries.append(QueryBundle(query_str=query_str, filters=query_bundle.filters))
        return queries

    async def _run_retrievers(
        self, queries: list[QueryBundle]
    ) -> list[tuple[int, list[NodeWithScore]]]:
        jobs = []
        owners = []
        for query in queries:
            for i, retriever in enumerate(self.retrievers):
                jobs.append(retriever.retrieve(query))
                owners.append(i)

        results = await gather_cancel_on_error(jobs)
        return list(zip(owners, results))

    def _simple_fusion(self, results: list[tuple[int, list[NodeWithScore]]]) -> list[NodeWithScore]:
        fused: dict[str, NodeWithScore] = {}
        for _, nodes in results:
            for node in nodes:
                existing = fused.get(node.node_id)
                if existing is None or node.get_score() > existing.get_score():
                    fused[node.node_id] = node
        return [n.model_copy() for n in fused.values()]

    def _reciprocal_rank_fusion(
        self, results: list[tuple[int, list[NodeWithScore]]]
    ) -> list[NodeWithScore]:
        scores: dict[str, float] = {}
        by_id: dict[str, NodeWithScore] = {}
        for _, nodes in results:
            ranked = sorted(nodes, key=lambda x: x.get_score(), reverse=True)
            for rank, node in enumerate(ranked, start=1):
                by_id.setdefault(node.node_id, node)
                scores[node.node_id] = scores.get(node.node_id, 0.0) + 1.0 / (RRF_K + rank)

        return [
            NodeWithScore(node=by_id[node_id].node, score=score)
            for node_id, score in scores.items()
        ]

    @staticmethod
    def _score_range(scores: list[float], dist_based: bool) -> tuple[float, float]:
        if dist_based:
            mean = sum(scores) / len(scores)
            std = math.sqrt(sum((s - mean) ** 2 for s in scores) / len(scores))
            return mean - 3 * std, mean + 3 * std
        return min(scores), max(scores)

    def _relative_score_fusion(
        self, results: list[tuple[int, list[NodeWithScore]]], dist_based: bool = False
    ) -> list[NodeWithScore]:
        scores: dict[str, float] = {}
        by_id: dict[str, NodeWithScore] = {}

        for retriever_idx, nodes in results:
            if not nodes:
                continue
            low, high = self._score_range([n.get_score() for n in nodes], dist_based)
            weight = self.retriever_weights[retriever_idx]

            for node in nodes:
                if high == low:
                    normalized = 1.0 if high > 0 else 0.0
                else:
                    normalized = (node.get_score() - low) / (high - low)
                    normalized = min(max(normalized, 0.0), 1.0)

                by_id.setdefault(node.node_id, node)
                scores[node.node_id] = scores.get(node.node_id, 0.0) + normalized * weight

        return [
            NodeWithScore(node=by_id[node_id].node, score=score)
            for node_id, score in scores.items()
        ]

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        queries = await self._get_queries(query_bundle)
        results = await self._run_retrievers(queries)

        if self.mode == FusionMode.RECIPROCAL_RANK:
            fused = self._reciprocal_rank_fusion(results)
        elif self.mode == FusionMode.RELATIVE_SCORE:
            fused = self._relative_score_fusion(results)
        elif self.mode == FusionMode.DIST_BASED_SCORE:
            fused = self._relative_score_fusion(results, dist_based=True)
        else:
            fused = self._simple_fusion(results)

        fused.sort(key=lambda x: x.get_score(), reverse=True)
        logger.debug(f"Fused {sum(len(r) for _, r in results)} results into {len(fused)} nodes")
        return fused[:self.similarity_top_k]
