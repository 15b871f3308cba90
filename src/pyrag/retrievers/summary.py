"""Retrievers over a SummaryIndex."""

import logging
from typing import TYPE_CHECKING, Any, Optional

from pyrag.embeddings.base import BaseEmbedding
from pyrag.embeddings.similarity import cosine_similarity
from pyrag.exceptions import wrap_upstream
from pyrag.indices.utils import default_format_node_batch, default_parse_choice_select_answer
from pyrag.llms.base import LLM
from pyrag.prompts import DEFAULT_CHOICE_SELECT_PROMPT
from pyrag.retrievers.base import BaseRetriever
from pyrag.schema import BaseNode, MetadataMode, NodeWithScore, QueryBundle

if TYPE_CHECKING:
    from pyrag.indices.summary import SummaryIndex

logger = logging.getLogger(__name__)

DEFAULT_CHOICE_BATCH_SIZE = 10
MAX_RELEVANCE = 10.0


async def _get_index_nodes(index: "SummaryIndex") -> list[BaseNode]:
    return await index.docstore.get_nodes(index.node_ids, raise_error=False)


class SummaryIndexRetriever(BaseRetriever):
    """Return every node of the index, in order, with score 1.0."""

    def __init__(self, index: "SummaryIndex", **kwargs: Any):
        super().__init__(**kwargs)
        self._index = index

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        nodes = await _get_index_nodes(self._index)
        return [NodeWithScore(node=node, score=1.0) for node in nodes]


class SummaryIndexEmbeddingRetriever(BaseRetriever):
    """
    Rank the index's nodes by cosine similarity to the query.

    Stored node embeddings are used when present; other nodes are embedded
    on the fly. ``similarity_top_k=None`` returns every node.
    """

    def __init__(
        self,
        index: "SummaryIndex",
        similarity_top_k: Optional[int] = None,
        embed_model: Optional[BaseEmbedding] = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self._index = index
        self.similarity_top_k = similarity_top_k
        self._embed_model = embed_model

    @property
    def embed_model(self) -> BaseEmbedding:
        return self._embed_model or self._index.embed_model

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        nodes = await _get_index_nodes(self._index)
        if not nodes:
            return []

        query_embedding = query_bundle.embedding
        if query_embedding is None:
            query_embedding = await wrap_upstream(
                self.embed_model.get_query_embedding(query_bundle.query_str), "embedding"
            )

        missing = [n for n in nodes if n.embedding is None]
        embedded: dict[str, list[float]] = {}
        if missing:
            texts = [n.get_content(metadata_mode=MetadataMode.EMBED) for n in missing]
            embeddings = await wrap_upstream(
                self.embed_model.get_text_embedding_batch(texts), "embedding"
            )
            embedded = {n.id: e for n, e in zip(missing, embeddings)}

        scored = [
            NodeWithScore(
                node=node,
                score=cosine_similarity(query_embedding, node.embedding or embedded[node.id]),
            )
            for node in nodes
        ]
        scored.sort(key=lambda x: x.get_score(), reverse=True)

        if self.similarity_top_k is None or self.similarity_top_k <= 0:
            return scored
        return scored[:self.similarity_top_k]


class SummaryIndexLLMRetriever(BaseRetriever):
    """
    Ask an LLM which nodes are relevant, a batch at a time.

    Scores are the LLM's 1-10 relevance divided by 10. A batch whose answer
    cannot be parsed is kept whole at score 1.0. Without an LLM every node
    is returned at score 1.0.
    """

    def __init__(
        self,
        index: "SummaryIndex",
        llm: Optional[LLM] = None,
        choice_select_prompt: str = DEFAULT_CHOICE_SELECT_PROMPT,
        choice_batch_size: int = DEFAULT_CHOICE_BATCH_SIZE,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self._index = index
        self._llm = llm if llm is not None else index.llm
        self.choice_select_prompt = choice_select_prompt
        self.choice_batch_size = choice_batch_size

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        nodes = await _get_index_nodes(self._index)
        if self._llm is None:
            logger.warning("No LLM configured for LLM-mode summary retrieval, returning all nodes")
            return [NodeWithScore(node=node, score=1.0) for node in nodes]

        results: list[NodeWithScore] = []
        for start in range(0, len(nodes), self.choice_batch_size):
            batch = nodes[start:start + self.choice_batch_size]
            prompt = self.choice_select_prompt.format(
                context_str=default_format_node_batch(batch),
                query_str=query_bundle.query_str,
            )
            answer = await wrap_upstream(self._llm.complete(prompt), "llm")
            choices, relevances = default_parse_choice_select_answer(answer, len(batch))

            if not choices:
                logger.warning("Could not parse choice-select answer, keeping the whole batch")
                results.extend(NodeWithScore(node=node, score=1.0) for node in batch)
                continue

            for choice, relevance in zip(choices, relevances):
                results.append(NodeWithScore(
                    node=batch[choice - 1],
                    score=min(relevance, MAX_RELEVANCE) / MAX_RELEVANCE,
                ))

        return results
