"""Keyword lookup retriever over a KeywordTableIndex."""

import logging
from collections import Counter
from typing import TYPE_CHECKING, Any

from pyrag.retrievers.base import BaseRetriever
from pyrag.schema import NodeWithScore, QueryBundle

if TYPE_CHECKING:
    from pyrag.indices.keyword_table import KeywordTableIndex

logger = logging.getLogger(__name__)

DEFAULT_MAX_KEYWORDS_PER_QUERY = 10
DEFAULT_NUM_CHUNKS_PER_QUERY = 10


class KeywordTableRetriever(BaseRetriever):
    """
    Retrieve nodes sharing keywords with the query.

    Nodes are ranked by how many query keywords point at them; the score is
    that count divided by the number of query keywords.
    """

    def __init__(
        self,
        index: "KeywordTableIndex",
        max_keywords_per_query: int = DEFAULT_MAX_KEYWORDS_PER_QUERY,
        num_chunks_per_query: int = DEFAULT_NUM_CHUNKS_PER_QUERY,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self._index = index
        self.max_keywords_per_query = max_keywords_per_query
        self.num_chunks_per_query = num_chunks_per_query

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        keywords = await self._index.keyword_extractor.extract_keywords(
            query_bundle.query_str, self.max_keywords_per_query
        )
        logger.debug(f"Query keywords: {keywords}")
        if not keywords:
            return []

        table = self._index.index_struct.table
        counts: Counter = Counter()
        for keyword in keywords:
            for node_id in table.get(keyword, []):
                counts[node_id] += 1

        results = []
        for node_id, count in counts.most_common(self.num_chunks_per_query):
            node = await self._index.docstore.get_node(node_id, raise_error=False)
            if node is None:
                logger.warning(f"Keyword table references missing node {node_id}")
                continue
            results.append(NodeWithScore(node=node, score=count / len(keywords)))
        return results
