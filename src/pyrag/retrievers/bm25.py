"""Lexical retrieval with BM25 sparse embeddings."""

import logging
from typing import Any, Optional

from pyrag.embeddings.bm25 import BM25
from pyrag.retrievers.base import BaseRetriever
from pyrag.schema import BaseNode, NodeWithScore, QueryBundle
from pyrag.storage.docstore import KVDocumentStore

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_TOP_K = 10


class BM25Retriever(BaseRetriever):
    """
    Rank nodes by BM25 score against the query.

    The model is fitted on the node texts at construction; nodes sharing no
    weighted term with the query are not returned.
    """

    def __init__(
        self,
        nodes: list[BaseNode],
        similarity_top_k: int = DEFAULT_SIMILARITY_TOP_K,
        bm25: Optional[BM25] = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self._nodes = list(nodes)
        self.similarity_top_k = similarity_top_k
        self.bm25 = bm25 or BM25()
        self._embeddings = self.bm25.fit_transform([n.get_content() for n in self._nodes])
        logger.debug(f"BM25 retriever fitted on {len(self._nodes)} nodes")

    @classmethod
    async def from_docstore(cls, docstore: KVDocumentStore, **kwargs: Any) -> "BM25Retriever":
        """Build a retriever over every node of a document store."""
        nodes = list((await docstore.docs()).values())
        return cls(nodes, **kwargs)

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        query_embedding = await self.bm25.get_sparse_query_embedding(query_bundle.query_str)

        results = []
        for node, embedding in zip(self._nodes, self._embeddings):
            score = query_embedding.dot_product(embedding)
            if score > 0:
                results.append(NodeWithScore(node=node, score=score))

        results.sort(key=lambda x: x.get_score(), reverse=True)
        return results[:self.similarity_top_k]
