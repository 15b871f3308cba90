"""Vector similarity retriever over a VectorStoreIndex."""

import logging
from typing import TYPE_CHECKING, Any, Optional

from pyrag.embeddings.base import BaseEmbedding
from pyrag.exceptions import wrap_upstream
from pyrag.retrievers.base import BaseRetriever
from pyrag.schema import (
    MetadataFilters,
    NodeWithScore,
    QueryBundle,
    VectorStoreQuery,
    VectorStoreQueryMode,
)

if TYPE_CHECKING:
    from pyrag.indices.vector_store import VectorStoreIndex

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_TOP_K = 10


class VectorIndexRetriever(BaseRetriever):
    """Vector similarity retriever.

    Embeds the query, queries the index's vector store and resolves the
    returned entries to full nodes through the document store.
    """

    def __init__(
        self,
        index: "VectorStoreIndex",
        similarity_top_k: int = DEFAULT_SIMILARITY_TOP_K,
        filters: Optional[MetadataFilters] = None,
        vector_store_query_mode: VectorStoreQueryMode = VectorStoreQueryMode.DEFAULT,
        alpha: Optional[float] = None,
        node_ids: Optional[list[str]] = None,
        embed_model: Optional[BaseEmbedding] = None,
        **kwargs: Any,
    ):
        """Initialize the vector retriever.

        Args:
            index: Index to search
            similarity_top_k: Number of results to return
            filters: Metadata filters, used when the query carries none
            vector_store_query_mode: Vector store query mode
            alpha: Dense/sparse weight for hybrid queries
            node_ids: Restrict the search to these IDs
            embed_model: Query embedding model (the index's by default)
        """
        super().__init__(**kwargs)
        self._index = index
        self.similarity_top_k = similarity_top_k
        self.filters = filters
        self.vector_store_query_mode = VectorStoreQueryMode(vector_store_query_mode)
        self.alpha = alpha
        self.node_ids = node_ids
        self._embed_model = embed_model

    @property
    def embed_model(self) -> BaseEmbedding:
        return self._embed_model or self._index.embed_model

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        query_embedding = query_bundle.embedding
        if query_embedding is None and self.vector_store_query_mode != VectorStoreQueryMode.SPARSE:
            query_embedding = await wrap_upstream(
                self.embed_model.get_query_embedding(query_bundle.query_str), "embedding"
            )

        query = VectorStoreQuery(
            query_embedding=query_embedding,
            similarity_top_k=self.similarity_top_k,
            filters=query_bundle.filters or self.filters,
            mode=self.vector_store_query_mode,
            query_str=query_bundle.query_str,
            node_ids=self.node_ids,
            alpha=self.alpha,
        )
        results = await wrap_upstream(self._index.vector_store.query(query), "vector_store")
        return await self._resolve_nodes(results)

    async def _resolve_nodes(self, results: list[NodeWithScore]) -> list[NodeWithScore]:
        nodes_dict = self._index.index_struct.nodes_dict
        resolve_all = self._index.stores_nodes_in_docstore

        resolved = []
        for result in results:
            node_id = nodes_dict.get(result.node.id, result.node.id)
            if resolve_all or (result.node.id in nodes_dict and not result.node.text):
                node = await self._index.docstore.get_node(node_id, raise_error=False)
                if node is None:
                    logger.warning(f"Node {node_id} is in the vector store but not the docstore")
                    continue
                resolved.append(NodeWithScore(node=node, score=result.score))
            else:
                resolved.append(result)
        return resolved
