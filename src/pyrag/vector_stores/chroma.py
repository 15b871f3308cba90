"""ChromaDB vector store."""

import asyncio
import json
import logging
from typing import Any, Optional

from pyrag.exceptions import UnsupportedError, wrap_upstream
from pyrag.schema import (
    BaseNode,
    FilterCondition,
    FilterOperator,
    MetadataFilter,
    MetadataFilters,
    MetadataMode,
    NodeWithScore,
    VectorStoreQuery,
    VectorStoreQueryMode,
    json_to_node,
    node_to_json,
)
from pyrag.vector_stores.base import BaseVectorStore

logger = logging.getLogger(__name__)

NODE_CONTENT_KEY = "_node_content"
REF_DOC_ID_KEY = "ref_doc_id"

_CHROMA_OPERATORS = {
    FilterOperator.EQ: "$eq",
    FilterOperator.NE: "$ne",
    FilterOperator.GT: "$gt",
    FilterOperator.GTE: "$gte",
    FilterOperator.LT: "$lt",
    FilterOperator.LTE: "$lte",
    FilterOperator.IN: "$in",
    FilterOperator.NIN: "$nin",
}


def _to_chroma_filter(filter_: MetadataFilter) -> dict[str, Any]:
    op = _CHROMA_OPERATORS.get(filter_.operator)
    if op is None:
        raise UnsupportedError(f"Filter operator {filter_.operator.value} is not supported by Chroma")
    return {filter_.key: {op: filter_.value}}


def to_chroma_where(filters: MetadataFilters) -> Optional[dict[str, Any]]:
    """Translate metadata filters into a Chroma ``where`` clause."""
    clauses = []
    for f in filters.filters:
        if isinstance(f, MetadataFilters):
            nested = to_chroma_where(f)
            if nested:
                clauses.append(nested)
        else:
            clauses.append(_to_chroma_filter(f))

    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    key = "$or" if filters.condition == FilterCondition.OR else "$and"
    return {key: clauses}


def _flat_metadata(node: BaseNode) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    for key, value in node.metadata.items():
        if isinstance(value, (str, int, float, bool)):
            metadata[key] = value
        else:
            metadata[key] = json.dumps(value)
    if node.ref_doc_id:
        metadata[REF_DOC_ID_KEY] = node.ref_doc_id
    metadata[NODE_CONTENT_KEY] = json.dumps(node_to_json(node.model_copy(update={"embedding": None})))
    return metadata


class ChromaVectorStore(BaseVectorStore):
    """ChromaDB vector store implementation.

    Stores the full node alongside each vector, so results need no document
    store lookup. Blocking Chroma calls run in the default executor.
    Requires the 'chroma' extra to be installed.
    """

    stores_text: bool = True

    def __init__(
        self,
        collection_name: str = "default",
        persist_directory: Optional[str] = None,
    ):
        """Initialize the ChromaDB vector store.

        Args:
            collection_name: Name of the ChromaDB collection
            persist_directory: Directory for persistent storage (None for in-memory)
        """
        self.collection_name = collection_name
        self.persist_directory = persist_directory
        self._client = None
        self._collection = None

    def _get_client(self):
        """Get or create the ChromaDB client."""
        if self._client is None:
            try:
                import chromadb
            except ImportError:
                raise ImportError(
                    "ChromaDB vector store requires 'chromadb'. "
                    "Install it with: pip install chromadb"
                )

            if self.persist_directory:
                self._client = chromadb.PersistentClient(path=self.persist_directory)
            else:
                self._client = chromadb.Client()
        return self._client

    def _get_collection(self):
        """Get or create the collection."""
        if self._collection is None:
            self._collection = self._get_client().get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        return self._collection

    async def _run(self, fn):
        loop = asyncio.get_running_loop()
        return await wrap_upstream(loop.run_in_executor(None, fn), "chroma")

    async def add(self, nodes: list[BaseNode]) -> list[str]:
        if not nodes:
            return []
        collection = self._get_collection()

        ids = [node.id for node in nodes]
        documents = [node.get_content(MetadataMode.NONE) for node in nodes]
        embeddings = [node.embedding for node in nodes]
        metadatas = [_flat_metadata(node) for node in nodes]

        await self._run(
            lambda: collection.upsert(
                ids=ids,
                documents=documents,
                embeddings=embeddings,
                metadatas=metadatas,
            )
        )

        logger.debug(f"Added {len(ids)} nodes to ChromaDB collection '{self.collection_name}'")
        return ids

    async def delete(self, ref_doc_id: str) -> None:
        collection = self._get_collection()
        await self._run(lambda: collection.delete(where={REF_DOC_ID_KEY: ref_doc_id}))
        await self._run(lambda: collection.delete(ids=[ref_doc_id]))

    async def delete_nodes(self, node_ids: list[str]) -> None:
        if not node_ids:
            return
        collection = self._get_collection()
        await self._run(lambda: collection.delete(ids=list(node_ids)))

    async def query(self, query: VectorStoreQuery) -> list[NodeWithScore]:
        if query.mode != VectorStoreQueryMode.DEFAULT:
            raise UnsupportedError(f"Query mode {query.mode.value} is not supported by Chroma")

        collection = self._get_collection()
        where = to_chroma_where(query.filters) if query.filters else None

        kwargs: dict[str, Any] = {
            "query_embeddings": [query.query_embedding],
            "n_results": query.similarity_top_k,
            "include": ["documents", "metadatas", "distances"],
        }
        if where:
            kwargs["where"] = where

        results = await self._run(lambda: collection.query(**kwargs))

        nodes = []
        if results and results["ids"] and results["ids"][0]:
            for i, node_id in enumerate(results["ids"][0]):
                metadata = results["metadatas"][0][i] if results["metadatas"] else {}
                node = json_to_node(json.loads(metadata[NODE_CONTENT_KEY]))

                # Cosine distance to similarity
                distance = results["distances"][0][i] if results["distances"] else 0.0
                nodes.append(NodeWithScore(node=node, score=1.0 - distance))

        return nodes

    async def count(self) -> int:
        collection = self._get_collection()
        return await self._run(collection.count)

    async def clear(self) -> None:
        client = self._get_client()
        await self._run(lambda: client.delete_collection(self.collection_name))
        self._collection = None
