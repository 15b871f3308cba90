"""Base class for vector stores."""

from abc import ABC, abstractmethod

from pyrag.schema import BaseNode, NodeWithScore, VectorStoreQuery


class BaseVectorStore(ABC):
    """Abstract base class for vector stores.

    Vector stores hold node embeddings and answer similarity queries. A
    store with ``stores_text = False`` keeps only IDs, embeddings and
    metadata, so the nodes it returns carry no text and callers resolve
    them through the document store.
    """

    stores_text: bool = False

    @abstractmethod
    async def add(self, nodes: list[BaseNode]) -> list[str]:
        """Add nodes with their embeddings.

        Args:
            nodes: Nodes carrying embeddings

        Returns:
            The text-store IDs assigned to the nodes
        """
        pass

    @abstractmethod
    async def delete(self, ref_doc_id: str) -> None:
        """Delete every entry stored under a text ID or derived from a ref doc."""
        pass

    @abstractmethod
    async def query(self, query: VectorStoreQuery) -> list[NodeWithScore]:
        """Run a similarity query.

        Args:
            query: Query embedding, top-k, filters and mode

        Returns:
            Matching nodes, best first
        """
        pass

    async def delete_nodes(self, node_ids: list[str]) -> None:
        for node_id in node_ids:
            await self.delete(node_id)
